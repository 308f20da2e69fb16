"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Methods that change workflow state; reads are never throttled.
WRITE_METHODS = ["POST", "PUT", "PATCH", "DELETE"]


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Workflow writes:  WORKFLOW_WRITE_RATE_LIMIT (default 60 per minute),
                            POST / PUT / PATCH / DELETE only
        - Workflow reads:   not limited
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("WORKFLOW_WRITE_RATE_LIMIT", "60 per minute")
    bp = app.blueprints.get("workflow")
    if bp:
        limiter.limit(write_limit, methods=WRITE_METHODS)(bp)

    # Health check - exempt from rate limiting
    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured - workflow writes: %s, health: exempt", write_limit)
