"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  - simple 200 for load balancers
    GET /api/v1/health/live   - detailed system health (DB, workflow tables)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

_WORKFLOW_TABLES = (
    "workflow_phases",
    "workflow_sections",
    "workflow_line_items",
    "project_workflows",
    "workflow_steps",
    "project_workflow_trackers",
    "completed_workflow_items",
    "workflow_alerts",
)


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe - always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check - database failed: %s", exc)

    # ── Workflow tables ──────────────────────────────────────────────
    if overall:
        from sqlalchemy import inspect as sa_inspect
        present = set(sa_inspect(db.engine).get_table_names())
        missing = [t for t in _WORKFLOW_TABLES if t not in present]
        checks["workflow_tables"] = (
            {"status": "ok"} if not missing else {"status": "error", "missing": missing}
        )
        if missing:
            overall = False

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Roofing Workflow Platform",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
