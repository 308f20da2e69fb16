"""
Startup diagnostics - runs once when the Flask app starts.

Checks the database and the workflow template catalogue, then logs a
summary banner.
"""

import logging
import sys

from flask import Flask
from sqlalchemy import func, select

from app.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = f"FAILED ({exc})"
            issues.append(f"Database unreachable: {exc}")

        # ── Table count ──────────────────────────────────────────────
        try:
            from sqlalchemy import inspect as sa_inspect
            tables = sa_inspect(db.engine).get_table_names()
            table_count = len(tables)
            if table_count == 0:
                issues.append("No tables found - run 'flask db upgrade'")
        except Exception:
            table_count = "?"

        # ── Live workflow templates ──────────────────────────────────
        from app.models.workflow_template import WorkflowPhase
        try:
            phase_count = db.session.execute(
                select(func.count(WorkflowPhase.id)).where(
                    WorkflowPhase.is_active.is_(True), WorkflowPhase.is_current.is_(True),
                )
            ).scalar() or 0
            if phase_count == 0:
                issues.append("No active workflow phases - projects cannot be initialized")
        except Exception:
            phase_count = "?"
        finally:
            db.session.rollback()

        closing = ",".join(app.config.get("WORKFLOW_PHASE_CLOSING_STATES", []))

        # ── Banner ───────────────────────────────────────────────────
        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  Roofing Workflow Platform - Startup Diagnostics            ║
╠══════════════════════════════════════════════════════════════╣
║  Python      : {py:<46s}║
║  Debug       : {str(app.debug):<46s}║
║  Database    : {db_type} ({db_status}){' ' * max(0, 46 - len(db_type) - len(str(db_status)) - 4)}║
║  Tables      : {str(table_count):<46s}║
║  Phases      : {str(phase_count):<46s}║
║  Closing     : {closing:<46s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("✅ All startup checks passed")
