"""
Workflow Alert Emitter.

Creates and closes WorkflowAlert rows for the step that currently requires
action. Alerts are side effects only: nothing here changes step or tracker
state. Delivery is someone else's job; this module only guarantees that an
ACTIVE row exists.

Usage:
    from app.services.alert_service import acknowledge_alert, ensure_alert

    alert = ensure_alert(step, project_id)     # idempotent
    acknowledge_alert(alert.id, "U1")          # read receipt
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import func, select

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.workflow_alert import ALERT_TYPE_LINE_ITEM, WorkflowAlert
from app.models.workflow_instance import WorkflowStep

logger = logging.getLogger(__name__)


def find_active_alert(project_id: str, step_id: str) -> WorkflowAlert | None:
    return db.session.execute(
        select(WorkflowAlert).where(
            WorkflowAlert.project_id == project_id,
            WorkflowAlert.step_id == step_id,
            WorkflowAlert.status == "ACTIVE",
        )
    ).scalar_one_or_none()


def ensure_alert(
    step: WorkflowStep,
    project_id: str,
    *,
    created_by_id: str | None = None,
) -> WorkflowAlert:
    """
    Return the ACTIVE alert for (project_id, step), creating it if missing.

    An existing alert is returned unchanged, so retried operations never
    produce a second ACTIVE row.
    """
    existing = find_active_alert(project_id, step.id)
    if existing:
        return existing

    days = step.alert_days
    if days is None:
        days = current_app.config.get("WORKFLOW_DEFAULT_ALERT_DAYS", 1)

    alert = WorkflowAlert(
        project_id=project_id,
        workflow_id=step.workflow_id,
        step_id=step.id,
        phase_id=step.template_phase_id,
        section_id=step.template_section_id,
        alert_type=ALERT_TYPE_LINE_ITEM,
        title=f"Action Required: {step.name}",
        message=f"Please complete the workflow step: {step.name}",
        step_name=step.name,
        priority=step.alert_priority or "MEDIUM",
        status="ACTIVE",
        responsible_role=step.responsible_role,
        assigned_to_id=step.assigned_to_id,
        created_by_id=created_by_id,
        due_date=datetime.now(timezone.utc) + timedelta(days=days),
    )
    db.session.add(alert)
    db.session.flush()
    logger.info(
        "Alert raised for step %s (%s)", step.step_code, step.name,
        extra={"project_id": project_id, "step_id": step.id, "workflow_id": step.workflow_id},
    )
    return alert


def close_alerts_for_step(project_id: str, step_id: str, *, status: str = "COMPLETED") -> int:
    """Close every ACTIVE alert of a step. Returns the number closed."""
    alerts = db.session.execute(
        select(WorkflowAlert).where(
            WorkflowAlert.project_id == project_id,
            WorkflowAlert.step_id == step_id,
            WorkflowAlert.status == "ACTIVE",
        )
    ).scalars().all()
    now = datetime.now(timezone.utc)
    for alert in alerts:
        alert.status = status
        alert.acknowledged_at = now
    if alerts:
        db.session.flush()
    return len(alerts)


def dismiss_project_alerts(project_id: str) -> int:
    """Dismiss all ACTIVE alerts of a project (used when archiving)."""
    alerts = db.session.execute(
        select(WorkflowAlert).where(
            WorkflowAlert.project_id == project_id,
            WorkflowAlert.status == "ACTIVE",
        )
    ).scalars().all()
    now = datetime.now(timezone.utc)
    for alert in alerts:
        alert.status = "DISMISSED"
        alert.acknowledged_at = now
    return len(alerts)


def sync_assignee(project_id: str, step: WorkflowStep) -> None:
    """Mirror a step's assignee onto its ACTIVE alert, if any."""
    alert = find_active_alert(project_id, step.id)
    if alert:
        alert.assigned_to_id = step.assigned_to_id


def list_active_alerts(project_id: str) -> list[WorkflowAlert]:
    return list(db.session.execute(
        select(WorkflowAlert)
        .where(WorkflowAlert.project_id == project_id, WorkflowAlert.status == "ACTIVE")
        .order_by(WorkflowAlert.created_at.desc())
    ).scalars())


def count_active_alerts(project_id: str) -> int:
    return db.session.execute(
        select(func.count(WorkflowAlert.id))
        .where(WorkflowAlert.project_id == project_id, WorkflowAlert.status == "ACTIVE")
    ).scalar() or 0


def list_overdue_alerts(now: datetime | None = None) -> list[WorkflowAlert]:
    """ACTIVE alerts whose due date has passed, oldest due first."""
    now = now or datetime.now(timezone.utc)
    return list(db.session.execute(
        select(WorkflowAlert)
        .where(WorkflowAlert.status == "ACTIVE", WorkflowAlert.due_date < now)
        .order_by(WorkflowAlert.due_date)
    ).scalars())


def acknowledge_alert(alert_id: str, actor_id: str | None = None) -> WorkflowAlert:
    """Mark an alert as read. The first acknowledgement wins; status is unchanged."""
    alert = db.session.get(WorkflowAlert, alert_id)
    if alert is None:
        raise NotFoundError("WorkflowAlert", alert_id)
    if alert.acknowledged_at is None:
        alert.acknowledged_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info(
            "Alert %s acknowledged by %s", alert.id, actor_id,
            extra={"project_id": alert.project_id, "step_id": alert.step_id, "actor_id": actor_id},
        )
    return alert
