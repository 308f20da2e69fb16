"""
Roofing Workflow Platform
Workflow alert model.

Models:
    - WorkflowAlert: "action required" record raised when a step becomes the
      project's active responsibility. Delivery (email, SMS, in-app) is done
      by a separate transport that reads ACTIVE rows.

Lifecycle states:
    WorkflowAlert:  ACTIVE → COMPLETED (step closed) | DISMISSED (workflow archived)
"""

import uuid
from datetime import datetime, timezone

from app.models import db


ALERT_STATUSES = {"ACTIVE", "COMPLETED", "DISMISSED"}

ALERT_TYPE_LINE_ITEM = "WORKFLOW_LINE_ITEM"


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class WorkflowAlert(db.Model):
    """
    Alert tied to the step currently requiring action.

    At most one ACTIVE alert exists per (project_id, step_id); the partial
    unique index enforces it on PostgreSQL and SQLite alike.
    """

    __tablename__ = "workflow_alerts"
    __table_args__ = (
        db.Index(
            "uq_workflow_alert_active_step",
            "project_id", "step_id",
            unique=True,
            postgresql_where=db.text("status = 'ACTIVE'"),
            sqlite_where=db.text("status = 'ACTIVE'"),
        ),
        db.Index("idx_workflow_alert_project_status", "project_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(db.String(64), nullable=False)
    workflow_id = db.Column(
        db.String(36), db.ForeignKey("project_workflows.id", ondelete="CASCADE"), nullable=False,
    )
    step_id = db.Column(
        db.String(36), db.ForeignKey("workflow_steps.id", ondelete="CASCADE"), nullable=False,
    )
    phase_id = db.Column(db.String(36), db.ForeignKey("workflow_phases.id"), nullable=True)
    section_id = db.Column(db.String(36), db.ForeignKey("workflow_sections.id"), nullable=True)

    alert_type = db.Column(db.String(30), nullable=False, default=ALERT_TYPE_LINE_ITEM)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    step_name = db.Column(db.String(300), nullable=True)
    priority = db.Column(db.String(10), nullable=False, default="MEDIUM")
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")
    responsible_role = db.Column(db.String(50), nullable=True)
    assigned_to_id = db.Column(db.String(64), nullable=True)
    created_by_id = db.Column(db.String(64), nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def is_overdue(self, now=None):
        if self.status != "ACTIVE" or self.due_date is None:
            return False
        now = now or _utcnow()
        due = self.due_date
        if due.tzinfo is None:
            due = due.replace(tzinfo=timezone.utc)
        return due < now

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "workflow_id": self.workflow_id,
            "step_id": self.step_id,
            "phase_id": self.phase_id,
            "section_id": self.section_id,
            "alert_type": self.alert_type,
            "title": self.title,
            "message": self.message,
            "step_name": self.step_name,
            "priority": self.priority,
            "status": self.status,
            "responsible_role": self.responsible_role,
            "assigned_to_id": self.assigned_to_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkflowAlert {self.status}: {self.title[:40]}>"
