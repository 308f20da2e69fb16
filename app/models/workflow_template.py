"""
Roofing Workflow Platform
Workflow template models - the versioned definition of work.

Models:
    - WorkflowPhase:     top level of a workflow type (LEAD, PROSPECT, ...)
    - WorkflowSection:   ordered group of line items inside a phase
    - WorkflowLineItem:  smallest unit of work; one WorkflowStep per project

Architecture:
    WorkflowPhase ──1:N──▶ WorkflowSection ──1:N──▶ WorkflowLineItem

Versioning:
    Rows are immutable per version. ``is_current`` marks the live version,
    ``is_active`` lets administrators switch an item off without superseding
    it. The engine only ever reads rows that are both active and current.
    Template rows never reference instance rows.
"""

import uuid
from datetime import datetime, timezone

from app.models import db


__all__ = [
    "WorkflowPhase",
    "WorkflowSection",
    "WorkflowLineItem",
    "ALERT_PRIORITIES",
    "PHASE_TYPES",
]


# ── Constants ────────────────────────────────────────────────────────────────

PHASE_TYPES = (
    "LEAD", "PROSPECT", "APPROVED", "EXECUTION",
    "SECOND_SUPPLEMENT", "COMPLETION",
)

ALERT_PRIORITIES = {"LOW", "MEDIUM", "HIGH", "URGENT"}


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class WorkflowPhase(db.Model):
    """Root of the template hierarchy for one workflow type."""

    __tablename__ = "workflow_phases"
    __table_args__ = (
        db.UniqueConstraint(
            "workflow_type", "display_order", "version",
            name="uq_workflow_phase_order",
        ),
        db.Index("idx_workflow_phase_scope", "workflow_type", "is_active", "is_current"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    workflow_type = db.Column(db.String(30), nullable=False, default="ROOFING", index=True)
    phase_type = db.Column(db.String(30), nullable=False, comment="LEAD | PROSPECT | ... | COMPLETION")
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    display_order = db.Column(db.Integer, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_current = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    sections = db.relationship(
        "WorkflowSection", backref="phase", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowSection.display_order",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_type": self.workflow_type,
            "phase_type": self.phase_type,
            "name": self.name,
            "description": self.description,
            "display_order": self.display_order,
            "version": self.version,
            "is_active": self.is_active,
            "is_current": self.is_current,
        }

    def __repr__(self):
        return f"<WorkflowPhase {self.workflow_type}/{self.phase_type} #{self.display_order}>"


class WorkflowSection(db.Model):
    """Ordered group of line items belonging to exactly one phase."""

    __tablename__ = "workflow_sections"
    __table_args__ = (
        db.UniqueConstraint(
            "phase_id", "display_order", "version",
            name="uq_workflow_section_order",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    phase_id = db.Column(
        db.String(36), db.ForeignKey("workflow_phases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    section_number = db.Column(db.String(10), nullable=False, comment="e.g. 1, 2, 3")
    name = db.Column(db.String(200), nullable=False)
    display_name = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    display_order = db.Column(db.Integer, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_current = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    line_items = db.relationship(
        "WorkflowLineItem", backref="section", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowLineItem.display_order",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "phase_id": self.phase_id,
            "section_number": self.section_number,
            "name": self.name,
            "display_name": self.display_name or self.name,
            "display_order": self.display_order,
            "version": self.version,
            "is_active": self.is_active,
            "is_current": self.is_current,
        }

    def __repr__(self):
        return f"<WorkflowSection {self.section_number}: {self.name}>"


class WorkflowLineItem(db.Model):
    """
    Single unit of work in the template.

    ``alert_days`` is the due-date offset for the alert raised when the
    matching step becomes active; ``responsible_role`` is who receives it.
    """

    __tablename__ = "workflow_line_items"
    __table_args__ = (
        db.UniqueConstraint(
            "section_id", "display_order", "version",
            name="uq_workflow_line_item_order",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    section_id = db.Column(
        db.String(36), db.ForeignKey("workflow_sections.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    item_letter = db.Column(db.String(5), nullable=False, comment="a, b, c ... within the section")
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    responsible_role = db.Column(db.String(50), nullable=False, default="office")
    estimated_minutes = db.Column(db.Integer, nullable=False, default=30)
    alert_days = db.Column(db.Integer, nullable=False, default=1)
    alert_priority = db.Column(db.String(10), nullable=False, default="MEDIUM")
    display_order = db.Column(db.Integer, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_current = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "section_id": self.section_id,
            "item_letter": self.item_letter,
            "name": self.name,
            "description": self.description,
            "responsible_role": self.responsible_role,
            "estimated_minutes": self.estimated_minutes,
            "alert_days": self.alert_days,
            "alert_priority": self.alert_priority,
            "display_order": self.display_order,
            "version": self.version,
            "is_active": self.is_active,
            "is_current": self.is_current,
        }

    def __repr__(self):
        return f"<WorkflowLineItem {self.item_letter}: {self.name[:40]}>"
