"""
Roofing Workflow Platform
Workflow instance models - per-project materialization of template work.

Models:
    - ProjectWorkflow:         one per project per workflow type; aggregate progress
    - WorkflowStep:            one per instantiated template line item
    - ProjectWorkflowTracker:  the project's current position (one per project)
    - CompletedWorkflowItem:   append-only completion ledger

Architecture:
    ProjectWorkflow ──1:N──▶ WorkflowStep ──N:1──▶ WorkflowLineItem (template)
    ProjectWorkflow ──1:1──▶ ProjectWorkflowTracker ──1:N──▶ CompletedWorkflowItem

References only point from instance rows to template rows.

Lifecycle states:
    ProjectWorkflow:  IN_PROGRESS → COMPLETED | ARCHIVED
    WorkflowStep:     see app/services/step_state_machine.py
"""

import uuid
from datetime import datetime, timezone

from app.models import db


__all__ = [
    "ProjectWorkflow",
    "WorkflowStep",
    "ProjectWorkflowTracker",
    "CompletedWorkflowItem",
    "STEP_STATES",
    "OPEN_STEP_STATES",
    "WORKFLOW_STATUSES",
]


# ── Constants ────────────────────────────────────────────────────────────────

STEP_STATES = ("PENDING", "ACTIVE", "IN_PROGRESS", "BLOCKED", "SKIPPED", "COMPLETED")

# States in which a step still holds (or waits for) work.
OPEN_STEP_STATES = frozenset({"PENDING", "ACTIVE", "IN_PROGRESS", "BLOCKED"})

WORKFLOW_STATUSES = {"IN_PROGRESS", "COMPLETED", "ARCHIVED"}


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class ProjectWorkflow(db.Model):
    """Aggregate state of one project's workflow instance."""

    __tablename__ = "project_workflows"
    __table_args__ = (
        db.UniqueConstraint("project_id", "workflow_type", name="uq_project_workflow_type"),
        db.CheckConstraint(
            "overall_progress >= 0 AND overall_progress <= 100",
            name="ck_project_workflow_progress",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(db.String(64), nullable=False, index=True)
    workflow_type = db.Column(db.String(30), nullable=False, default="ROOFING")
    status = db.Column(db.String(20), nullable=False, default="IN_PROGRESS")
    overall_progress = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    steps = db.relationship(
        "WorkflowStep", backref="workflow", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowStep.step_order",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "workflow_type": self.workflow_type,
            "status": self.status,
            "overall_progress": self.overall_progress,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    def __repr__(self):
        return f"<ProjectWorkflow {self.project_id}/{self.workflow_type} {self.overall_progress}%>"


class WorkflowStep(db.Model):
    """
    Live instance of a template line item for one project.

    Template attributes (name, role, alert settings) are copied at
    instantiation so later template versions never change running work.
    ``state`` is written only through ``step_state_machine.apply_transition``.
    """

    __tablename__ = "workflow_steps"
    __table_args__ = (
        db.UniqueConstraint("workflow_id", "step_order", name="uq_workflow_step_order"),
        db.CheckConstraint(
            "state IN ('PENDING','ACTIVE','IN_PROGRESS','BLOCKED','SKIPPED','COMPLETED')",
            name="ck_workflow_step_state",
        ),
        db.Index("idx_workflow_step_state", "workflow_id", "state"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    workflow_id = db.Column(
        db.String(36), db.ForeignKey("project_workflows.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    step_code = db.Column(db.String(20), nullable=False, comment="section number + item letter, e.g. 1a")
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    phase_type = db.Column(db.String(30), nullable=False)
    responsible_role = db.Column(db.String(50), nullable=False, default="office")
    estimated_minutes = db.Column(db.Integer, nullable=True)
    alert_days = db.Column(db.Integer, nullable=False, default=1)
    alert_priority = db.Column(db.String(10), nullable=False, default="MEDIUM")
    step_order = db.Column(db.Integer, nullable=False)
    state = db.Column(db.String(20), nullable=False, default="PENDING")

    assigned_to_id = db.Column(db.String(64), nullable=True)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_by_id = db.Column(db.String(64), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    template_phase_id = db.Column(
        db.String(36), db.ForeignKey("workflow_phases.id", ondelete="RESTRICT"), nullable=False,
    )
    template_section_id = db.Column(
        db.String(36), db.ForeignKey("workflow_sections.id", ondelete="RESTRICT"), nullable=False,
    )
    template_line_item_id = db.Column(
        db.String(36), db.ForeignKey("workflow_line_items.id", ondelete="RESTRICT"), nullable=False,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    template_phase = db.relationship("WorkflowPhase", foreign_keys=[template_phase_id])
    template_section = db.relationship("WorkflowSection", foreign_keys=[template_section_id])
    template_line_item = db.relationship("WorkflowLineItem", foreign_keys=[template_line_item_id])

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "step_code": self.step_code,
            "name": self.name,
            "description": self.description,
            "phase_type": self.phase_type,
            "responsible_role": self.responsible_role,
            "estimated_minutes": self.estimated_minutes,
            "alert_days": self.alert_days,
            "alert_priority": self.alert_priority,
            "step_order": self.step_order,
            "state": self.state,
            "assigned_to_id": self.assigned_to_id,
            "is_completed": self.is_completed,
            "completed_by_id": self.completed_by_id,
            "completed_at": _iso(self.completed_at),
            "notes": self.notes,
            "template_phase_id": self.template_phase_id,
            "template_section_id": self.template_section_id,
            "template_line_item_id": self.template_line_item_id,
        }

    def __repr__(self):
        return f"<WorkflowStep #{self.step_order} {self.step_code} {self.state}>"


class ProjectWorkflowTracker(db.Model):
    """
    Current position of a project inside its workflow instance.

    The tracker row is the per-project serialization point: every mutating
    engine call locks it first. ``version`` is the optimistic-concurrency
    counter; SQLAlchemy adds it to the WHERE clause of every UPDATE and
    raises StaleDataError when another transaction moved the row first.
    """

    __tablename__ = "project_workflow_trackers"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(db.String(64), nullable=False, unique=True)
    workflow_id = db.Column(
        db.String(36), db.ForeignKey("project_workflows.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    current_phase_id = db.Column(
        db.String(36), db.ForeignKey("workflow_phases.id", ondelete="SET NULL"), nullable=True,
    )
    current_section_id = db.Column(
        db.String(36), db.ForeignKey("workflow_sections.id", ondelete="SET NULL"), nullable=True,
    )
    current_line_item_id = db.Column(
        db.String(36), db.ForeignKey("workflow_line_items.id", ondelete="SET NULL"), nullable=True,
    )
    current_step_id = db.Column(
        db.String(36), db.ForeignKey("workflow_steps.id", ondelete="SET NULL"), nullable=True,
    )
    last_completed_step_id = db.Column(db.String(36), nullable=True)
    phase_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    section_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    line_item_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    workflow = db.relationship("ProjectWorkflow", backref=db.backref("tracker", uselist=False))
    current_phase = db.relationship("WorkflowPhase", foreign_keys=[current_phase_id])
    current_section = db.relationship("WorkflowSection", foreign_keys=[current_section_id])
    current_line_item = db.relationship("WorkflowLineItem", foreign_keys=[current_line_item_id])
    current_step = db.relationship("WorkflowStep", foreign_keys=[current_step_id])
    completed_items = db.relationship(
        "CompletedWorkflowItem", backref="tracker", lazy="dynamic",
        order_by="CompletedWorkflowItem.completed_at.desc()",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "workflow_id": self.workflow_id,
            "current_phase_id": self.current_phase_id,
            "current_section_id": self.current_section_id,
            "current_line_item_id": self.current_line_item_id,
            "current_step_id": self.current_step_id,
            "phase_started_at": _iso(self.phase_started_at),
            "section_started_at": _iso(self.section_started_at),
            "line_item_started_at": _iso(self.line_item_started_at),
            "version": self.version,
        }

    def __repr__(self):
        return f"<ProjectWorkflowTracker {self.project_id} step={self.current_step_id} v{self.version}>"


class CompletedWorkflowItem(db.Model):
    """Immutable history row, one per completed step."""

    __tablename__ = "completed_workflow_items"
    __table_args__ = (
        db.Index("idx_completed_item_tracker_time", "tracker_id", "completed_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    tracker_id = db.Column(
        db.String(36), db.ForeignKey("project_workflow_trackers.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_id = db.Column(db.String(36), nullable=True)
    phase_id = db.Column(db.String(36), db.ForeignKey("workflow_phases.id"), nullable=False)
    section_id = db.Column(db.String(36), db.ForeignKey("workflow_sections.id"), nullable=False)
    line_item_id = db.Column(db.String(36), db.ForeignKey("workflow_line_items.id"), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_by_id = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    line_item = db.relationship("WorkflowLineItem", foreign_keys=[line_item_id])

    def to_dict(self):
        return {
            "id": self.id,
            "tracker_id": self.tracker_id,
            "step_id": self.step_id,
            "phase_id": self.phase_id,
            "section_id": self.section_id,
            "line_item_id": self.line_item_id,
            "line_item_name": self.line_item.name if self.line_item else None,
            "completed_at": _iso(self.completed_at),
            "completed_by_id": self.completed_by_id,
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<CompletedWorkflowItem {self.line_item_id} at {self.completed_at}>"
