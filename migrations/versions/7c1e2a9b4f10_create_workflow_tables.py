"""create_workflow_tables

Create the workflow template hierarchy (phases → sections → line items),
per-project instances (workflows, steps, trackers, completion history) and
workflow alerts.

Revision ID: 7c1e2a9b4f10
Revises:
Create Date: 2026-10-12 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e2a9b4f10"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk():
    return sa.Column("id", sa.String(length=36), nullable=False)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    # ── Template hierarchy ───────────────────────────────────────────────
    if "workflow_phases" not in existing_tables:
        op.create_table(
            "workflow_phases",
            _uuid_pk(),
            sa.Column("workflow_type", sa.String(length=30), nullable=False, server_default="ROOFING"),
            sa.Column("phase_type", sa.String(length=30), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("display_order", sa.Integer(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("workflow_type", "display_order", "version", name="uq_workflow_phase_order"),
        )
        op.create_index("ix_workflow_phases_workflow_type", "workflow_phases", ["workflow_type"])
        op.create_index(
            "idx_workflow_phase_scope", "workflow_phases", ["workflow_type", "is_active", "is_current"],
        )

    if "workflow_sections" not in existing_tables:
        op.create_table(
            "workflow_sections",
            _uuid_pk(),
            sa.Column("phase_id", sa.String(length=36), nullable=False),
            sa.Column("section_number", sa.String(length=10), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("display_order", sa.Integer(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["phase_id"], ["workflow_phases.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("phase_id", "display_order", "version", name="uq_workflow_section_order"),
        )
        op.create_index("ix_workflow_sections_phase_id", "workflow_sections", ["phase_id"])

    if "workflow_line_items" not in existing_tables:
        op.create_table(
            "workflow_line_items",
            _uuid_pk(),
            sa.Column("section_id", sa.String(length=36), nullable=False),
            sa.Column("item_letter", sa.String(length=5), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("responsible_role", sa.String(length=50), nullable=False, server_default="office"),
            sa.Column("estimated_minutes", sa.Integer(), nullable=False, server_default="30"),
            sa.Column("alert_days", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("alert_priority", sa.String(length=10), nullable=False, server_default="MEDIUM"),
            sa.Column("display_order", sa.Integer(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["section_id"], ["workflow_sections.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("section_id", "display_order", "version", name="uq_workflow_line_item_order"),
        )
        op.create_index("ix_workflow_line_items_section_id", "workflow_line_items", ["section_id"])

    # ── Project instances ────────────────────────────────────────────────
    if "project_workflows" not in existing_tables:
        op.create_table(
            "project_workflows",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=64), nullable=False),
            sa.Column("workflow_type", sa.String(length=30), nullable=False, server_default="ROOFING"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="IN_PROGRESS"),
            sa.Column("overall_progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "workflow_type", name="uq_project_workflow_type"),
            sa.CheckConstraint(
                "overall_progress >= 0 AND overall_progress <= 100", name="ck_project_workflow_progress",
            ),
        )
        op.create_index("ix_project_workflows_project_id", "project_workflows", ["project_id"])

    if "workflow_steps" not in existing_tables:
        op.create_table(
            "workflow_steps",
            _uuid_pk(),
            sa.Column("workflow_id", sa.String(length=36), nullable=False),
            sa.Column("step_code", sa.String(length=20), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("phase_type", sa.String(length=30), nullable=False),
            sa.Column("responsible_role", sa.String(length=50), nullable=False, server_default="office"),
            sa.Column("estimated_minutes", sa.Integer(), nullable=True),
            sa.Column("alert_days", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("alert_priority", sa.String(length=10), nullable=False, server_default="MEDIUM"),
            sa.Column("step_order", sa.Integer(), nullable=False),
            sa.Column("state", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("assigned_to_id", sa.String(length=64), nullable=True),
            sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("completed_by_id", sa.String(length=64), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("template_phase_id", sa.String(length=36), nullable=False),
            sa.Column("template_section_id", sa.String(length=36), nullable=False),
            sa.Column("template_line_item_id", sa.String(length=36), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["workflow_id"], ["project_workflows.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_phase_id"], ["workflow_phases.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["template_section_id"], ["workflow_sections.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["template_line_item_id"], ["workflow_line_items.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("workflow_id", "step_order", name="uq_workflow_step_order"),
            sa.CheckConstraint(
                "state IN ('PENDING','ACTIVE','IN_PROGRESS','BLOCKED','SKIPPED','COMPLETED')",
                name="ck_workflow_step_state",
            ),
        )
        op.create_index("ix_workflow_steps_workflow_id", "workflow_steps", ["workflow_id"])
        op.create_index("ix_workflow_steps_template_line_item_id", "workflow_steps", ["template_line_item_id"])
        op.create_index("idx_workflow_step_state", "workflow_steps", ["workflow_id", "state"])

    if "project_workflow_trackers" not in existing_tables:
        op.create_table(
            "project_workflow_trackers",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=64), nullable=False),
            sa.Column("workflow_id", sa.String(length=36), nullable=False),
            sa.Column("current_phase_id", sa.String(length=36), nullable=True),
            sa.Column("current_section_id", sa.String(length=36), nullable=True),
            sa.Column("current_line_item_id", sa.String(length=36), nullable=True),
            sa.Column("current_step_id", sa.String(length=36), nullable=True),
            sa.Column("last_completed_step_id", sa.String(length=36), nullable=True),
            sa.Column("phase_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("section_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("line_item_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["workflow_id"], ["project_workflows.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["current_phase_id"], ["workflow_phases.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["current_section_id"], ["workflow_sections.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["current_line_item_id"], ["workflow_line_items.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["current_step_id"], ["workflow_steps.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", name="uq_project_workflow_trackers_project_id"),
        )
        op.create_index("ix_project_workflow_trackers_workflow_id", "project_workflow_trackers", ["workflow_id"])

    if "completed_workflow_items" not in existing_tables:
        op.create_table(
            "completed_workflow_items",
            _uuid_pk(),
            sa.Column("tracker_id", sa.String(length=36), nullable=False),
            sa.Column("step_id", sa.String(length=36), nullable=True),
            sa.Column("phase_id", sa.String(length=36), nullable=False),
            sa.Column("section_id", sa.String(length=36), nullable=False),
            sa.Column("line_item_id", sa.String(length=36), nullable=False),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("completed_by_id", sa.String(length=64), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["tracker_id"], ["project_workflow_trackers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["phase_id"], ["workflow_phases.id"]),
            sa.ForeignKeyConstraint(["section_id"], ["workflow_sections.id"]),
            sa.ForeignKeyConstraint(["line_item_id"], ["workflow_line_items.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "idx_completed_item_tracker_time", "completed_workflow_items", ["tracker_id", "completed_at"],
        )

    # ── Alerts ───────────────────────────────────────────────────────────
    if "workflow_alerts" not in existing_tables:
        op.create_table(
            "workflow_alerts",
            _uuid_pk(),
            sa.Column("project_id", sa.String(length=64), nullable=False),
            sa.Column("workflow_id", sa.String(length=36), nullable=False),
            sa.Column("step_id", sa.String(length=36), nullable=False),
            sa.Column("phase_id", sa.String(length=36), nullable=True),
            sa.Column("section_id", sa.String(length=36), nullable=True),
            sa.Column("alert_type", sa.String(length=30), nullable=False, server_default="WORKFLOW_LINE_ITEM"),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("step_name", sa.String(length=300), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="MEDIUM"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("responsible_role", sa.String(length=50), nullable=True),
            sa.Column("assigned_to_id", sa.String(length=64), nullable=True),
            sa.Column("created_by_id", sa.String(length=64), nullable=True),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["workflow_id"], ["project_workflows.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["step_id"], ["workflow_steps.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["phase_id"], ["workflow_phases.id"]),
            sa.ForeignKeyConstraint(["section_id"], ["workflow_sections.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_workflow_alert_project_status", "workflow_alerts", ["project_id", "status"])
        op.create_index(
            "uq_workflow_alert_active_step",
            "workflow_alerts",
            ["project_id", "step_id"],
            unique=True,
            postgresql_where=sa.text("status = 'ACTIVE'"),
            sqlite_where=sa.text("status = 'ACTIVE'"),
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in (
        "workflow_alerts",
        "completed_workflow_items",
        "project_workflow_trackers",
        "workflow_steps",
        "project_workflows",
        "workflow_line_items",
        "workflow_sections",
        "workflow_phases",
    ):
        if table in existing_tables:
            op.drop_table(table)
