"""
Workflow Template Store - read-only queries over the template hierarchy.

Only rows flagged both ``is_active`` and ``is_current`` are visible to the
engine. Nothing here writes; templates are maintained by admin tooling.
"""

import logging

from sqlalchemy import select

from app.models import db
from app.models.workflow_template import WorkflowLineItem, WorkflowPhase, WorkflowSection

logger = logging.getLogger(__name__)


def _live(model):
    return (model.is_active.is_(True), model.is_current.is_(True))


def first_phase(workflow_type: str) -> WorkflowPhase | None:
    """Lowest display-order live phase of ``workflow_type``."""
    return db.session.execute(
        select(WorkflowPhase)
        .where(WorkflowPhase.workflow_type == workflow_type, *_live(WorkflowPhase))
        .order_by(WorkflowPhase.display_order)
        .limit(1)
    ).scalar_one_or_none()


def next_phase(phase: WorkflowPhase) -> WorkflowPhase | None:
    """Live phase of the same workflow type that follows ``phase`` by display order."""
    return db.session.execute(
        select(WorkflowPhase)
        .where(
            WorkflowPhase.workflow_type == phase.workflow_type,
            WorkflowPhase.display_order > phase.display_order,
            *_live(WorkflowPhase),
        )
        .order_by(WorkflowPhase.display_order)
        .limit(1)
    ).scalar_one_or_none()


def sections_for(phase: WorkflowPhase) -> list[WorkflowSection]:
    return list(db.session.execute(
        select(WorkflowSection)
        .where(WorkflowSection.phase_id == phase.id, *_live(WorkflowSection))
        .order_by(WorkflowSection.display_order)
    ).scalars())


def line_items_for(section: WorkflowSection) -> list[WorkflowLineItem]:
    return list(db.session.execute(
        select(WorkflowLineItem)
        .where(WorkflowLineItem.section_id == section.id, *_live(WorkflowLineItem))
        .order_by(WorkflowLineItem.display_order)
    ).scalars())


def phase_traversal(phase: WorkflowPhase) -> list[tuple[WorkflowSection, WorkflowLineItem]]:
    """
    Flatten a phase into (section, line item) pairs in work order:
    sections by display order, line items by display order inside each.
    """
    pairs = []
    for section in sections_for(phase):
        for item in line_items_for(section):
            pairs.append((section, item))
    logger.debug("Phase %s resolves to %d line items", phase.id, len(pairs))
    return pairs
