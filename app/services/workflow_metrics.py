"""
Workflow search & performance metrics (read-only).

    search_line_items:    find template line items by name/description
    performance_metrics:  per phase type completion counts and durations
"""

import logging
from collections import defaultdict

from sqlalchemy import case, func, or_, select

from app.models import db
from app.models.workflow_instance import OPEN_STEP_STATES, CompletedWorkflowItem, WorkflowStep
from app.models.workflow_template import WorkflowLineItem, WorkflowPhase, WorkflowSection

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 100


def search_line_items(term: str, workflow_type: str | None = None, limit: int = 20) -> list[dict]:
    """
    Case-insensitive search over live template line items.

    Items whose name matches rank ahead of description-only matches, then
    template order (phase, section, item).
    """
    term = (term or "").strip()
    if not term:
        return []
    limit = max(1, min(int(limit), MAX_SEARCH_LIMIT))
    pattern = f"%{term}%"
    name_hit = WorkflowLineItem.name.ilike(pattern)

    stmt = (
        select(WorkflowLineItem, WorkflowSection, WorkflowPhase)
        .join(WorkflowSection, WorkflowLineItem.section_id == WorkflowSection.id)
        .join(WorkflowPhase, WorkflowSection.phase_id == WorkflowPhase.id)
        .where(
            or_(name_hit, WorkflowLineItem.description.ilike(pattern)),
            WorkflowLineItem.is_active.is_(True), WorkflowLineItem.is_current.is_(True),
            WorkflowSection.is_active.is_(True), WorkflowSection.is_current.is_(True),
            WorkflowPhase.is_active.is_(True), WorkflowPhase.is_current.is_(True),
        )
        .order_by(
            case((name_hit, 0), else_=1),
            WorkflowPhase.display_order,
            WorkflowSection.display_order,
            WorkflowLineItem.display_order,
        )
        .limit(limit)
    )
    if workflow_type:
        stmt = stmt.where(WorkflowPhase.workflow_type == workflow_type)

    results = []
    for item, section, phase in db.session.execute(stmt).all():
        row = item.to_dict()
        row["section_name"] = section.display_name or section.name
        row["section_number"] = section.section_number
        row["phase_name"] = phase.name
        row["phase_type"] = phase.phase_type
        results.append(row)
    logger.debug("Line item search %r returned %d rows", term, len(results))
    return results


def _minutes_between(start, end):
    if start is None or end is None:
        return None
    # SQLite hands back naive datetimes; compare like with like.
    if (start.tzinfo is None) != (end.tzinfo is None):
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)
    return (end - start).total_seconds() / 60


def performance_metrics(phase_type: str | None = None) -> list[dict]:
    """
    Per phase type: completions recorded in the history, average minutes from
    step activation to completion, and steps still open across all projects.
    """
    history = (
        select(CompletedWorkflowItem.completed_at, WorkflowStep.activated_at, WorkflowStep.phase_type)
        .join(WorkflowStep, CompletedWorkflowItem.step_id == WorkflowStep.id)
    )
    open_counts = (
        select(WorkflowStep.phase_type, func.count(WorkflowStep.id))
        .where(WorkflowStep.state.in_(sorted(OPEN_STEP_STATES)))
        .group_by(WorkflowStep.phase_type)
    )
    if phase_type:
        history = history.where(WorkflowStep.phase_type == phase_type)
        open_counts = open_counts.where(WorkflowStep.phase_type == phase_type)

    completions = defaultdict(int)
    durations = defaultdict(list)
    for completed_at, activated_at, ptype in db.session.execute(history).all():
        completions[ptype] += 1
        minutes = _minutes_between(activated_at, completed_at)
        if minutes is not None:
            durations[ptype].append(minutes)

    open_by_type = {ptype: count for ptype, count in db.session.execute(open_counts).all()}

    metrics = []
    for ptype in sorted(set(completions) | set(open_by_type)):
        spans = durations.get(ptype, [])
        metrics.append({
            "phase_type": ptype,
            "completed_count": completions.get(ptype, 0),
            "avg_duration_minutes": round(sum(spans) / len(spans), 1) if spans else None,
            "open_step_count": open_by_type.get(ptype, 0),
        })
    return metrics
