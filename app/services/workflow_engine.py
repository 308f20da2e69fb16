"""
Workflow Progression Engine - Service Layer.

The only component with write authority over tracker and step state
together. Every public mutating function runs as one transaction:

    - initialize:            materialize the first phase, place the tracker
    - complete_and_advance:  complete a step, record history, move the tracker
    - advance_phase:         close the current phase, materialize the next one
    - transition_step:       validated single state change (incl. reopen/skip)
    - assign_step:           set a step's assignee
    - archive_workflow:      retire a project's workflow

Read-only projections: get_status, get_step, can_advance_phase,
get_multiple_statuses.

Concurrency:
    The tracker row is the per-project serialization point. Each mutating
    call locks it (SELECT ... FOR UPDATE on PostgreSQL) before touching
    steps, and every mutation bumps its optimistic ``version``. A lost race
    surfaces as WorkflowConflictError; callers re-read and reissue.

Usage:
    from app.services import workflow_engine

    workflow_engine.initialize("P1", "ROOFING")
    result = workflow_engine.complete_and_advance("P1", step_id, "U1", "done")
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PhasePreconditionError,
    StepAlreadyCompletedError,
    TemplateResolutionError,
    WorkflowConflictError,
)
from app.models import db
from app.models.workflow_instance import (
    OPEN_STEP_STATES,
    CompletedWorkflowItem,
    ProjectWorkflow,
    ProjectWorkflowTracker,
    WorkflowStep,
)
from app.services import alert_service, progression, template_store
from app.services.step_state_machine import (
    apply_transition,
    available_transitions,
    validate_transition,
    walk_to,
)

logger = logging.getLogger(__name__)


# ── Result objects ───────────────────────────────────────────────────────────


@dataclass
class InitializationResult:
    workflow: ProjectWorkflow
    tracker: ProjectWorkflowTracker
    steps: list[WorkflowStep]

    def to_dict(self):
        return {
            "workflow": self.workflow.to_dict(),
            "tracker": self.tracker.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
            "total_steps": len(self.steps),
        }


@dataclass
class CompletionResult:
    completed_step: WorkflowStep
    next_step: WorkflowStep | None
    progress: int
    completed_steps: int
    total_steps: int

    def to_dict(self):
        return {
            "completed_step": self.completed_step.to_dict(),
            "next_step": self.next_step.to_dict() if self.next_step else None,
            "progress": self.progress,
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
        }


@dataclass
class PhaseAdvanceResult:
    completed: bool
    phase_id: str | None
    phase_name: str | None
    progress: int
    steps: list[WorkflowStep] = field(default_factory=list)

    def to_dict(self):
        return {
            "workflow_complete": self.completed,
            "phase_id": self.phase_id,
            "phase_name": self.phase_name,
            "progress": self.progress,
            "steps": [s.to_dict() for s in self.steps],
        }


# ── Transaction & locking helpers ────────────────────────────────────────────


def _utcnow():
    return datetime.now(timezone.utc)


def _apply_lock_timeout():
    """Bound the wait for the tracker row lock (PostgreSQL only)."""
    if db.engine.dialect.name != "postgresql":
        return
    timeout_ms = int(current_app.config.get("WORKFLOW_LOCK_TIMEOUT_MS", 5000))
    db.session.execute(db.text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def _is_lock_timeout(exc: OperationalError) -> bool:
    # 55P03 = lock_not_available, 40P01 = deadlock_detected
    code = getattr(exc.orig, "pgcode", None)
    return code in ("55P03", "40P01") or "lock timeout" in str(exc).lower()


@contextmanager
def _transaction(project_id: str, operation: str):
    """
    Commit on success; on any failure roll back everything and re-raise.

    Storage-level concurrency failures are translated to WorkflowConflictError
    so callers can tell a retryable race from a terminal error.
    """
    try:
        _apply_lock_timeout()
        yield
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("%s conflict: tracker modified concurrently", operation,
                       extra={"project_id": project_id})
        raise WorkflowConflictError(project_id, "tracker was modified by another transaction") from exc
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("%s conflict: constraint violation %s", operation, exc.orig,
                       extra={"project_id": project_id})
        raise WorkflowConflictError(project_id, "concurrent write rejected by a constraint") from exc
    except OperationalError as exc:
        db.session.rollback()
        if _is_lock_timeout(exc):
            logger.warning("%s conflict: tracker lock timeout", operation,
                           extra={"project_id": project_id})
            raise WorkflowConflictError(project_id, "tracker is locked by another transaction") from exc
        logger.exception("%s failed with a database error", operation,
                         extra={"project_id": project_id})
        raise
    except Exception:
        db.session.rollback()
        logger.info("%s rolled back", operation, extra={"project_id": project_id})
        raise


def _lock_tracker(project_id: str) -> ProjectWorkflowTracker:
    """Load the project's tracker with a row lock and fresh attribute values."""
    tracker = db.session.execute(
        select(ProjectWorkflowTracker)
        .where(ProjectWorkflowTracker.project_id == project_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if tracker is None:
        raise NotFoundError("ProjectWorkflowTracker", project_id)
    return tracker


def _touch(tracker: ProjectWorkflowTracker, now: datetime) -> None:
    """Mark the tracker dirty so the flush bumps its version."""
    tracker.updated_at = now


def _check_version(tracker: ProjectWorkflowTracker, expected_version: int | None) -> None:
    if expected_version is not None and tracker.version != expected_version:
        raise WorkflowConflictError(
            tracker.project_id,
            f"expected tracker version {expected_version}, found {tracker.version}",
        )


def _get_step(tracker: ProjectWorkflowTracker, step_id: str) -> WorkflowStep:
    """Fetch a step that belongs to the tracker's workflow instance."""
    step = db.session.execute(
        select(WorkflowStep).where(
            WorkflowStep.id == step_id,
            WorkflowStep.workflow_id == tracker.workflow_id,
        )
    ).scalar_one_or_none()
    if step is None:
        raise NotFoundError("WorkflowStep", step_id, project_id=tracker.project_id)
    return step


def _require_in_progress(workflow: ProjectWorkflow) -> None:
    if workflow.status != "IN_PROGRESS":
        raise InvalidStateError(
            f"Workflow for project {workflow.project_id} is {workflow.status}",
            details={"status": workflow.status},
        )


def _ordered_steps(workflow_id: str) -> list[WorkflowStep]:
    return list(db.session.execute(
        select(WorkflowStep)
        .where(WorkflowStep.workflow_id == workflow_id)
        .order_by(WorkflowStep.step_order)
    ).scalars())


def _closing_states() -> frozenset:
    configured = current_app.config.get("WORKFLOW_PHASE_CLOSING_STATES")
    if not configured:
        return progression.DEFAULT_PHASE_CLOSING_STATES
    return frozenset(configured)


# ── Internal building blocks ─────────────────────────────────────────────────


def _instantiate_steps(workflow, phase, pairs, start_order: int) -> list[WorkflowStep]:
    """Create one PENDING step per (section, line item), numbering from ``start_order``."""
    steps = []
    for offset, (section, item) in enumerate(pairs):
        step = WorkflowStep(
            workflow_id=workflow.id,
            step_code=f"{section.section_number}{item.item_letter}",
            name=item.name,
            description=item.description or "",
            phase_type=phase.phase_type,
            responsible_role=item.responsible_role,
            estimated_minutes=item.estimated_minutes,
            alert_days=item.alert_days,
            alert_priority=item.alert_priority,
            step_order=start_order + offset,
            state="PENDING",
            template_phase_id=phase.id,
            template_section_id=section.id,
            template_line_item_id=item.id,
        )
        db.session.add(step)
        steps.append(step)
    db.session.flush()
    return steps


def _phase_gate(workflow_id: str):
    """
    Return (latest materialized phase, open steps) for a workflow.

    The latest phase is the one holding the highest ``step_order``; the
    tracker can point at an earlier phase after a reopen. Every materialized
    step counts, so a reopened step in an earlier phase keeps the gate shut.
    """
    steps = _ordered_steps(workflow_id)
    latest = steps[-1].template_phase if steps else None
    return latest, progression.open_steps(steps, _closing_states())


def _move_tracker(tracker: ProjectWorkflowTracker, step: WorkflowStep, now: datetime) -> None:
    """Point the tracker at ``step``, restarting the clocks of the levels that changed."""
    if tracker.current_phase_id != step.template_phase_id:
        tracker.current_phase_id = step.template_phase_id
        tracker.phase_started_at = now
    if tracker.current_section_id != step.template_section_id:
        tracker.current_section_id = step.template_section_id
        tracker.section_started_at = now
    tracker.current_line_item_id = step.template_line_item_id
    tracker.current_step_id = step.id
    tracker.line_item_started_at = now


def _activate(step: WorkflowStep) -> None:
    if step.state not in ("ACTIVE", "IN_PROGRESS"):
        apply_transition(step, "ACTIVE")


def _recompute_progress(workflow: ProjectWorkflow) -> tuple[int, int, int]:
    db.session.flush()
    total = db.session.execute(
        select(func.count(WorkflowStep.id)).where(WorkflowStep.workflow_id == workflow.id)
    ).scalar() or 0
    completed = db.session.execute(
        select(func.count(WorkflowStep.id)).where(
            WorkflowStep.workflow_id == workflow.id,
            WorkflowStep.is_completed.is_(True),
        )
    ).scalar() or 0
    workflow.overall_progress = progression.progress_percent(completed, total)
    return workflow.overall_progress, completed, total


def _advance_from(tracker, step, project_id, actor_id, now) -> WorkflowStep | None:
    """
    After ``step`` closes: if it was the tracker's current step, activate the
    next open step and move the tracker there. When nothing is left the
    tracker keeps its phase but lets go of the step and line item; crossing
    into a new phase is advance_phase's job.
    """
    if tracker.current_step_id != step.id:
        return None
    nxt = progression.next_step(_ordered_steps(tracker.workflow_id), step.step_order)
    if nxt is None:
        tracker.current_step_id = None
        tracker.current_line_item_id = None
        return None
    _activate(nxt)
    _move_tracker(tracker, nxt, now)
    alert_service.ensure_alert(nxt, project_id, created_by_id=actor_id)
    return nxt


def _complete(tracker, step, actor_id, notes, now) -> WorkflowStep | None:
    """Mark ``step`` completed, write history, close alerts, progress the tracker."""
    walk_to(step, "COMPLETED", assignee_id=actor_id)
    step.is_completed = True
    step.completed_at = now
    step.completed_by_id = actor_id
    step.notes = notes

    db.session.add(CompletedWorkflowItem(
        tracker_id=tracker.id,
        step_id=step.id,
        phase_id=step.template_phase_id,
        section_id=step.template_section_id,
        line_item_id=step.template_line_item_id,
        completed_at=now,
        completed_by_id=actor_id,
        notes=notes,
    ))
    alert_service.close_alerts_for_step(tracker.project_id, step.id)
    tracker.last_completed_step_id = step.id
    _touch(tracker, now)
    return _advance_from(tracker, step, tracker.project_id, actor_id, now)


# ═════════════════════════════════════════════════════════════════════════════
# Public operations
# ═════════════════════════════════════════════════════════════════════════════


def initialize(project_id: str, workflow_type: str = "ROOFING") -> InitializationResult:
    """
    Create the workflow instance, the steps of the first phase and the tracker
    for a project that has none, then raise the alert for the first step.

    Raises:
        ConflictError: the project already has a workflow.
        TemplateResolutionError: no live first phase or it has no line items.
    """
    with _transaction(project_id, "initialize"):
        existing = db.session.execute(
            select(ProjectWorkflow.id).where(ProjectWorkflow.project_id == project_id)
        ).first()
        if existing:
            raise ConflictError("ProjectWorkflow", "project_id", project_id)

        phase = template_store.first_phase(workflow_type)
        if phase is None:
            raise TemplateResolutionError(workflow_type=workflow_type)
        pairs = template_store.phase_traversal(phase)
        if not pairs:
            raise TemplateResolutionError(
                "no active template line items in first phase",
                workflow_type=workflow_type, phase_id=phase.id,
            )

        now = _utcnow()
        workflow = ProjectWorkflow(
            project_id=project_id,
            workflow_type=workflow_type,
            status="IN_PROGRESS",
            overall_progress=0,
            started_at=now,
        )
        db.session.add(workflow)
        db.session.flush()

        steps = _instantiate_steps(workflow, phase, pairs, start_order=1)
        first = steps[0]
        apply_transition(first, "ACTIVE")

        first_section, first_item = pairs[0]
        tracker = ProjectWorkflowTracker(
            project_id=project_id,
            workflow_id=workflow.id,
            current_phase_id=phase.id,
            current_section_id=first_section.id,
            current_line_item_id=first_item.id,
            current_step_id=first.id,
            phase_started_at=now,
            section_started_at=now,
            line_item_started_at=now,
        )
        db.session.add(tracker)
        db.session.flush()

        alert_service.ensure_alert(first, project_id)

    logger.info(
        "Initialized %s workflow for project %s with %d steps", workflow_type, project_id, len(steps),
        extra={"project_id": project_id, "workflow_id": workflow.id},
    )
    return InitializationResult(workflow=workflow, tracker=tracker, steps=steps)


def complete_and_advance(
    project_id: str,
    step_id: str,
    actor_id: str,
    notes: str | None = None,
    *,
    expected_version: int | None = None,
) -> CompletionResult:
    """
    Complete a step and, when it was the current one, move the tracker to the
    next open step of the instance.

    Args:
        expected_version: Optional tracker version the caller last read; a
            mismatch raises WorkflowConflictError before anything is written.

    Raises:
        NotFoundError: no tracker for the project, or the step is not in its workflow.
        StepAlreadyCompletedError: the step was completed before (including by a
            concurrent call that won the race).
        WorkflowConflictError: optimistic version check failed.
    """
    with _transaction(project_id, "complete_and_advance"):
        tracker = _lock_tracker(project_id)
        _check_version(tracker, expected_version)
        workflow = tracker.workflow
        _require_in_progress(workflow)
        step = _get_step(tracker, step_id)
        if step.is_completed or step.state == "COMPLETED":
            raise StepAlreadyCompletedError(step.id)

        now = _utcnow()
        nxt = _complete(tracker, step, actor_id, notes, now)
        progress, completed, total = _recompute_progress(workflow)

    logger.info(
        "Step %s completed by %s; progress %d%%; next=%s",
        step.step_code, actor_id, progress, nxt.step_code if nxt else None,
        extra={"project_id": project_id, "step_id": step_id, "actor_id": actor_id},
    )
    return CompletionResult(
        completed_step=step,
        next_step=nxt,
        progress=progress,
        completed_steps=completed,
        total_steps=total,
    )


def advance_phase(project_id: str, actor_id: str, reason: str | None = None) -> PhaseAdvanceResult:
    """
    Close the current phase and materialize the next one.

    Every materialized step must be in a closing state
    (``WORKFLOW_PHASE_CLOSING_STATES``). The phase that follows is resolved
    from the latest materialized phase, so each phase is instantiated at most
    once even after an earlier step was reopened. When no later phase exists
    the workflow is marked COMPLETED and a terminal result is returned.

    Raises:
        PhasePreconditionError: open steps remain.
        TemplateResolutionError: the next phase has no live line items.
    """
    with _transaction(project_id, "advance_phase"):
        tracker = _lock_tracker(project_id)
        workflow = tracker.workflow
        if workflow.status == "COMPLETED":
            return PhaseAdvanceResult(
                completed=True,
                phase_id=tracker.current_phase_id,
                phase_name=tracker.current_phase.name if tracker.current_phase else None,
                progress=workflow.overall_progress,
            )
        _require_in_progress(workflow)

        current_phase, still_open = _phase_gate(workflow.id)
        if still_open:
            raise PhasePreconditionError([s.step_code for s in still_open])

        now = _utcnow()
        new_phase = template_store.next_phase(current_phase)
        if new_phase is None:
            workflow.status = "COMPLETED"
            workflow.completed_at = now
            tracker.current_phase_id = current_phase.id
            tracker.current_step_id = None
            tracker.current_line_item_id = None
            _touch(tracker, now)
            progress, _, _ = _recompute_progress(workflow)
            result = PhaseAdvanceResult(
                completed=True,
                phase_id=current_phase.id,
                phase_name=current_phase.name,
                progress=progress,
            )
        else:
            pairs = template_store.phase_traversal(new_phase)
            if not pairs:
                raise TemplateResolutionError(
                    "no active template line items in next phase", phase_id=new_phase.id,
                )
            max_order = db.session.execute(
                select(func.max(WorkflowStep.step_order)).where(WorkflowStep.workflow_id == workflow.id)
            ).scalar() or 0
            steps = _instantiate_steps(workflow, new_phase, pairs, start_order=max_order + 1)
            first = steps[0]
            apply_transition(first, "ACTIVE")

            tracker.current_phase_id = new_phase.id
            tracker.current_section_id = first.template_section_id
            tracker.current_line_item_id = first.template_line_item_id
            tracker.current_step_id = first.id
            tracker.phase_started_at = now
            tracker.section_started_at = now
            tracker.line_item_started_at = now
            _touch(tracker, now)

            alert_service.ensure_alert(first, project_id, created_by_id=actor_id)
            progress, _, _ = _recompute_progress(workflow)
            result = PhaseAdvanceResult(
                completed=False,
                phase_id=new_phase.id,
                phase_name=new_phase.name,
                progress=progress,
                steps=steps,
            )

    logger.info(
        "Project %s advanced by %s (%s): %s",
        project_id, actor_id, reason or "no reason given",
        "workflow complete" if result.completed else f"entered phase {result.phase_name}",
        extra={"project_id": project_id, "actor_id": actor_id},
    )
    return result


def transition_step(project_id: str, step_id: str, new_state: str, actor_id: str | None = None,
                    *, notes: str | None = None) -> dict:
    """
    Apply one state change from the legality table to a step.

    Legality is always checked against the step's actual state. Side effects:
        COMPLETED  → same as complete_and_advance
        SKIPPED    → alerts closed; tracker moves on if it was the current step
        ACTIVE     → alert raised; a reopened step gets its completion cleared
                     and becomes the tracker's current step

    Only one step may hold the work at a time: activating a step other than
    the current one is refused while the current one is still open.
    """
    with _transaction(project_id, "transition_step"):
        tracker = _lock_tracker(project_id)
        workflow = tracker.workflow
        _require_in_progress(workflow)
        step = _get_step(tracker, step_id)
        validate_transition(step, new_state)
        now = _utcnow()
        previous = step.state
        nxt = None

        if new_state == "COMPLETED":
            nxt = _complete(tracker, step, actor_id, notes, now)
        elif new_state == "ACTIVE":
            current = tracker.current_step
            if current is not None and current.id != step.id and current.state in OPEN_STEP_STATES:
                raise InvalidStateError(
                    f"Step {current.step_code} is still {current.state}; "
                    f"only one step can be active",
                    details={"current_step_id": current.id},
                )
            apply_transition(step, "ACTIVE")
            if previous == "COMPLETED":
                step.is_completed = False
                step.completed_at = None
                step.completed_by_id = None
            _move_tracker(tracker, step, now)
            alert_service.ensure_alert(step, project_id, created_by_id=actor_id)
        elif new_state == "SKIPPED":
            apply_transition(step, "SKIPPED")
            alert_service.close_alerts_for_step(project_id, step.id)
            nxt = _advance_from(tracker, step, project_id, actor_id, now)
        else:
            apply_transition(step, new_state)

        _touch(tracker, now)
        progress, _, _ = _recompute_progress(workflow)

    logger.info(
        "Step %s: %s → %s by %s", step.step_code, previous, new_state, actor_id,
        extra={"project_id": project_id, "step_id": step_id, "actor_id": actor_id},
    )
    return {
        "step_id": step.id,
        "step_code": step.step_code,
        "previous_state": previous,
        "new_state": step.state,
        "next_step_id": nxt.id if nxt else None,
        "progress": progress,
    }


def assign_step(project_id: str, step_id: str, assignee_id: str, actor_id: str | None = None) -> dict:
    """Assign a step; the assignee is mirrored onto its ACTIVE alert."""
    with _transaction(project_id, "assign_step"):
        tracker = _lock_tracker(project_id)
        _require_in_progress(tracker.workflow)
        step = _get_step(tracker, step_id)
        if step.state == "COMPLETED":
            raise StepAlreadyCompletedError(step.id)
        previous = step.assigned_to_id
        step.assigned_to_id = assignee_id
        alert_service.sync_assignee(project_id, step)
        _touch(tracker, _utcnow())

    logger.info(
        "Step %s reassigned %s → %s by %s", step.step_code, previous, assignee_id, actor_id,
        extra={"project_id": project_id, "step_id": step_id, "actor_id": actor_id},
    )
    return {
        "step_id": step.id,
        "previous_assignee": previous,
        "new_assignee": assignee_id,
    }


def archive_workflow(project_id: str, actor_id: str | None = None) -> dict:
    """Retire a project's workflow; rows are kept, ACTIVE alerts dismissed."""
    with _transaction(project_id, "archive_workflow"):
        tracker = _lock_tracker(project_id)
        workflow = tracker.workflow
        if workflow.status == "ARCHIVED":
            raise InvalidStateError(f"Workflow for project {project_id} is already archived")
        previous = workflow.status
        workflow.status = "ARCHIVED"
        dismissed = alert_service.dismiss_project_alerts(project_id)
        _touch(tracker, _utcnow())

    logger.info(
        "Workflow for project %s archived by %s (%d alerts dismissed)", project_id, actor_id, dismissed,
        extra={"project_id": project_id, "actor_id": actor_id},
    )
    return {"project_id": project_id, "previous_status": previous, "dismissed_alerts": dismissed}


# ═════════════════════════════════════════════════════════════════════════════
# Status projection (read-only)
# ═════════════════════════════════════════════════════════════════════════════


def get_status(project_id: str, history_limit: int | None = None) -> dict:
    """Current position, progress, active alert count and recent history."""
    tracker = db.session.execute(
        select(ProjectWorkflowTracker).where(ProjectWorkflowTracker.project_id == project_id)
    ).scalar_one_or_none()
    if tracker is None:
        raise NotFoundError("ProjectWorkflowTracker", project_id)

    if history_limit is None:
        history_limit = current_app.config.get("WORKFLOW_STATUS_HISTORY_LIMIT", 10)

    workflow = tracker.workflow
    history = tracker.completed_items.limit(history_limit).all()
    step = tracker.current_step
    return {
        "project_id": project_id,
        "workflow_id": workflow.id,
        "workflow_type": workflow.workflow_type,
        "status": workflow.status,
        "overall_progress": workflow.overall_progress,
        "current_phase": tracker.current_phase.name if tracker.current_phase else None,
        "current_phase_type": tracker.current_phase.phase_type if tracker.current_phase else None,
        "current_section": (
            (tracker.current_section.display_name or tracker.current_section.name)
            if tracker.current_section else None
        ),
        "current_line_item": tracker.current_line_item.name if tracker.current_line_item else None,
        "current_step": step.to_dict() if step else None,
        "phase_started_at": tracker.phase_started_at.isoformat() if tracker.phase_started_at else None,
        "line_item_started_at": (
            tracker.line_item_started_at.isoformat() if tracker.line_item_started_at else None
        ),
        "active_alert_count": alert_service.count_active_alerts(project_id),
        "recent_history": [h.to_dict() for h in history],
        "tracker_version": tracker.version,
    }


def get_step(project_id: str, step_id: str) -> dict:
    """One step of a project's workflow plus the states it may move to."""
    tracker = db.session.execute(
        select(ProjectWorkflowTracker).where(ProjectWorkflowTracker.project_id == project_id)
    ).scalar_one_or_none()
    if tracker is None:
        raise NotFoundError("ProjectWorkflowTracker", project_id)
    step = _get_step(tracker, step_id)
    data = step.to_dict()
    data["is_current"] = tracker.current_step_id == step.id
    data["available_transitions"] = available_transitions(step.state)
    return data


def can_advance_phase(project_id: str) -> dict:
    """
    Read-only check of the advance_phase gate.

    ``blocking_step`` is the open step with the lowest ``step_order``;
    ``next_phase`` is None when advancing would finish the workflow.
    """
    tracker = db.session.execute(
        select(ProjectWorkflowTracker).where(ProjectWorkflowTracker.project_id == project_id)
    ).scalar_one_or_none()
    if tracker is None:
        raise NotFoundError("ProjectWorkflowTracker", project_id)

    workflow = tracker.workflow
    phase, still_open = _phase_gate(workflow.id)
    following = template_store.next_phase(phase) if phase else None
    return {
        "project_id": project_id,
        "status": workflow.status,
        "ready": workflow.status == "IN_PROGRESS" and not still_open,
        "phase_id": phase.id if phase else None,
        "phase_name": phase.name if phase else None,
        "open_steps": [s.step_code for s in still_open],
        "blocking_step": still_open[0].to_dict() if still_open else None,
        "next_phase": following.name if following else None,
    }


def get_multiple_statuses(project_ids: list[str]) -> list[dict]:
    """Status projection for several projects; unknown ids are skipped."""
    statuses = []
    for pid in project_ids:
        try:
            statuses.append(get_status(pid, history_limit=0))
        except NotFoundError:
            logger.debug("No workflow for project %s", pid)
    return statuses
