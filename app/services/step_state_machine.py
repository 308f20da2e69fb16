"""
Workflow Step State Machine.

The transition table below is the only definition of legal step state
changes. ``apply_transition`` is the only function that writes
``WorkflowStep.state``; the engine routes every state change through it.

    PENDING      → ACTIVE, SKIPPED
    ACTIVE       → IN_PROGRESS, SKIPPED
    IN_PROGRESS  → COMPLETED, BLOCKED
    BLOCKED      → ACTIVE, IN_PROGRESS
    SKIPPED      → ACTIVE
    COMPLETED    → ACTIVE            (reopen)

Guard: IN_PROGRESS requires ``assigned_to_id``.

Usage:
    from app.services.step_state_machine import apply_transition

    apply_transition(step, "IN_PROGRESS")   # raises InvalidTransitionError
"""

import logging
from collections import deque
from datetime import datetime, timezone

from app.core.exceptions import AssigneeRequiredError, InvalidTransitionError
from app.models.workflow_instance import STEP_STATES, WorkflowStep

logger = logging.getLogger(__name__)


STEP_TRANSITIONS = {
    "PENDING":     ["ACTIVE", "SKIPPED"],
    "ACTIVE":      ["IN_PROGRESS", "SKIPPED"],
    "IN_PROGRESS": ["COMPLETED", "BLOCKED"],
    "BLOCKED":     ["ACTIVE", "IN_PROGRESS"],
    "SKIPPED":     ["ACTIVE"],
    "COMPLETED":   ["ACTIVE"],
}


def is_valid_transition(old_state: str, new_state: str) -> bool:
    """Return True if the step state transition is listed in the table."""
    return new_state in STEP_TRANSITIONS.get(old_state, [])


def available_transitions(state: str) -> list[str]:
    """Legal target states from ``state``."""
    return list(STEP_TRANSITIONS.get(state, []))


def validate_transition(step: WorkflowStep, new_state: str) -> None:
    """Raise unless ``step`` may move from its actual state to ``new_state``."""
    if new_state not in STEP_STATES or not is_valid_transition(step.state, new_state):
        raise InvalidTransitionError(step.state, new_state)
    if new_state == "IN_PROGRESS" and not step.assigned_to_id:
        raise AssigneeRequiredError(step.id)


def apply_transition(step: WorkflowStep, new_state: str) -> str:
    """
    Validate and perform a single state transition.

    Returns the previous state. On failure the step is left untouched.
    """
    validate_transition(step, new_state)
    previous = step.state
    step.state = new_state
    # BLOCKED -> ACTIVE resumes the same piece of work; reopen starts a new one
    if new_state == "ACTIVE" and (step.activated_at is None or previous in ("COMPLETED", "SKIPPED")):
        step.activated_at = datetime.now(timezone.utc)
    logger.debug(
        "Step %s transitioned %s → %s", step.id, previous, new_state,
        extra={"step_id": step.id, "workflow_id": step.workflow_id},
    )
    return previous


def path_to(from_state: str, to_state: str) -> list[str]:
    """
    Shortest sequence of legal transitions from ``from_state`` to ``to_state``.

    Returns the target states in order (excluding ``from_state``); an empty
    list when already there. Raises InvalidTransitionError if unreachable.
    """
    if from_state == to_state:
        return []
    queue = deque([(from_state, [])])
    seen = {from_state}
    while queue:
        state, path = queue.popleft()
        for nxt in STEP_TRANSITIONS.get(state, []):
            if nxt in seen:
                continue
            if nxt == to_state:
                return path + [nxt]
            seen.add(nxt)
            queue.append((nxt, path + [nxt]))
    raise InvalidTransitionError(from_state, to_state)


def walk_to(step: WorkflowStep, target_state: str, *, assignee_id: str | None = None) -> list[str]:
    """
    Drive ``step`` to ``target_state`` one legal transition at a time.

    Used for completion, which is a composite of legal moves (for example
    ACTIVE → IN_PROGRESS → COMPLETED). When the path enters IN_PROGRESS and
    the step has no assignee, ``assignee_id`` is assigned first.

    Returns the list of states visited.
    """
    visited = []
    for state in path_to(step.state, target_state):
        if state == "IN_PROGRESS" and not step.assigned_to_id and assignee_id:
            step.assigned_to_id = assignee_id
        apply_transition(step, state)
        visited.append(state)
    return visited
