"""
Workflow progression - pure functions over already-instantiated steps.

Nothing in this module touches the session. The engine fetches the ordered
steps of one workflow inside its transaction and asks these functions what
to do next, so the rules are unit-testable without a database.

Works with anything exposing ``step_order`` and ``state`` (WorkflowStep rows
in production, small stand-ins in tests).
"""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from app.models.workflow_instance import OPEN_STEP_STATES


class _StepLike(Protocol):
    step_order: int
    state: str


DEFAULT_PHASE_CLOSING_STATES = frozenset({"COMPLETED", "SKIPPED"})


def next_step(steps: Iterable[_StepLike], current_order: int):
    """
    Return the open step with the smallest ``step_order`` greater than
    ``current_order``, or None when the instance holds no further work.

    Steps already COMPLETED or SKIPPED are passed over.
    """
    candidate = None
    for step in steps:
        if step.step_order <= current_order or step.state not in OPEN_STEP_STATES:
            continue
        if candidate is None or step.step_order < candidate.step_order:
            candidate = step
    return candidate


def progress_percent(completed: int, total: int) -> int:
    """round(100 * completed / total); 0 for an empty workflow."""
    if total <= 0:
        return 0
    return int(round(100 * completed / total))


def open_steps(steps: Iterable[_StepLike], closing_states=DEFAULT_PHASE_CLOSING_STATES) -> list:
    """Steps whose state does not close a phase."""
    return [s for s in steps if s.state not in closing_states]


def validate_step_sequence(orders: Sequence[int]) -> bool:
    """
    ``step_order`` values of one workflow must be unique and contiguous,
    starting at 1.
    """
    ordered = sorted(orders)
    return ordered == list(range(1, len(ordered) + 1))
