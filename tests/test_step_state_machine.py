"""
Exhaustive transition tests for the workflow step state machine.

    PENDING      -> ACTIVE | SKIPPED
    ACTIVE       -> IN_PROGRESS | SKIPPED
    IN_PROGRESS  -> COMPLETED | BLOCKED
    BLOCKED      -> ACTIVE | IN_PROGRESS
    SKIPPED      -> ACTIVE
    COMPLETED    -> ACTIVE

Every (from, to) pair over the six states is checked: listed pairs succeed,
everything else raises InvalidTransitionError and leaves the step untouched.
Steps here are transient rows; nothing is persisted.
"""

import itertools
from datetime import datetime, timezone

import pytest

from app.core.exceptions import AssigneeRequiredError, InvalidStateError, InvalidTransitionError
from app.models.workflow_instance import STEP_STATES, WorkflowStep
from app.services.step_state_machine import (
    STEP_TRANSITIONS,
    apply_transition,
    available_transitions,
    is_valid_transition,
    path_to,
    walk_to,
)

VALID_PAIRS = [(src, dst) for src, targets in STEP_TRANSITIONS.items() for dst in targets]
INVALID_PAIRS = [
    (src, dst)
    for src, dst in itertools.product(STEP_STATES, STEP_STATES)
    if dst not in STEP_TRANSITIONS[src]
]


def _step(state: str, assignee: str | None = "U1") -> WorkflowStep:
    return WorkflowStep(id="step-1", workflow_id="wf-1", step_code="1a", name="Step", state=state,
                        assigned_to_id=assignee)


class TestTransitionTable:
    def test_table_covers_every_state(self):
        assert set(STEP_TRANSITIONS) == set(STEP_STATES)

    def test_pair_counts(self):
        assert len(VALID_PAIRS) == 10
        assert len(INVALID_PAIRS) == 36 - 10

    @pytest.mark.parametrize("src,dst", VALID_PAIRS)
    def test_valid_transition_applies(self, src, dst):
        step = _step(src)
        previous = apply_transition(step, dst)
        assert previous == src
        assert step.state == dst

    @pytest.mark.parametrize("src,dst", INVALID_PAIRS)
    def test_invalid_transition_leaves_state(self, src, dst):
        step = _step(src)
        with pytest.raises(InvalidTransitionError) as exc_info:
            apply_transition(step, dst)
        assert step.state == src
        assert str(exc_info.value) == f"invalid transition: {src}→{dst}"

    def test_unknown_target_state_rejected(self):
        step = _step("ACTIVE")
        with pytest.raises(InvalidTransitionError):
            apply_transition(step, "DONE")
        assert step.state == "ACTIVE"

    def test_is_valid_transition_matches_table(self):
        assert is_valid_transition("PENDING", "ACTIVE")
        assert not is_valid_transition("PENDING", "COMPLETED")
        assert not is_valid_transition("NOPE", "ACTIVE")

    def test_available_transitions_is_a_copy(self):
        targets = available_transitions("IN_PROGRESS")
        assert targets == ["COMPLETED", "BLOCKED"]
        targets.append("PENDING")
        assert "PENDING" not in STEP_TRANSITIONS["IN_PROGRESS"]

    def test_invalid_transition_is_invalid_state(self):
        assert issubclass(InvalidTransitionError, InvalidStateError)


class TestGuardsAndSideEffects:
    def test_in_progress_requires_assignee(self):
        step = _step("ACTIVE", assignee=None)
        with pytest.raises(AssigneeRequiredError):
            apply_transition(step, "IN_PROGRESS")
        assert step.state == "ACTIVE"

    def test_blocked_to_in_progress_requires_assignee(self):
        step = _step("BLOCKED", assignee=None)
        with pytest.raises(AssigneeRequiredError):
            apply_transition(step, "IN_PROGRESS")

    def test_activation_stamps_activated_at(self):
        step = _step("PENDING")
        assert step.activated_at is None
        apply_transition(step, "ACTIVE")
        assert step.activated_at is not None

    def test_resume_from_blocked_keeps_activated_at(self):
        started = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
        step = _step("BLOCKED")
        step.activated_at = started
        apply_transition(step, "ACTIVE")
        assert step.activated_at == started

    @pytest.mark.parametrize("src", ["COMPLETED", "SKIPPED"])
    def test_reopen_restarts_activated_at(self, src):
        started = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
        step = _step(src)
        step.activated_at = started
        apply_transition(step, "ACTIVE")
        assert step.activated_at > started

    def test_pending_to_completed_message(self):
        """A PENDING step cannot be completed directly."""
        step = _step("PENDING")
        with pytest.raises(InvalidTransitionError, match="invalid transition: PENDING→COMPLETED"):
            apply_transition(step, "COMPLETED")
        assert step.state == "PENDING"


class TestPaths:
    def test_path_to_same_state_is_empty(self):
        assert path_to("ACTIVE", "ACTIVE") == []

    def test_active_to_completed(self):
        assert path_to("ACTIVE", "COMPLETED") == ["IN_PROGRESS", "COMPLETED"]

    def test_pending_to_completed(self):
        assert path_to("PENDING", "COMPLETED") == ["ACTIVE", "IN_PROGRESS", "COMPLETED"]

    def test_blocked_to_completed(self):
        assert path_to("BLOCKED", "COMPLETED") == ["IN_PROGRESS", "COMPLETED"]

    def test_nothing_reaches_pending(self):
        with pytest.raises(InvalidTransitionError):
            path_to("COMPLETED", "PENDING")

    def test_walk_to_assigns_actor_before_in_progress(self):
        step = _step("ACTIVE", assignee=None)
        visited = walk_to(step, "COMPLETED", assignee_id="U7")
        assert visited == ["IN_PROGRESS", "COMPLETED"]
        assert step.state == "COMPLETED"
        assert step.assigned_to_id == "U7"

    def test_walk_to_keeps_existing_assignee(self):
        step = _step("ACTIVE", assignee="U1")
        walk_to(step, "COMPLETED", assignee_id="U7")
        assert step.assigned_to_id == "U1"

    def test_walk_to_without_any_assignee_fails(self):
        step = _step("ACTIVE", assignee=None)
        with pytest.raises(AssigneeRequiredError):
            walk_to(step, "COMPLETED")
