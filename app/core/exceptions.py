"""
Platform-wide exception hierarchy.

Services raise these types; the blueprint registers handlers against them
once and gets consistent HTTP status codes everywhere. The engine never
swallows one of these: it rolls the transaction back and re-raises.

Usage:
    from app.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="WorkflowStep", resource_id=step_id)
    raise InvalidTransitionError("PENDING", "COMPLETED")

Taxonomy:
    NotFoundError               → 404  project / step / workflow missing
    ValidationError             → 422  business-rule violation (base)
      InvalidStateError               step state does not allow the operation
        StepAlreadyCompletedError
        InvalidTransitionError
        AssigneeRequiredError
      TemplateResolutionError         no active+current template rows
      PhasePreconditionError          open steps remain in the current phase
    ConflictError               → 409  duplicate / concurrent mutation
      WorkflowConflictError           retryable: re-read state and reissue
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Args:
        resource: Human-readable model/entity name (e.g. "WorkflowStep").
        resource_id: The key that was looked up. Included in the message.
        project_id: Optional - the project scope that was enforced.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        project_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.project_id = project_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if project_id is not None:
            msg += f" (project={project_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    The data was well-formed but violated a rule (invalid state transition,
    missing template, open steps). Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown for API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    retryable = False

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


# ── Workflow engine errors ───────────────────────────────────────────────────


class InvalidStateError(ValidationError):
    """The step's current state does not permit the requested operation."""


class StepAlreadyCompletedError(InvalidStateError):
    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(
            f"Step {step_id} is already completed",
            details={"step_id": step_id, "reason": "already completed"},
        )


class InvalidTransitionError(InvalidStateError):
    """Transition not listed in the step legality table.

    The message always names the pair, using the step's actual state:
    ``invalid transition: PENDING→COMPLETED``.
    """

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"invalid transition: {from_state}→{to_state}",
            details={"from": from_state, "to": to_state},
        )


class AssigneeRequiredError(InvalidStateError):
    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(
            f"Step {step_id} cannot move to IN_PROGRESS without an assignee",
            details={"step_id": step_id, "to": "IN_PROGRESS"},
        )


class TemplateResolutionError(ValidationError):
    """No active+current phase, section or line item could be resolved."""

    def __init__(self, message: str = "no active template", **details) -> None:
        super().__init__(message, details=details)


class PhasePreconditionError(ValidationError):
    """advance_phase called while the current phase still has open steps."""

    def __init__(self, open_steps: list[str]) -> None:
        self.open_steps = open_steps
        super().__init__(
            f"{len(open_steps)} step(s) still open in the current phase: {', '.join(open_steps)}",
            details={"open_steps": open_steps},
        )


class WorkflowConflictError(ConflictError):
    """Concurrent mutation detected on a project's tracker.

    Callers are expected to re-read the current status and reissue.
    """

    retryable = True

    def __init__(self, project_id: str, reason: str) -> None:
        self.project_id = project_id
        self.reason = reason
        Exception.__init__(self, f"Workflow conflict for project {project_id}: {reason}")
        self.resource = "ProjectWorkflowTracker"
        self.field = "project_id"
        self.value = project_id
