"""
Workflow Progression Blueprint.

Thin JSON layer over app.services.workflow_engine; no business logic lives
here. Service exceptions are mapped onto HTTP codes by the handlers below.

Endpoints:
  Lifecycle:   POST /workflows/projects/<pid>                    initialize
               GET  /workflows/projects/<pid>                    status
               POST /workflows/projects/<pid>/advance-phase
               GET  /workflows/projects/<pid>/phase-readiness
               POST /workflows/projects/<pid>/archive
  Steps:       GET  /workflows/projects/<pid>/steps/<sid>
               POST /workflows/projects/<pid>/steps/<sid>/complete
               POST /workflows/projects/<pid>/steps/<sid>/transition
               PUT  /workflows/projects/<pid>/steps/<sid>/assign
  Alerts:      GET  /workflows/projects/<pid>/alerts
               GET  /workflows/alerts/overdue
               PATCH /workflows/alerts/<aid>/read
  Batch:       POST /workflows/statuses
  Analytics:   GET  /workflows/search?q=
               GET  /workflows/metrics
"""

import logging

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PhasePreconditionError,
    TemplateResolutionError,
    ValidationError,
)
from app.services import alert_service, workflow_engine, workflow_metrics
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/workflows")


# ── Error mapping ────────────────────────────────────────────────────────────


@workflow_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@workflow_bp.errorhandler(InvalidTransitionError)
def _handle_invalid_transition(error: InvalidTransitionError):
    return api_error(E.INVALID_TRANSITION, str(error), details=error.details)


@workflow_bp.errorhandler(InvalidStateError)
def _handle_invalid_state(error: InvalidStateError):
    return api_error(E.INVALID_STATE, str(error), details=error.details)


@workflow_bp.errorhandler(TemplateResolutionError)
def _handle_template(error: TemplateResolutionError):
    return api_error(E.TEMPLATE_UNRESOLVED, str(error), details=error.details)


@workflow_bp.errorhandler(PhasePreconditionError)
def _handle_precondition(error: PhasePreconditionError):
    return api_error(E.PHASE_PRECONDITION, str(error), details=error.details)


@workflow_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.INVALID_STATE, str(error), details=error.details)


@workflow_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    if error.retryable:
        return api_error(E.CONFLICT_CONCURRENT, str(error), details={"retryable": True})
    return api_error(E.CONFLICT_DUPLICATE, str(error))


@workflow_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unexpected error in workflow_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _required(data: dict, *fields):
    missing = [f for f in fields if not data.get(f)]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} required")
    return None


# ═════════════════════════════════════════════════════════════════════════════
# Lifecycle
# ═════════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/projects/<project_id>", methods=["POST"])
def initialize_workflow(project_id):
    """Materialize the first phase for a project."""
    data = _body()
    result = workflow_engine.initialize(project_id, data.get("workflow_type") or "ROOFING")
    return jsonify(result.to_dict()), 201


@workflow_bp.route("/projects/<project_id>", methods=["GET"])
def get_workflow_status(project_id):
    history_limit = request.args.get("history_limit", type=int)
    return jsonify(workflow_engine.get_status(project_id, history_limit=history_limit))


@workflow_bp.route("/projects/<project_id>/advance-phase", methods=["POST"])
def advance_phase(project_id):
    """Close the current phase and open the next (or finish the workflow)."""
    data = _body()
    err = _required(data, "actor_id")
    if err:
        return err
    result = workflow_engine.advance_phase(project_id, data["actor_id"], data.get("reason"))
    return jsonify(result.to_dict())


@workflow_bp.route("/projects/<project_id>/phase-readiness", methods=["GET"])
def phase_readiness(project_id):
    """Whether advance-phase would succeed, and which step blocks it."""
    return jsonify(workflow_engine.can_advance_phase(project_id))


@workflow_bp.route("/projects/<project_id>/archive", methods=["POST"])
def archive_workflow(project_id):
    data = _body()
    return jsonify(workflow_engine.archive_workflow(project_id, data.get("actor_id")))


# ═════════════════════════════════════════════════════════════════════════════
# Steps
# ═════════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/projects/<project_id>/steps/<step_id>", methods=["GET"])
def get_step(project_id, step_id):
    return jsonify(workflow_engine.get_step(project_id, step_id))


@workflow_bp.route("/projects/<project_id>/steps/<step_id>/complete", methods=["POST"])
def complete_step(project_id, step_id):
    """
    Complete a step and advance the tracker.

    Body: {"actor_id": "...", "notes": "...", "expected_version": 3}
    """
    data = _body()
    err = _required(data, "actor_id")
    if err:
        return err
    expected_version = data.get("expected_version")
    if expected_version is not None and not isinstance(expected_version, int):
        return api_error(E.VALIDATION_INVALID, "expected_version must be an integer")
    result = workflow_engine.complete_and_advance(
        project_id, step_id, data["actor_id"], data.get("notes"),
        expected_version=expected_version,
    )
    return jsonify(result.to_dict())


@workflow_bp.route("/projects/<project_id>/steps/<step_id>/transition", methods=["POST"])
def transition_step(project_id, step_id):
    """Body: {"state": "BLOCKED", "actor_id": "...", "notes": "..."}"""
    data = _body()
    err = _required(data, "state")
    if err:
        return err
    result = workflow_engine.transition_step(
        project_id, step_id, str(data["state"]).upper(), data.get("actor_id"),
        notes=data.get("notes"),
    )
    return jsonify(result)


@workflow_bp.route("/projects/<project_id>/steps/<step_id>/assign", methods=["PUT"])
def assign_step(project_id, step_id):
    """Body: {"assignee_id": "...", "actor_id": "..."}"""
    data = _body()
    err = _required(data, "assignee_id")
    if err:
        return err
    return jsonify(workflow_engine.assign_step(
        project_id, step_id, data["assignee_id"], data.get("actor_id"),
    ))


# ═════════════════════════════════════════════════════════════════════════════
# Alerts & batch status
# ═════════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/projects/<project_id>/alerts", methods=["GET"])
def list_alerts(project_id):
    alerts = alert_service.list_active_alerts(project_id)
    return jsonify({"items": [a.to_dict() for a in alerts], "total": len(alerts)})


@workflow_bp.route("/alerts/overdue", methods=["GET"])
def list_overdue_alerts():
    alerts = alert_service.list_overdue_alerts()
    return jsonify({"items": [a.to_dict() for a in alerts], "total": len(alerts)})


@workflow_bp.route("/alerts/<alert_id>/read", methods=["PATCH"])
def acknowledge_alert(alert_id):
    """Body (optional): {"actor_id": "..."}"""
    alert = alert_service.acknowledge_alert(alert_id, _body().get("actor_id"))
    return jsonify(alert.to_dict())


@workflow_bp.route("/statuses", methods=["POST"])
def batch_statuses():
    """Body: {"project_ids": ["P1", "P2"]}"""
    data = _body()
    project_ids = data.get("project_ids")
    if not isinstance(project_ids, list) or not project_ids:
        return api_error(E.VALIDATION_REQUIRED, "project_ids must be a non-empty list")
    items = workflow_engine.get_multiple_statuses([str(p) for p in project_ids])
    return jsonify({"items": items, "total": len(items)})


# ═════════════════════════════════════════════════════════════════════════════
# Search & metrics
# ═════════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/search", methods=["GET"])
def search_line_items():
    term = request.args.get("q", "")
    if not term.strip():
        return api_error(E.VALIDATION_REQUIRED, "q is required")
    items = workflow_metrics.search_line_items(
        term,
        workflow_type=request.args.get("workflow_type"),
        limit=request.args.get("limit", 20, type=int),
    )
    return jsonify({"items": items, "total": len(items)})


@workflow_bp.route("/metrics", methods=["GET"])
def performance_metrics():
    items = workflow_metrics.performance_metrics(request.args.get("phase_type"))
    return jsonify({"items": items})
