"""
Rate limit wiring: the workflow write limit applies to mutating methods only.
"""

from unittest.mock import MagicMock

from flask import Blueprint, Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from app.middleware.rate_limiter import WRITE_METHODS, init_rate_limits


def _make_app(limit: str = "2 per minute") -> Flask:
    app = Flask(__name__)
    app.config["WORKFLOW_WRITE_RATE_LIMIT"] = limit

    workflow = Blueprint("workflow", __name__, url_prefix="/api/v1/workflows")

    @workflow.route("/projects/<project_id>", methods=["GET"])
    def status(project_id):
        return {"project_id": project_id}

    @workflow.route("/projects/<project_id>", methods=["POST"])
    def initialize(project_id):
        return {"project_id": project_id}, 201

    health = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

    @health.route("/ready")
    def ready():
        return {"status": "ok"}

    app.register_blueprint(workflow)
    app.register_blueprint(health)
    return app


class TestInitRateLimits:
    def test_write_limit_scoped_to_mutating_methods(self):
        app = _make_app("60 per minute")
        limiter = MagicMock()

        init_rate_limits(app, limiter)

        limiter.limit.assert_called_once_with("60 per minute", methods=WRITE_METHODS)
        limiter.limit.return_value.assert_called_once_with(app.blueprints["workflow"])
        limiter.exempt.assert_called_once_with(app.blueprints["health_bp"])

    def test_skipped_when_testing(self):
        app = _make_app()
        app.config["TESTING"] = True
        limiter = MagicMock()
        init_rate_limits(app, limiter)
        limiter.limit.assert_not_called()

    def test_reads_are_not_throttled(self):
        app = _make_app("2 per minute")
        limiter = Limiter(get_remote_address, app=app, storage_uri="memory://")
        init_rate_limits(app, limiter)
        client = app.test_client()

        for _ in range(5):
            assert client.get("/api/v1/workflows/projects/P1").status_code == 200

        codes = [client.post("/api/v1/workflows/projects/P1").status_code for _ in range(3)]
        assert codes == [201, 201, 429]
