"""
Alert emitter tests - idempotence, closing, overdue listing and the
one-ACTIVE-alert-per-step constraint.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.workflow_alert import WorkflowAlert
from app.models.workflow_instance import ProjectWorkflow, WorkflowStep
from app.services import alert_service, workflow_engine


def _first_step(project_id: str) -> WorkflowStep:
    return db.session.execute(
        select(WorkflowStep)
        .join(ProjectWorkflow, WorkflowStep.workflow_id == ProjectWorkflow.id)
        .where(ProjectWorkflow.project_id == project_id)
        .order_by(WorkflowStep.step_order)
        .limit(1)
    ).scalar_one()


def _alert_count(project_id: str, status: str = "ACTIVE") -> int:
    return db.session.execute(
        select(func.count(WorkflowAlert.id)).where(
            WorkflowAlert.project_id == project_id, WorkflowAlert.status == status,
        )
    ).scalar()


class TestEnsureAlert:
    def test_idempotent(self, roofing_template):
        workflow_engine.initialize("P1")
        step = _first_step("P1")

        first = alert_service.ensure_alert(step, "P1")
        second = alert_service.ensure_alert(step, "P1")
        db.session.commit()

        assert first.id == second.id
        assert _alert_count("P1") == 1

    def test_alert_fields(self, roofing_template):
        workflow_engine.initialize("P1")
        step = _first_step("P1")
        alert = alert_service.find_active_alert("P1", step.id)

        assert alert.alert_type == "WORKFLOW_LINE_ITEM"
        assert alert.priority == "MEDIUM"
        assert alert.step_name == step.name
        assert alert.phase_id == step.template_phase_id
        assert alert.section_id == step.template_section_id
        assert alert.workflow_id == step.workflow_id

    def test_due_date_uses_alert_days(self, phase_factory):
        phase_factory(1, "LEAD", [["Long running item"]], alert_days=3)
        db.session.commit()
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        workflow_engine.initialize("P1")

        alert = alert_service.list_active_alerts("P1")[0]
        due = alert.due_date.replace(tzinfo=None)
        assert timedelta(days=3) - timedelta(minutes=1) <= due - before <= timedelta(days=3, minutes=1)

    def test_second_active_alert_rejected_by_index(self, roofing_template):
        workflow_engine.initialize("P1")
        step = _first_step("P1")
        db.session.add(WorkflowAlert(
            project_id="P1", workflow_id=step.workflow_id, step_id=step.id,
            title="dup", status="ACTIVE",
        ))
        with pytest.raises(IntegrityError):
            db.session.flush()
        db.session.rollback()

    def test_closed_alert_does_not_block_new_one(self, roofing_template):
        workflow_engine.initialize("P1")
        step = _first_step("P1")
        assert alert_service.close_alerts_for_step("P1", step.id) == 1
        alert_service.ensure_alert(step, "P1")
        db.session.commit()
        assert _alert_count("P1", "ACTIVE") == 1
        assert _alert_count("P1", "COMPLETED") == 1


class TestCloseAndList:
    def test_close_sets_acknowledged(self, roofing_template):
        workflow_engine.initialize("P1")
        step = _first_step("P1")
        alert_service.close_alerts_for_step("P1", step.id)
        db.session.commit()
        alert = db.session.execute(select(WorkflowAlert)).scalar_one()
        assert alert.status == "COMPLETED"
        assert alert.acknowledged_at is not None

    def test_close_without_alert_is_noop(self, roofing_template):
        workflow_engine.initialize("P1")
        assert alert_service.close_alerts_for_step("P1", "missing-step") == 0

    def test_count_and_list(self, roofing_template):
        workflow_engine.initialize("P1")
        workflow_engine.initialize("P2")
        assert alert_service.count_active_alerts("P1") == 1
        assert [a.project_id for a in alert_service.list_active_alerts("P2")] == ["P2"]

    def test_dismiss_project_alerts(self, roofing_template):
        workflow_engine.initialize("P1")
        workflow_engine.initialize("P2")
        assert alert_service.dismiss_project_alerts("P1") == 1
        db.session.commit()
        assert _alert_count("P1", "DISMISSED") == 1
        assert alert_service.count_active_alerts("P2") == 1

    def test_overdue(self, roofing_template):
        workflow_engine.initialize("P1")
        assert alert_service.list_overdue_alerts() == []

        later = datetime.now(timezone.utc) + timedelta(days=2)
        overdue = alert_service.list_overdue_alerts(now=later)
        assert [a.project_id for a in overdue] == ["P1"]
        assert overdue[0].is_overdue(now=later)
        assert not overdue[0].is_overdue()


class TestAcknowledge:
    def test_stamps_acknowledged_at_once(self, roofing_template):
        workflow_engine.initialize("P1")
        alert = alert_service.list_active_alerts("P1")[0]
        assert alert.acknowledged_at is None

        first = alert_service.acknowledge_alert(alert.id, "U1").acknowledged_at
        again = alert_service.acknowledge_alert(alert.id, "U2").acknowledged_at

        assert first is not None
        assert again == first
        assert alert_service.find_active_alert("P1", alert.step_id).status == "ACTIVE"

    def test_acknowledged_alert_still_closes_on_completion(self, roofing_template):
        workflow_engine.initialize("P1")
        step = _first_step("P1")
        alert = alert_service.find_active_alert("P1", step.id)
        alert_service.acknowledge_alert(alert.id)

        workflow_engine.complete_and_advance("P1", step.id, "U1")

        assert db.session.get(WorkflowAlert, alert.id).status == "COMPLETED"
        assert _alert_count("P1") == 1

    def test_unknown_alert(self, roofing_template):
        with pytest.raises(NotFoundError):
            alert_service.acknowledge_alert("missing")
