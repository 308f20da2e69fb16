"""
Search & performance metrics tests.
"""

from app.models import db
from app.services import workflow_engine, workflow_metrics
from app.services.workflow_metrics import search_line_items


def _init_and_complete(project_id: str, count: int):
    workflow_engine.initialize(project_id)
    status = workflow_engine.get_status(project_id)
    for _ in range(count):
        step_id = status["current_step"]["id"]
        workflow_engine.complete_and_advance(project_id, step_id, "U1")
        status = workflow_engine.get_status(project_id)


class TestSearchLineItems:
    def test_case_insensitive_name_match(self, roofing_template):
        results = search_line_items("INSPECTION")
        names = [r["name"] for r in results]
        assert "Complete the roof inspection" in names
        assert "Upload inspection photos" in names

    def test_results_carry_hierarchy_names(self, roofing_template):
        result = search_line_items("photos")[0]
        assert result["phase_name"] == "Lead"
        assert result["phase_type"] == "LEAD"
        assert result["section_name"] == "Lead section 2"
        assert result["section_number"] == "2"

    def test_name_hits_rank_first(self, phase_factory):
        phase = phase_factory(1, "LEAD", [["Order materials", "Confirm delivery"]])
        # second item mentions gutters only in its description
        items = phase.sections.first().line_items.all()
        items[0].description = "Shingles and gutters"
        items[1].name = "Gutter guard install"
        items[1].description = "Install gutter guards"
        db.session.commit()

        results = search_line_items("gutter")
        assert [r["name"] for r in results] == ["Gutter guard install", "Order materials"]

    def test_workflow_type_filter(self, roofing_template, phase_factory):
        phase_factory(1, "LEAD", [["Inspect gutters"]], workflow_type="GUTTERS")
        db.session.commit()
        assert [r["phase_type"] for r in search_line_items("inspect", workflow_type="GUTTERS")] == ["LEAD"]
        assert len(search_line_items("inspect", workflow_type="ROOFING")) == 3
        assert len(search_line_items("inspect")) == 4

    def test_inactive_items_hidden(self, phase_factory):
        phase_factory(1, "LEAD", [["Retired inspection step"]], is_active=False)
        db.session.commit()
        assert search_line_items("retired") == []

    def test_blank_term(self, roofing_template):
        assert search_line_items("   ") == []

    def test_limit(self, roofing_template):
        assert len(search_line_items("e", limit=2)) == 2


class TestPerformanceMetrics:
    def test_counts_by_phase_type(self, roofing_template):
        _init_and_complete("P1", 2)
        _init_and_complete("P2", 1)

        metrics = workflow_metrics.performance_metrics()

        assert len(metrics) == 1
        lead = metrics[0]
        assert lead["phase_type"] == "LEAD"
        assert lead["completed_count"] == 3
        assert lead["open_step_count"] == 7
        assert lead["avg_duration_minutes"] is not None
        assert lead["avg_duration_minutes"] >= 0

    def test_phase_type_filter(self, two_phase_template):
        _init_and_complete("P1", 5)
        workflow_engine.advance_phase("P1", "U1")

        prospect = workflow_metrics.performance_metrics("PROSPECT")
        assert prospect == [{
            "phase_type": "PROSPECT",
            "completed_count": 0,
            "avg_duration_minutes": None,
            "open_step_count": 2,
        }]

    def test_empty(self):
        assert workflow_metrics.performance_metrics() == []
