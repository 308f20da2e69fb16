"""
Shared pytest fixtures for the Roofing Workflow Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - phase_factory: ``make_phase`` for tests that build their own template
    - roofing_template: one LEAD phase, two sections with 3 and 2 line items
    - two_phase_template: LEAD as above followed by a PROSPECT phase (2 items)
"""

import string

import pytest

from app import create_app
from app.models import db as _db
from app.models.workflow_template import WorkflowLineItem, WorkflowPhase, WorkflowSection


LEAD_SECTIONS = [
    [
        "Input customer information",
        "Make sure the name is spelled correctly",
        "Call the customer to schedule an inspection",
    ],
    [
        "Complete the roof inspection",
        "Upload inspection photos",
    ],
]

PROSPECT_SECTIONS = [
    [
        "Prepare the estimate",
        "Send the estimate to the customer",
    ],
]


def make_phase(
    display_order: int,
    phase_type: str,
    sections: list[list[str]],
    *,
    workflow_type: str = "ROOFING",
    name: str | None = None,
    is_active: bool = True,
    is_current: bool = True,
    alert_days: int = 1,
) -> WorkflowPhase:
    """Create a template phase with numbered sections and lettered line items."""
    phase = WorkflowPhase(
        workflow_type=workflow_type,
        phase_type=phase_type,
        name=name or phase_type.title(),
        display_order=display_order,
        is_active=is_active,
        is_current=is_current,
    )
    _db.session.add(phase)
    _db.session.flush()
    for s_idx, item_names in enumerate(sections, start=1):
        section = WorkflowSection(
            phase_id=phase.id,
            section_number=str(s_idx),
            name=f"{phase.name} section {s_idx}",
            display_order=s_idx,
        )
        _db.session.add(section)
        _db.session.flush()
        for i_idx, item_name in enumerate(item_names):
            _db.session.add(WorkflowLineItem(
                section_id=section.id,
                item_letter=string.ascii_lowercase[i_idx],
                name=item_name,
                description=f"{item_name} ({phase_type.lower()})",
                responsible_role="office" if s_idx == 1 else "field",
                alert_days=alert_days,
                display_order=i_idx + 1,
            ))
    _db.session.flush()
    return phase


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Template fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def phase_factory():
    """Expose ``make_phase`` to tests that need a custom template."""
    return make_phase


@pytest.fixture()
def roofing_template():
    """Single LEAD phase: section 1 (3 items), section 2 (2 items)."""
    phase = make_phase(1, "LEAD", LEAD_SECTIONS)
    _db.session.commit()
    return phase


@pytest.fixture()
def two_phase_template():
    """LEAD (3 + 2 items) followed by PROSPECT (2 items)."""
    lead = make_phase(1, "LEAD", LEAD_SECTIONS)
    prospect = make_phase(2, "PROSPECT", PROSPECT_SECTIONS)
    _db.session.commit()
    return lead, prospect
