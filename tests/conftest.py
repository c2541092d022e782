"""
Pytest fixtures for the cashflow kernel test suite.

Provides:
- An in-memory SQLite database per test (StaticPool, so query worker
  threads see the same data as the test)
- Factories for periods, facilities, projects, events and execution rows
- Logging capture and a deterministic clock
"""

import json
import logging
from collections.abc import Generator
from datetime import date
from io import StringIO
from typing import Any

import pytest
from sqlalchemy.orm import Session

from cashflow_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from cashflow_kernel.domain.clock import DeterministicClock
from cashflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from cashflow_kernel.models import (
    AccountingEvent,
    EventMapping,
    ExecutionEntry,
    Facility,
    PeriodType,
    Project,
    ReportingPeriod,
)

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture cashflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, carryforward_service):
            carryforward_service.get_beginning_cash(options)
            logs = captured_logs()
            assert any(r["message"] == "carried_forward" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("cashflow_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory database with all tables."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """Session for arranging test data.  Factories commit immediately."""
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def deterministic_clock():
    """Deterministic clock: 2024-01-01 12:00 UTC, i.e. fiscal quarter 3."""
    return DeterministicClock()


# =============================================================================
# Factories
# =============================================================================


def _save(session: Session, obj):
    session.add(obj)
    session.commit()
    return obj


@pytest.fixture
def create_period(session):
    """Create a reporting period; quarterly by default."""

    def _create(
        start_date: date,
        end_date: date,
        period_type: PeriodType = PeriodType.QUARTERLY,
        year: int | None = None,
    ) -> ReportingPeriod:
        return _save(
            session,
            ReportingPeriod(
                year=year if year is not None else start_date.year,
                period_type=PeriodType(period_type).value,
                start_date=start_date,
                end_date=end_date,
            ),
        )

    return _create


@pytest.fixture
def create_facility(session):
    def _create(name: str = "District Hospital") -> Facility:
        return _save(session, Facility(name=name))

    return _create


@pytest.fixture
def create_project(session):
    def _create(project_type: str = "HIV", name: str | None = None) -> Project:
        return _save(
            session,
            Project(name=name or f"{project_type} Programme", project_type=project_type),
        )

    return _create


@pytest.fixture
def activity_for_event(session):
    """
    Return the activity id mapped to an event code, creating the event and
    the mapping on first use.
    """
    activities: dict[str, int] = {}

    def _activity(event_code: str) -> int:
        if event_code not in activities:
            event = _save(session, AccountingEvent(code=event_code))
            activity_id = 100 + len(activities)
            _save(session, EventMapping(event_id=event.id, activity_id=activity_id))
            activities[event_code] = activity_id
        return activities[event_code]

    return _activity


def cash_activities(
    bank: Any = 0,
    petty: Any = 0,
    other: Any = 0,
    prefix: str = "HIV_EXEC_HOSPITAL",
) -> dict[str, dict]:
    """Activities map holding the three section D cash slots."""
    return {
        f"{prefix}_D_1": {"section": "D", "cumulative_balance": bank},
        f"{prefix}_D_2": {"section": "D", "cumulative_balance": petty},
        f"{prefix}_D_3": {"section": "D", "cumulative_balance": other},
    }


@pytest.fixture
def create_execution_record(session):
    """Create the form-level execution record of a (period, facility, project)."""

    def _create(
        period: ReportingPeriod,
        facility: Facility,
        project: Project,
        activities: dict | None = None,
        vat_receivables: dict | None = None,
        form_data: Any = None,
    ) -> ExecutionEntry:
        if form_data is None:
            form_data = {"activities": activities or {}}
            if vat_receivables is not None:
                form_data["vatReceivables"] = vat_receivables
        return _save(
            session,
            ExecutionEntry(
                entity_id=None,
                reporting_period_id=period.id,
                facility_id=facility.id,
                project_id=project.id,
                form_data=form_data,
            ),
        )

    return _create


@pytest.fixture
def create_activity_entry(session, activity_for_event):
    """Create an activity-level row whose amount feeds ``event_code``."""

    def _create(
        period: ReportingPeriod,
        facility: Facility,
        project: Project,
        event_code: str,
        amount: Any,
        metadata: dict | None = None,
        extra_form_data: dict | None = None,
        entity_type: str = "execution",
    ) -> ExecutionEntry:
        form_data = {"amount": amount}
        form_data.update(extra_form_data or {})
        return _save(
            session,
            ExecutionEntry(
                entity_type=entity_type,
                entity_id=activity_for_event(event_code),
                reporting_period_id=period.id,
                facility_id=facility.id,
                project_id=project.id,
                form_data=form_data,
                entry_metadata=metadata,
            ),
        )

    return _create


@pytest.fixture
def quarters(create_period):
    """Fiscal quarters Q1-Q3 of FY2024 (Jul 2024 - Mar 2025)."""
    return [
        create_period(date(2024, 7, 1), date(2024, 9, 30)),
        create_period(date(2024, 10, 1), date(2024, 12, 31)),
        create_period(date(2025, 1, 1), date(2025, 3, 31)),
    ]
