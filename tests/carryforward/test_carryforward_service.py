"""
Integration tests for beginning cash via CarryforwardService.

Data lives in an in-memory SQLite database; the deterministic clock puts
"now" in fiscal quarter 3, so VAT receivables are read from the q3 slot.
"""

from __future__ import annotations

import time
from decimal import Decimal

import pytest

from cashflow_kernel.selectors.period_selector import PeriodSelector
from cashflow_kernel.services.manual_override_reader import (
    OPENING_CASH_EVENT_CODE,
    ManualOverrideReader,
)
from cashflow_modules.carryforward import (
    CarryforwardConfig,
    CarryforwardOptions,
    CarryforwardService,
    CarryforwardSource,
)
from cashflow_modules.carryforward.validator import ZERO_ENDING_CASH_WARNING
from tests.conftest import cash_activities


@pytest.fixture
def service(session_factory, deterministic_clock):
    with CarryforwardService(session_factory, clock=deterministic_clock) as svc:
        yield svc


@pytest.fixture
def hiv(create_project):
    return create_project("HIV")


@pytest.fixture
def facility(create_facility):
    return create_facility("Kigali Hospital")


@pytest.fixture
def previous(quarters):
    return quarters[1]


@pytest.fixture
def current(quarters):
    return quarters[2]


@pytest.fixture
def record_ending_cash(create_execution_record, hiv):
    """Store a previous-period execution record with the given cash slots."""

    def _record(period, facility, bank=0, petty=0, other=0, vat=None):
        return create_execution_record(
            period, facility, hiv, cash_activities(bank, petty, other), vat_receivables=vat
        )

    return _record


@pytest.fixture
def manual_entry(create_activity_entry, hiv):
    def _entry(period, facility, amount, reason=None):
        metadata = {"overrideReason": reason} if reason else None
        return create_activity_entry(
            period, facility, hiv, OPENING_CASH_EVENT_CODE, amount, metadata=metadata
        )

    return _entry


def _options(period, facility=None, facility_ids=()):
    return CarryforwardOptions(
        period_id=period.id,
        project_type="HIV",
        statement_code="CASH_FLOW",
        facility_id=facility.id if facility is not None else None,
        facility_ids=facility_ids,
    )


class TestSingleFacilityCarryforward:

    def test_previous_ending_cash_carried_forward(
        self, service, facility, previous, current, record_ending_cash
    ):
        record_ending_cash(previous, facility, bank=4000, petty=500, other=500)

        result = service.get_beginning_cash(_options(current, facility))

        assert result.success is True
        assert result.source == CarryforwardSource.CARRYFORWARD
        assert result.beginning_cash == Decimal("5000")
        assert result.metadata.previous_period_id == previous.id
        assert result.metadata.previous_period_ending_cash == Decimal("5000")
        assert result.warnings == ()

    def test_vat_receivables_included(self, service, facility, previous, current, record_ending_cash):
        record_ending_cash(
            previous, facility, bank=1000,
            vat={"communication_all": {"q3": 400, "q3_cleared": 100}},
        )
        result = service.get_beginning_cash(_options(current, facility))
        assert result.beginning_cash == Decimal("1300")

    def test_manual_override_beyond_tolerance(
        self, service, facility, previous, current, record_ending_cash, manual_entry
    ):
        record_ending_cash(previous, facility, bank=4000, petty=500, other=500)
        manual_entry(current, facility, 5200, reason="bank reconciliation")

        result = service.get_beginning_cash(_options(current, facility))

        assert result.success is True
        assert result.source == CarryforwardSource.MANUAL_ENTRY
        assert result.beginning_cash == Decimal("5200")
        assert result.metadata.discrepancy == Decimal("200")
        assert result.metadata.previous_period_ending_cash == Decimal("5000")
        assert result.metadata.manual_entry_amount == Decimal("5200")
        assert result.metadata.override_reason == "bank reconciliation"
        warning = result.warnings[0]
        assert "5000" in warning
        assert "5200" in warning
        assert "bank reconciliation" in warning

    def test_manual_entry_within_tolerance(
        self, service, facility, previous, current, record_ending_cash, manual_entry
    ):
        record_ending_cash(previous, facility, bank=5000)
        manual_entry(current, facility, "5000.005")

        result = service.get_beginning_cash(_options(current, facility))

        assert result.source == CarryforwardSource.MANUAL_ENTRY
        assert result.beginning_cash == Decimal("5000.005")
        assert result.metadata.discrepancy == 0
        assert result.warnings == ()

    def test_zero_carryforward_without_manual_falls_back(self, service, facility, previous, current):
        result = service.get_beginning_cash(_options(current, facility))

        assert result.success is False
        assert result.source == CarryforwardSource.FALLBACK
        assert result.beginning_cash == 0
        assert result.warnings == (
            "Carryforward failed: No previous period ending cash found from execution data. "
            "No manual entry available, defaulting to zero.",
        )

    def test_zero_carryforward_with_manual_reports_both_values(
        self, service, facility, previous, current, manual_entry
    ):
        manual_entry(current, facility, 800)

        result = service.get_beginning_cash(_options(current, facility))

        assert result.source == CarryforwardSource.MANUAL_ENTRY
        assert result.beginning_cash == Decimal("800")
        assert result.metadata.discrepancy == Decimal("800")
        assert "0.00" in result.warnings[0] and "800.00" in result.warnings[0]

    def test_single_entry_facility_ids_treated_as_single(
        self, service, facility, previous, current, record_ending_cash
    ):
        record_ending_cash(previous, facility, bank=750)
        result = service.get_beginning_cash(
            CarryforwardOptions(
                period_id=current.id,
                project_type="HIV",
                statement_code="CASH_FLOW",
                facility_ids=[facility.id],
            )
        )
        assert result.source == CarryforwardSource.CARRYFORWARD
        assert result.beginning_cash == Decimal("750")

    def test_large_balance_flagged(self, service, facility, previous, current, record_ending_cash):
        record_ending_cash(previous, facility, bank=1500000)
        result = service.get_beginning_cash(_options(current, facility))
        assert result.source == CarryforwardSource.CARRYFORWARD
        assert result.warnings == (
            "Large beginning cash balance detected (1500000.00). Please verify this is correct.",
        )


class TestNoPreviousPeriod:

    def test_without_manual_entry_fails(self, service, facility, quarters):
        result = service.get_beginning_cash(_options(quarters[0], facility))

        assert result.success is False
        assert result.source == CarryforwardSource.FALLBACK
        assert result.beginning_cash == 0
        assert result.metadata.error == "No previous period found"
        assert result.warnings == ("No previous period found and no manual entry available.",)

    def test_with_manual_entry_uses_it(self, service, facility, quarters, manual_entry):
        manual_entry(quarters[0], facility, 1200, reason="opening audit")

        result = service.get_beginning_cash(_options(quarters[0], facility))

        assert result.success is True
        assert result.source == CarryforwardSource.MANUAL_ENTRY
        assert result.beginning_cash == Decimal("1200")
        assert result.metadata.override_reason == "opening audit"
        assert result.warnings == ("No previous period found. Using manual entry.",)


class TestAggregatedCarryforward:

    @pytest.fixture
    def facilities(self, create_facility):
        return [create_facility(name) for name in ("Alpha", "Beta", "Gamma")]

    def test_sum_and_breakdown_in_input_order(
        self, service, facilities, previous, current, record_ending_cash
    ):
        alpha, beta, gamma = facilities
        record_ending_cash(previous, alpha, bank=1000)
        record_ending_cash(previous, beta, bank=2000, petty=250)
        ids = [gamma.id, alpha.id, beta.id]

        result = service.get_beginning_cash(_options(current, facility_ids=ids))

        assert result.source == CarryforwardSource.CARRYFORWARD_AGGREGATED
        assert result.beginning_cash == Decimal("3250")
        breakdown = result.metadata.facility_breakdown
        assert [entry.facility_id for entry in breakdown] == ids
        assert [entry.facility_name for entry in breakdown] == ["Gamma", "Alpha", "Beta"]
        assert [entry.ending_cash for entry in breakdown] == [0, Decimal("1000"), Decimal("2250")]
        assert sum(entry.ending_cash for entry in breakdown) == result.beginning_cash
        assert result.metadata.facilities_with_missing_data == (gamma.id,)
        assert result.warnings == (
            f"Missing previous period statements for 1 out of 3 facilities: Gamma (ID: {gamma.id})",
        )

    def test_unknown_facility_named_by_id(self, service, facilities, previous, current, record_ending_cash):
        record_ending_cash(previous, facilities[0], bank=10)
        result = service.get_beginning_cash(_options(current, facility_ids=[facilities[0].id, 4242]))
        assert result.metadata.facility_breakdown[1].facility_name == "Facility 4242"
        assert "Facility 4242 (ID: 4242)" in result.warnings[0]

    def test_all_facilities_missing_is_not_a_user_warning(
        self, service, facilities, previous, current, captured_logs
    ):
        ids = [f.id for f in facilities]

        result = service.get_beginning_cash(_options(current, facility_ids=ids))

        assert result.success is True
        assert result.source == CarryforwardSource.CARRYFORWARD_AGGREGATED
        assert result.beginning_cash == 0
        assert result.warnings == (ZERO_ENDING_CASH_WARNING,)
        assert len(result.metadata.facility_breakdown) == 3
        debug = [r for r in captured_logs() if r["message"] == "no_facility_has_previous_data"]
        assert debug and debug[0]["level"] == "DEBUG"

    def test_manual_entries_restricted_to_facility_set(
        self, service, facilities, create_facility, previous, current, record_ending_cash, manual_entry
    ):
        alpha, beta, _ = facilities
        outsider = create_facility("Outsider")
        record_ending_cash(previous, alpha, bank=1000)
        record_ending_cash(previous, beta, bank=1000)
        manual_entry(current, alpha, 1500)
        manual_entry(current, beta, 1000)
        manual_entry(current, outsider, 99999)

        result = service.get_beginning_cash(_options(current, facility_ids=[alpha.id, beta.id]))

        assert result.source == CarryforwardSource.MANUAL_ENTRY
        assert result.beginning_cash == Decimal("2500")
        assert result.metadata.discrepancy == Decimal("500")
        assert len(result.metadata.facility_breakdown) == 2


class TestFallbackAndErrors:

    def test_no_facility_falls_back(self, service, previous, current):
        result = service.get_beginning_cash(
            CarryforwardOptions(period_id=current.id, project_type="HIV", statement_code="CASH_FLOW")
        )
        assert result.source == CarryforwardSource.FALLBACK
        assert result.success is False
        assert result.metadata.error == "No facility ID provided"
        assert result.warnings[0] == (
            "Carryforward failed: No facility ID provided. "
            "No manual entry available, defaulting to zero."
        )

    def test_overall_timeout_falls_back_to_manual_entry(
        self, session_factory, deterministic_clock, facility, previous, current,
        record_ending_cash, manual_entry,
    ):
        record_ending_cash(previous, facility, bank=5000)
        manual_entry(current, facility, 300, reason="interim count")
        ticks = iter([0.0])

        def monotonic():
            return next(ticks, 1000.0)

        with CarryforwardService(
            session_factory, clock=deterministic_clock, monotonic=monotonic
        ) as svc:
            result = svc.get_beginning_cash(_options(current, facility))

        assert result.success is True
        assert result.source == CarryforwardSource.FALLBACK
        assert result.beginning_cash == Decimal("300")
        assert result.metadata.error == "Carryforward operation timed out"
        assert result.metadata.manual_entry_amount == Decimal("300")
        assert result.warnings == (
            "Carryforward failed: Carryforward operation timed out. Using manual entry.",
            "Manual entry reason: interim count",
        )

    def test_query_timeout_treated_as_absence(
        self, session_factory, deterministic_clock, facility, previous, current,
        record_ending_cash, monkeypatch,
    ):
        record_ending_cash(previous, facility, bank=5000)

        def slow(self, *args, **kwargs):
            time.sleep(1.0)

        monkeypatch.setattr(PeriodSelector, "find_latest_before", slow)
        config = CarryforwardConfig(query_timeout_seconds=0.2)
        with CarryforwardService(session_factory, clock=deterministic_clock, config=config) as svc:
            result = svc.get_beginning_cash(_options(current, facility))

        assert result.success is False
        assert result.metadata.error == "No previous period found"

    def test_unexpected_error_becomes_failed_result(
        self, service, facility, previous, current, monkeypatch
    ):
        def broken(self, *args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(PeriodSelector, "find_latest_before", broken)

        result = service.get_beginning_cash(_options(current, facility))

        assert result.success is False
        assert result.source == CarryforwardSource.FALLBACK
        assert result.beginning_cash == 0
        assert result.metadata.error == "Carryforward failed: database unavailable"
        assert result.warnings == ("Unable to retrieve previous period data: database unavailable",)

    def test_fallback_never_raises(self, service, facility, current, monkeypatch):
        def broken(self, *args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(ManualOverrideReader, "read_manual_opening_balance", broken)

        result = service.fallback_to_manual_entry(_options(current, facility), "No carryforward data")

        assert result.success is False
        assert result.beginning_cash == 0
        assert result.metadata.error == (
            "No carryforward data. Additionally, fallback to manual entry failed: boom"
        )
        assert result.warnings == (
            "Carryforward failed: No carryforward data",
            "Fallback to manual entry also failed: boom",
            "Beginning cash defaulted to zero.",
        )


class TestDeterminism:

    def test_identical_calls_render_identically(
        self, service, facility, previous, current, record_ending_cash, manual_entry
    ):
        record_ending_cash(previous, facility, bank=4000, petty=500, other=500)
        manual_entry(current, facility, 5200, reason="bank reconciliation")
        options = _options(current, facility)

        first = service.get_beginning_cash(options).to_dict()
        second = service.get_beginning_cash(options).to_dict()

        assert first == second
        assert first["source"] == "MANUAL_ENTRY"
        assert first["beginning_cash"] == "5200"

    def test_log_context_bound_during_call(
        self, service, facility, previous, current, record_ending_cash, captured_logs
    ):
        record_ending_cash(previous, facility, bank=100)
        service.get_beginning_cash(_options(current, facility))
        requested = [r for r in captured_logs() if r["message"] == "beginning_cash_requested"]
        assert requested[0]["period_id"] == str(current.id)
        assert requested[0]["project_type"] == "HIV"
        assert requested[0]["statement_code"] == "CASH_FLOW"


class TestCarryforwardOptions:

    def test_statement_code_is_required(self):
        with pytest.raises(TypeError):
            CarryforwardOptions(period_id=1, project_type="HIV", facility_id=12)

    def test_aggregation_needs_more_than_one_facility(self):
        single = CarryforwardOptions(1, "HIV", "CASH_FLOW", facility_ids=[12])
        many = CarryforwardOptions(1, "HIV", "CASH_FLOW", facility_ids=[12, 14])
        assert not single.is_aggregated
        assert single.single_facility_id == 12
        assert many.is_aggregated
        assert many.facility_ids == (12, 14)
