"""
Working capital calculations -- pure functions.

Sign convention, totals and validation warnings for the working capital
calculator.  ZERO I/O.

Sign convention (indirect method)
---------------------------------
* An increase in receivables ties up cash: adjustment = -change.
* An increase in payables defers cash out: adjustment = +change.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from cashflow_kernel.db.types import ZERO, format_money, round_money

from cashflow_modules.working_capital.models import (
    AccountClass,
    FacilityWorkingCapital,
    WorkingCapitalChange,
)


def apply_cash_flow_signs(account_class: AccountClass, change: Decimal) -> Decimal:
    """Signed cash flow adjustment for a balance change."""
    if account_class is AccountClass.RECEIVABLES:
        return -change
    return change


def sum_balances(balances: Mapping[str, Decimal]) -> Decimal:
    return sum(balances.values(), ZERO)


def build_change(
    account_class: AccountClass,
    current: Mapping[str, Decimal],
    previous: Mapping[str, Decimal],
    event_codes: Sequence[str],
    facility_breakdown: tuple[FacilityWorkingCapital, ...] | None = None,
) -> WorkingCapitalChange:
    """Totals, change and adjustment for one account class."""
    current_total = sum_balances(current)
    previous_total = sum_balances(previous)
    change = current_total - previous_total
    return WorkingCapitalChange(
        account_class=account_class,
        current_balance=current_total,
        previous_balance=previous_total,
        change=change,
        cash_flow_adjustment=apply_cash_flow_signs(account_class, change),
        event_codes=tuple(event_codes),
        facility_breakdown=facility_breakdown,
    )


def build_facility_entry(
    account_class: AccountClass,
    facility_id: int,
    facility_name: str,
    current: Mapping[str, Decimal],
    previous: Mapping[str, Decimal],
) -> FacilityWorkingCapital:
    current_total = sum_balances(current)
    previous_total = sum_balances(previous)
    change = current_total - previous_total
    return FacilityWorkingCapital(
        facility_id=facility_id,
        facility_name=facility_name,
        current_balance=current_total,
        previous_balance=previous_total,
        change=change,
        cash_flow_adjustment=apply_cash_flow_signs(account_class, change),
    )


def _variance_warning(
    label: str,
    item: WorkingCapitalChange,
    threshold: Decimal,
) -> str | None:
    if item.previous_balance <= 0:
        return None
    variance = abs(item.change / item.previous_balance)
    if variance <= threshold:
        return None
    return (
        f"Significant variance in {label}: changed by "
        f"{round_money(variance * 100, 1)}% "
        f"(from {format_money(item.previous_balance)} "
        f"to {format_money(item.current_balance)})"
    )


def validate_changes(
    receivables: WorkingCapitalChange,
    payables: WorkingCapitalChange,
    variance_threshold: Decimal = Decimal("1"),
) -> list[str]:
    """
    Data-quality warnings for a calculated pair of changes.

    Flags a negative current receivables total, and for each class a
    change larger than ``variance_threshold`` times a positive previous
    balance.
    """
    warnings: list[str] = []
    if receivables.current_balance < 0:
        warnings.append(
            "Negative receivables balance detected: "
            f"{format_money(receivables.current_balance)}. "
            "This may indicate data quality issues."
        )
    for label, item in (("receivables", receivables), ("payables", payables)):
        warning = _variance_warning(label, item, variance_threshold)
        if warning is not None:
            warnings.append(warning)
    return warnings


def facilities_missing_data(
    facility_ids: Sequence[int],
    breakdowns: Iterable[tuple[FacilityWorkingCapital, ...]],
) -> list[int]:
    """Facilities with zero balances in both periods of every class, in input order."""
    with_data = {
        entry.facility_id
        for breakdown in breakdowns
        for entry in breakdown
        if entry.has_data
    }
    return [fid for fid in facility_ids if fid not in with_data]


def missing_facility_warning(
    missing: Sequence[int],
    facility_count: int,
) -> str | None:
    """Warning for a strict subset of facilities without data; None otherwise."""
    if not missing or len(missing) >= facility_count:
        return None
    return "Facilities with no balance sheet data: " + ", ".join(str(fid) for fid in missing)
