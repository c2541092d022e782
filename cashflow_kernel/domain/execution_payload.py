"""
Execution payload parsing -- typed view of execution form data.

Responsibility:
    Converts the loosely-typed JSON ``form_data`` of a form-level execution
    record into an explicit structure and derives the ending-cash figure
    from it.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by
    ExecutionDataReader after the record has been fetched.

Payload shape::

    {
        "activities": {
            "HIV_EXEC_HOSPITAL_D_1": {"section": "D", "cumulative_balance": 4000},
            ...
        },
        "vatReceivables": {
            "communication_all": {"q1": 100, "q1_cleared": 40, ...},
            ...
        }
    }

Invariants enforced:
    - Parsing never raises on bad content.  Each malformed entry is dropped
      (its value treated as zero) and described in ``ExecutionRecord.issues``.
    - No NaN or Infinity reaches an ExecutionRecord or an EndingCash.
    - Ending cash = cash at bank + petty cash + other receivables
      + sum over VAT categories of max(0, q{n} - q{n}_cleared).

Failure modes:
    (none -- malformed data is reported, not raised)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from cashflow_kernel.db.types import ZERO, parse_amount
from cashflow_kernel.exceptions import MalformedAmountError

CASH_SECTION = "D"

# Activity code suffix -> ending-cash component
CASH_AT_BANK_SUFFIX = "_D_1"
PETTY_CASH_SUFFIX = "_D_2"
OTHER_RECEIVABLES_SUFFIX = "_D_3"

CASH_CODE_SUFFIXES = (CASH_AT_BANK_SUFFIX, PETTY_CASH_SUFFIX, OTHER_RECEIVABLES_SUFFIX)

QUARTERS = (1, 2, 3, 4)


# =========================================================================
# Typed structure
# =========================================================================


@dataclass(frozen=True)
class ActivityBalance:
    """One entry of the activities map."""

    code: str
    section: str | None
    cumulative_balance: Decimal = ZERO


@dataclass(frozen=True)
class VatReceivable:
    """VAT receivable for one expense category, per fiscal quarter."""

    category: str
    amounts: Mapping[int, Decimal] = field(default_factory=dict)
    cleared: Mapping[int, Decimal] = field(default_factory=dict)

    def net_for_quarter(self, quarter: int) -> Decimal:
        """Outstanding receivable for a quarter, floored at zero."""
        net = self.amounts.get(quarter, ZERO) - self.cleared.get(quarter, ZERO)
        return max(ZERO, net)


@dataclass(frozen=True)
class ExecutionRecord:
    """Parsed form-level execution record."""

    activities: Mapping[str, ActivityBalance] = field(default_factory=dict)
    vat_receivables: Mapping[str, VatReceivable] = field(default_factory=dict)
    issues: tuple[str, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class EndingCash:
    """Components of a period's ending cash."""

    cash_at_bank: Decimal = ZERO
    petty_cash: Decimal = ZERO
    other_receivables: Decimal = ZERO
    vat_receivables: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (
            self.cash_at_bank
            + self.petty_cash
            + self.other_receivables
            + self.vat_receivables
        )


# =========================================================================
# Parser
# =========================================================================


def _amount(value: Any, path: str, issues: list[str]) -> Decimal:
    try:
        parsed = parse_amount(value, path)
    except MalformedAmountError as exc:
        issues.append(str(exc))
        return ZERO
    return ZERO if parsed is None else parsed


def _parse_activities(raw: Any, issues: list[str]) -> dict[str, ActivityBalance]:
    if raw is None:
        issues.append("No activities found in execution data")
        return {}
    if not isinstance(raw, Mapping):
        issues.append(f"activities is {type(raw).__name__}, expected object")
        return {}

    activities: dict[str, ActivityBalance] = {}
    for code, entry in raw.items():
        if not isinstance(entry, Mapping):
            issues.append(f"activities.{code} is {type(entry).__name__}, expected object")
            continue
        section = entry.get("section")
        activities[str(code)] = ActivityBalance(
            code=str(code),
            section=section if isinstance(section, str) else None,
            cumulative_balance=_amount(
                entry.get("cumulative_balance"),
                f"activities.{code}.cumulative_balance",
                issues,
            ),
        )
    return activities


def _parse_vat_receivables(raw: Any, issues: list[str]) -> dict[str, VatReceivable]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        issues.append(f"vatReceivables is {type(raw).__name__}, expected object")
        return {}

    receivables: dict[str, VatReceivable] = {}
    for category, entry in raw.items():
        if not isinstance(entry, Mapping):
            issues.append(f"Invalid VAT data format for category: {category}")
            continue
        path = f"vatReceivables.{category}"
        receivables[str(category)] = VatReceivable(
            category=str(category),
            amounts={
                q: _amount(entry.get(f"q{q}"), f"{path}.q{q}", issues)
                for q in QUARTERS
            },
            cleared={
                q: _amount(entry.get(f"q{q}_cleared"), f"{path}.q{q}_cleared", issues)
                for q in QUARTERS
            },
        )
    return receivables


def parse_execution_record(form_data: Any) -> ExecutionRecord:
    """
    Parse raw form data into an ExecutionRecord.

    Preconditions: form_data is whatever the JSON column held.
    Postconditions: Every balance is a finite Decimal; every problem found
        is listed in ``issues`` in document order.
    """
    if not isinstance(form_data, Mapping):
        return ExecutionRecord(
            issues=(f"form_data is {type(form_data).__name__}, expected object",),
        )

    issues: list[str] = []
    activities = _parse_activities(form_data.get("activities"), issues)
    vat_receivables = _parse_vat_receivables(form_data.get("vatReceivables"), issues)
    return ExecutionRecord(
        activities=activities,
        vat_receivables=vat_receivables,
        issues=tuple(issues),
    )


# =========================================================================
# Ending cash
# =========================================================================


def ending_cash(
    record: ExecutionRecord,
    quarter: int,
    section: str = CASH_SECTION,
    suffixes: tuple[str, str, str] = CASH_CODE_SUFFIXES,
) -> EndingCash:
    """
    Derive ending cash from a parsed record.

    Only activities in ``section`` count.  When several codes share a
    suffix the last one in document order wins, as the data-entry form
    holds one row per slot.

    Args:
        record: Parsed execution record.
        quarter: Fiscal quarter (1-4) selecting the VAT slot.
        section: Section tag of the cash activities.
        suffixes: Code suffixes for cash at bank, petty cash and other
            receivables, in that order.
    """
    if quarter not in QUARTERS:
        raise ValueError(f"quarter must be 1-4, got {quarter}")

    bank_suffix, petty_suffix, receivables_suffix = suffixes
    slots: dict[str, Decimal] = {}
    for activity in record.activities.values():
        if activity.section != section:
            continue
        for suffix in suffixes:
            if activity.code.endswith(suffix):
                slots[suffix] = activity.cumulative_balance
                break

    vat_total = sum(
        (vat.net_for_quarter(quarter) for vat in record.vat_receivables.values()),
        ZERO,
    )
    return EndingCash(
        cash_at_bank=slots.get(bank_suffix, ZERO),
        petty_cash=slots.get(petty_suffix, ZERO),
        other_receivables=slots.get(receivables_suffix, ZERO),
        vat_receivables=vat_total,
    )
