"""
Working Capital Domain Models (``cashflow_modules.working_capital.models``).

Responsibility
--------------
Frozen dataclass value objects for period-over-period changes in
receivables and payables and their signed cash flow adjustments.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``change == current_balance - previous_balance``.
* ``cash_flow_adjustment`` is ``-change`` for receivables and ``+change``
  for payables.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from cashflow_kernel.db.types import ZERO

from cashflow_modules.rendering import render_to_dict


class AccountClass(str, Enum):
    """Working capital account class."""

    RECEIVABLES = "RECEIVABLES"
    PAYABLES = "PAYABLES"


@dataclass(frozen=True)
class CalculateChangesParams:
    """
    Parameters of one working capital calculation.

    A non-empty ``facility_ids`` takes precedence over ``facility_id``.
    """

    period_id: int
    project_id: int
    project_type: str
    facility_id: int | None = None
    facility_ids: tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "facility_ids", tuple(self.facility_ids))

    @property
    def effective_facility_ids(self) -> tuple[int, ...]:
        if self.facility_ids:
            return self.facility_ids
        if self.facility_id is not None:
            return (self.facility_id,)
        return ()


@dataclass(frozen=True)
class FacilityWorkingCapital:
    """One facility's contribution to an account class."""

    facility_id: int
    facility_name: str
    current_balance: Decimal
    previous_balance: Decimal
    change: Decimal
    cash_flow_adjustment: Decimal

    @property
    def has_data(self) -> bool:
        return self.current_balance != 0 or self.previous_balance != 0


@dataclass(frozen=True)
class WorkingCapitalChange:
    """Change in one account class between two periods."""

    account_class: AccountClass
    current_balance: Decimal = ZERO
    previous_balance: Decimal = ZERO
    change: Decimal = ZERO
    cash_flow_adjustment: Decimal = ZERO
    event_codes: tuple[str, ...] = ()
    # Only computed for multi-facility calculations
    facility_breakdown: tuple[FacilityWorkingCapital, ...] | None = None


@dataclass(frozen=True)
class WorkingCapitalMetadata:
    current_period_id: int
    previous_period_id: int | None = None
    facilities_included: tuple[int, ...] = ()
    calculation_timestamp: datetime | None = None
    error: str | None = None


@dataclass(frozen=True)
class WorkingCapitalCalculationResult:
    """Receivables and payables changes with warnings and metadata."""

    receivables_change: WorkingCapitalChange
    payables_change: WorkingCapitalChange
    metadata: WorkingCapitalMetadata
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return render_to_dict(self)
