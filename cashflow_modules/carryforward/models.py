"""
Carryforward Domain Models (``cashflow_modules.carryforward.models``).

Responsibility
--------------
Frozen dataclass value objects for the beginning-cash calculation: the
call options, the per-facility breakdown, result metadata, the result
itself, and the validator's outputs.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``warnings`` are ordered tuples; order is part of the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from cashflow_kernel.db.types import ZERO

from cashflow_modules.rendering import render_to_dict


# =========================================================================
# Enums
# =========================================================================


class CarryforwardSource(str, Enum):
    """Provenance of a beginning cash figure."""

    CARRYFORWARD = "CARRYFORWARD"
    CARRYFORWARD_AGGREGATED = "CARRYFORWARD_AGGREGATED"
    MANUAL_ENTRY = "MANUAL_ENTRY"
    FALLBACK = "FALLBACK"


# =========================================================================
# Input
# =========================================================================


@dataclass(frozen=True)
class CarryforwardOptions:
    """
    Parameters of one beginning-cash request.

    ``facility_ids`` with more than one id selects aggregation.  A single
    entry in ``facility_ids`` behaves like ``facility_id``.
    """

    period_id: int
    project_type: str
    statement_code: str
    facility_id: int | None = None
    facility_ids: tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "facility_ids", tuple(self.facility_ids))

    @property
    def is_aggregated(self) -> bool:
        return len(self.facility_ids) > 1

    @property
    def single_facility_id(self) -> int | None:
        if self.facility_id is not None:
            return self.facility_id
        return self.facility_ids[0] if self.facility_ids else None


# =========================================================================
# Output
# =========================================================================


@dataclass(frozen=True)
class FacilityEndingCash:
    """Previous-period ending cash of one facility in an aggregation."""

    facility_id: int
    facility_name: str
    ending_cash: Decimal


@dataclass(frozen=True)
class CarryforwardMetadata:
    """Diagnostic metadata attached to every result."""

    previous_period_id: int | None = None
    previous_period_ending_cash: Decimal | None = None
    manual_entry_amount: Decimal | None = None
    discrepancy: Decimal | None = None
    override_reason: str | None = None
    error: str | None = None
    facility_breakdown: tuple[FacilityEndingCash, ...] = ()
    facilities_with_missing_data: tuple[int, ...] = ()
    timestamp: datetime | None = None


@dataclass(frozen=True)
class CarryforwardResult:
    """Beginning cash for a period, with provenance and warnings."""

    success: bool
    beginning_cash: Decimal
    source: CarryforwardSource
    metadata: CarryforwardMetadata = field(default_factory=CarryforwardMetadata)
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return render_to_dict(self)


# =========================================================================
# Validator outputs
# =========================================================================


@dataclass(frozen=True)
class DiscrepancyCheck:
    """Comparison of a carryforward amount with a manual entry."""

    has_discrepancy: bool
    difference: Decimal
    percentage_difference: Decimal
    exceeds_tolerance: bool


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_carryforward()."""

    is_valid: bool
    warnings: tuple[str, ...] = ()
    effective_amount: Decimal = ZERO
