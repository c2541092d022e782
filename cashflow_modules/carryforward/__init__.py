"""
Carryforward module: beginning cash for an indirect-method cash flow statement.

The previous period's ending cash is carried forward into the current
period, unless a manual opening balance overrides it.
"""

from cashflow_modules.carryforward.config import CarryforwardConfig
from cashflow_modules.carryforward.models import (
    CarryforwardMetadata,
    CarryforwardOptions,
    CarryforwardResult,
    CarryforwardSource,
    DiscrepancyCheck,
    FacilityEndingCash,
    ValidationResult,
)
from cashflow_modules.carryforward.service import CarryforwardService
from cashflow_modules.carryforward.validator import (
    detect_discrepancy,
    generate_discrepancy_warning,
    validate_carryforward,
    validate_edge_cases,
)

__all__ = [
    "CarryforwardConfig",
    "CarryforwardMetadata",
    "CarryforwardOptions",
    "CarryforwardResult",
    "CarryforwardService",
    "CarryforwardSource",
    "DiscrepancyCheck",
    "FacilityEndingCash",
    "ValidationResult",
    "detect_discrepancy",
    "generate_discrepancy_warning",
    "validate_carryforward",
    "validate_edge_cases",
]
