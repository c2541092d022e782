"""
Working capital module: changes in receivables and payables for the
indirect-method cash flow statement.
"""

from cashflow_modules.working_capital.calculations import (
    apply_cash_flow_signs,
    validate_changes,
)
from cashflow_modules.working_capital.config import WorkingCapitalConfig
from cashflow_modules.working_capital.models import (
    AccountClass,
    CalculateChangesParams,
    FacilityWorkingCapital,
    WorkingCapitalCalculationResult,
    WorkingCapitalChange,
    WorkingCapitalMetadata,
)
from cashflow_modules.working_capital.service import WorkingCapitalCalculator

__all__ = [
    "AccountClass",
    "CalculateChangesParams",
    "FacilityWorkingCapital",
    "WorkingCapitalCalculationResult",
    "WorkingCapitalCalculator",
    "WorkingCapitalChange",
    "WorkingCapitalConfig",
    "WorkingCapitalMetadata",
    "apply_cash_flow_signs",
    "validate_changes",
]
