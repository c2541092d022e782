"""Read-only selectors returning detached DTOs."""

from cashflow_kernel.selectors.execution_selector import (
    EventAmountRow,
    ExecutionRow,
    ExecutionSelector,
)
from cashflow_kernel.selectors.period_selector import PeriodInfo, PeriodSelector
from cashflow_kernel.selectors.reference_selector import (
    FacilityInfo,
    ProjectInfo,
    ReferenceSelector,
)

__all__ = [
    "EventAmountRow",
    "ExecutionRow",
    "ExecutionSelector",
    "FacilityInfo",
    "PeriodInfo",
    "PeriodSelector",
    "ProjectInfo",
    "ReferenceSelector",
]
