"""Persisted entities read by the cashflow kernel."""

from cashflow_kernel.models.execution import (
    EXECUTION_ENTITY_TYPE,
    AccountingEvent,
    EventMapping,
    ExecutionEntry,
)
from cashflow_kernel.models.reference import Facility, Project
from cashflow_kernel.models.reporting_period import PeriodType, ReportingPeriod

__all__ = [
    "EXECUTION_ENTITY_TYPE",
    "AccountingEvent",
    "EventMapping",
    "ExecutionEntry",
    "Facility",
    "Project",
    "PeriodType",
    "ReportingPeriod",
]
