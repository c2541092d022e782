"""Kernel read services: query runner and the period, execution and override readers."""

from cashflow_kernel.services.execution_reader import ExecutionDataReader
from cashflow_kernel.services.facility_directory import FacilityDirectory
from cashflow_kernel.services.manual_override_reader import (
    OPENING_CASH_EVENT_CODE,
    ManualOpeningBalance,
    ManualOverrideReader,
)
from cashflow_kernel.services.period_resolver import PeriodResolver
from cashflow_kernel.services.query_runner import QueryRunner

__all__ = [
    "ExecutionDataReader",
    "FacilityDirectory",
    "ManualOpeningBalance",
    "ManualOverrideReader",
    "OPENING_CASH_EVENT_CODE",
    "PeriodResolver",
    "QueryRunner",
]
