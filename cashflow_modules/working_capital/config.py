"""
Working Capital Configuration Schema.

Event codes per account class, the variance threshold and the query
time budget used by the working capital calculator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from cashflow_kernel.domain.fiscal_calendar import FISCAL_YEAR_START_MONTH
from cashflow_kernel.logging_config import get_logger

logger = get_logger("modules.working_capital.config")

RECEIVABLES_EVENT_CODES = (
    "ADVANCE_PAYMENTS",
    "RECEIVABLES_EXCHANGE",
    "RECEIVABLES_NON_EXCHANGE",
)
PAYABLES_EVENT_CODES = ("PAYABLES",)


@dataclass
class WorkingCapitalConfig:
    """
    Configuration schema for the working capital module.

    Field defaults match the standard chart of event codes.
    """

    receivables_event_codes: tuple[str, ...] = RECEIVABLES_EVENT_CODES
    payables_event_codes: tuple[str, ...] = PAYABLES_EVENT_CODES

    # |change / previous| above this is a variance warning (1 = 100%)
    variance_threshold: Decimal = Decimal("1")

    query_timeout_seconds: float = 5.0

    fiscal_year_start_month: int = FISCAL_YEAR_START_MONTH

    def __post_init__(self):
        if not self.receivables_event_codes:
            raise ValueError("receivables_event_codes cannot be empty")
        if not self.payables_event_codes:
            raise ValueError("payables_event_codes cannot be empty")
        if set(self.receivables_event_codes) & set(self.payables_event_codes):
            raise ValueError("an event code cannot be both receivable and payable")
        if self.variance_threshold <= 0:
            raise ValueError("variance_threshold must be positive")
        if self.query_timeout_seconds <= 0:
            raise ValueError("query_timeout_seconds must be positive")
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError("fiscal_year_start_month must be between 1 and 12")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("working_capital_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        for key in ("receivables_event_codes", "payables_event_codes"):
            if key in data:
                data[key] = tuple(data[key])
        if "variance_threshold" in data:
            data["variance_threshold"] = Decimal(str(data["variance_threshold"]))
        logger.info(
            "working_capital_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
