"""
Carryforward Configuration Schema.

Tolerances, thresholds, time budgets and the data conventions (event code,
cash section and activity code suffixes) used to compute beginning cash.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from cashflow_kernel.domain.execution_payload import CASH_CODE_SUFFIXES, CASH_SECTION
from cashflow_kernel.domain.fiscal_calendar import FISCAL_YEAR_START_MONTH
from cashflow_kernel.logging_config import get_logger
from cashflow_kernel.services.manual_override_reader import OPENING_CASH_EVENT_CODE

logger = get_logger("modules.carryforward.config")


@dataclass
class CarryforwardConfig:
    """
    Configuration schema for the carryforward module.

    Amounts are Decimal; time budgets are seconds.
    """

    # Absolute difference above which a manual entry counts as an override
    discrepancy_tolerance: Decimal = Decimal("0.01")

    # Beginning cash above this is flagged for review (warning only)
    large_balance_threshold: Decimal = Decimal("1000000")

    # Per-query and whole-call time budgets
    query_timeout_seconds: float = 5.0
    overall_timeout_seconds: float = 15.0

    # Event code whose activity rows hold manual opening balances
    opening_cash_event_code: str = OPENING_CASH_EVENT_CODE

    # Activities counted as cash: section tag and code suffixes for
    # cash at bank, petty cash and other receivables
    cash_section: str = CASH_SECTION
    cash_code_suffixes: tuple[str, str, str] = CASH_CODE_SUFFIXES

    fiscal_year_start_month: int = FISCAL_YEAR_START_MONTH

    def __post_init__(self):
        if self.discrepancy_tolerance < 0:
            raise ValueError("discrepancy_tolerance cannot be negative")
        if self.large_balance_threshold <= 0:
            raise ValueError("large_balance_threshold must be positive")
        if self.query_timeout_seconds <= 0:
            raise ValueError("query_timeout_seconds must be positive")
        if self.overall_timeout_seconds <= 0:
            raise ValueError("overall_timeout_seconds must be positive")
        if len(self.cash_code_suffixes) != 3:
            raise ValueError("cash_code_suffixes needs exactly three suffixes")
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError("fiscal_year_start_month must be between 1 and 12")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("carryforward_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        for key in ("discrepancy_tolerance", "large_balance_threshold"):
            if key in data:
                data[key] = Decimal(str(data[key]))
        if "cash_code_suffixes" in data:
            data["cash_code_suffixes"] = tuple(data["cash_code_suffixes"])
        logger.info(
            "carryforward_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
