"""
Carryforward validation -- pure functions.

Classifies the relationship between a carried-forward ending cash figure
and a manual opening-balance entry, and flags edge cases, as warning
strings.  ZERO I/O: no database, no clock, no logging side effects beyond
debug lines.  CarryforwardService calls into this module; it can be
exercised on its own without any data source.

Policy
------
* Tolerance is absolute (default 0.01).
* The effective amount is the manual entry when it is positive, else the
  carryforward amount.
* A large effective amount (default above 1,000,000) is a warning, not an
  error; a negative effective amount is flagged as a possible data error.
"""

from __future__ import annotations

from decimal import Decimal

from cashflow_kernel.db.types import ZERO, format_money
from cashflow_kernel.logging_config import get_logger

from cashflow_modules.carryforward.config import CarryforwardConfig
from cashflow_modules.carryforward.models import DiscrepancyCheck, ValidationResult

logger = get_logger("modules.carryforward.validator")

NO_PREVIOUS_PERIOD_WARNING = (
    "No previous period statement found. "
    "Beginning cash is based on manual entry or defaults to zero."
)
ZERO_ENDING_CASH_WARNING = (
    "Previous period ending cash is zero. "
    "This may indicate missing data or a new account."
)
ZERO_BEGINNING_CASH_WARNING = (
    "Beginning cash is zero. "
    "This may be correct for a new account or indicate missing data."
)

_DEFAULT_CONFIG = CarryforwardConfig()


def effective_amount(carryforward: Decimal, manual: Decimal) -> Decimal:
    """Manual entry when positive, else the carryforward amount."""
    return manual if manual > 0 else carryforward


def balance_warnings(
    amount: Decimal,
    config: CarryforwardConfig | None = None,
) -> list[str]:
    """Large and negative balance warnings for a beginning cash figure."""
    config = config or _DEFAULT_CONFIG
    warnings: list[str] = []
    if amount > config.large_balance_threshold:
        warnings.append(
            f"Large beginning cash balance detected ({format_money(amount)}). "
            "Please verify this is correct."
        )
    if amount < 0:
        warnings.append(
            f"Negative beginning cash balance detected ({format_money(amount)}). "
            "This may indicate a data error."
        )
    return warnings


def detect_discrepancy(
    carryforward: Decimal,
    manual: Decimal,
    config: CarryforwardConfig | None = None,
) -> DiscrepancyCheck:
    """
    Compare a carryforward amount with a manual entry.

    ``percentage_difference`` is relative to the carryforward amount, or to
    the manual amount when the carryforward is zero, and is zero when both
    are zero.  ``has_discrepancy`` requires both amounts to be positive.
    """
    config = config or _DEFAULT_CONFIG
    difference = abs(carryforward - manual)
    base = carryforward if carryforward != 0 else manual
    percentage = difference / abs(base) * 100 if base != 0 else ZERO
    exceeds = difference > config.discrepancy_tolerance
    check = DiscrepancyCheck(
        has_discrepancy=carryforward > 0 and manual > 0 and exceeds,
        difference=difference,
        percentage_difference=percentage,
        exceeds_tolerance=exceeds,
    )
    logger.debug(
        "discrepancy_detected" if check.has_discrepancy else "discrepancy_checked",
        extra={"difference": difference, "exceeds_tolerance": exceeds},
    )
    return check


def generate_discrepancy_warning(
    carryforward: Decimal,
    manual: Decimal,
    override_reason: str | None = None,
) -> str:
    """Warning text quoting both amounts, the difference and the reason."""
    difference = abs(carryforward - manual)
    warning = (
        "Beginning cash discrepancy detected: "
        f"Previous period ending cash ({format_money(carryforward)}) "
        f"differs from manual entry ({format_money(manual)}) "
        f"by {format_money(difference)}. Using manual entry value."
    )
    if override_reason:
        warning += f" Reason: {override_reason}"
    return warning


def validate_carryforward(
    carryforward: Decimal,
    manual: Decimal,
    previous_period_id: int | None = None,
    override_reason: str | None = None,
    config: CarryforwardConfig | None = None,
) -> ValidationResult:
    """
    Validate a carryforward against a manual entry.

    Warnings, in order: no previous period; discrepancy; zero ending cash;
    large balance; negative balance.  Valid iff there are no warnings.
    """
    config = config or _DEFAULT_CONFIG
    warnings: list[str] = []

    if previous_period_id is None:
        warnings.append(NO_PREVIOUS_PERIOD_WARNING)

    if detect_discrepancy(carryforward, manual, config).has_discrepancy:
        warnings.append(generate_discrepancy_warning(carryforward, manual, override_reason))

    if previous_period_id is not None and carryforward == 0 and manual == 0:
        warnings.append(ZERO_ENDING_CASH_WARNING)

    effective = effective_amount(carryforward, manual)
    warnings.extend(balance_warnings(effective, config))

    return ValidationResult(
        is_valid=not warnings,
        warnings=tuple(warnings),
        effective_amount=effective,
    )


def validate_edge_cases(
    carryforward: Decimal,
    manual: Decimal,
    previous_period_id: int | None = None,
    config: CarryforwardConfig | None = None,
) -> list[str]:
    """
    Edge-case notices without discrepancy analysis.

    Like validate_carryforward() minus the discrepancy check, plus a final
    notice when both amounts are zero although a previous period exists.
    """
    config = config or _DEFAULT_CONFIG
    warnings: list[str] = []
    both_zero = carryforward == 0 and manual == 0

    if previous_period_id is None:
        warnings.append(NO_PREVIOUS_PERIOD_WARNING)
    if previous_period_id is not None and both_zero:
        warnings.append(ZERO_ENDING_CASH_WARNING)
    warnings.extend(balance_warnings(effective_amount(carryforward, manual), config))
    if previous_period_id is not None and both_zero:
        warnings.append(ZERO_BEGINNING_CASH_WARNING)
    return warnings
