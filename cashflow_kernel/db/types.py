"""
Module: cashflow_kernel.db.types
Responsibility: Amount utilities for financial-grade values.  Centralizes
    precision, rounding, and the parsing of amounts read from loosely-typed
    JSON form data so that every reader applies identical rules.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats in results.  parse_amount() always returns Decimal or None.
    - No NaN or Infinity ever leaves parse_amount().
    - round_money() is the ONLY sanctioned rounding function for display.

Failure modes:
    - MalformedAmountError on non-numeric, NaN or infinite input.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from cashflow_kernel.exceptions import MalformedAmountError

DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")

# Characters users type into amount fields that carry no numeric meaning
_AMOUNT_NOISE = str.maketrans("", "", ",$ \t\n\r")


def parse_amount(value: Any, field: str = "amount") -> Decimal | None:
    """
    Convert a raw JSON value into a finite Decimal.

    Preconditions: value came from a JSON document (str, int, float, bool,
        None, or a container).
    Postconditions: Returns None for None (absence) and a finite Decimal
        otherwise.  Booleans map to 0 and 1.  Strings have thousands
        separators, currency symbols and whitespace stripped first.

    Raises:
        MalformedAmountError: If the value is not a finite number.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, Decimal)):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr round-trips the shortest float literal, avoiding binary noise
        result = Decimal(repr(value)) if value == value else Decimal("NaN")
    elif isinstance(value, str):
        cleaned = value.translate(_AMOUNT_NOISE)
        if not cleaned:
            raise MalformedAmountError(field, value)
        try:
            result = Decimal(cleaned)
        except InvalidOperation as exc:
            raise MalformedAmountError(field, value) from exc
    else:
        raise MalformedAmountError(field, value)

    if not result.is_finite():
        raise MalformedAmountError(field, value)
    return result


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def format_money(value: Decimal) -> str:
    """Render an amount with exactly two decimals, e.g. ``5000.00``."""
    return f"{round_money(value):.2f}"
