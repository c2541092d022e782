"""
Fiscal calendar arithmetic.

The fiscal year starts in July by default, so fiscal quarters are
Q1 = Jul-Sep, Q2 = Oct-Dec, Q3 = Jan-Mar and Q4 = Apr-Jun.  These numbers
are used for diagnostics and to select the VAT receivable quarter slot;
previous-period lookup never relies on them.
"""

from datetime import date

FISCAL_YEAR_START_MONTH = 7


def fiscal_month(value: date, start_month: int = FISCAL_YEAR_START_MONTH) -> int:
    """Month number within the fiscal year, 1..12 (July is 1 by default)."""
    return (value.month - start_month) % 12 + 1


def fiscal_quarter(value: date, start_month: int = FISCAL_YEAR_START_MONTH) -> int:
    """Quarter number within the fiscal year, 1..4."""
    return (fiscal_month(value, start_month) - 1) // 3 + 1


def describe_period(
    period_type: str,
    start_date: date,
    start_month: int = FISCAL_YEAR_START_MONTH,
) -> str:
    """Short diagnostic label such as ``Q3`` or ``M10``; ``FY`` for annual."""
    if period_type == "QUARTERLY":
        return f"Q{fiscal_quarter(start_date, start_month)}"
    if period_type == "MONTHLY":
        return f"M{fiscal_month(start_date, start_month)}"
    return "FY"
