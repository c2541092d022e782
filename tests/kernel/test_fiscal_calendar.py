"""Tests for fiscal calendar arithmetic (July fiscal year start)."""

from datetime import date

import pytest

from cashflow_kernel.domain.fiscal_calendar import describe_period, fiscal_month, fiscal_quarter


class TestFiscalCalendar:

    @pytest.mark.parametrize(
        "value, quarter",
        [
            (date(2024, 7, 1), 1),
            (date(2024, 9, 30), 1),
            (date(2024, 10, 1), 2),
            (date(2024, 12, 31), 2),
            (date(2025, 1, 1), 3),
            (date(2025, 3, 31), 3),
            (date(2025, 4, 1), 4),
            (date(2025, 6, 30), 4),
        ],
    )
    def test_fiscal_quarter(self, value, quarter):
        assert fiscal_quarter(value) == quarter

    def test_fiscal_month(self):
        assert fiscal_month(date(2024, 7, 15)) == 1
        assert fiscal_month(date(2025, 6, 15)) == 12

    def test_calendar_year_start(self):
        assert fiscal_quarter(date(2025, 2, 1), start_month=1) == 1

    def test_describe_period(self):
        assert describe_period("QUARTERLY", date(2025, 1, 1)) == "Q3"
        assert describe_period("MONTHLY", date(2024, 10, 1)) == "M4"
        assert describe_period("ANNUAL", date(2024, 7, 1)) == "FY"
