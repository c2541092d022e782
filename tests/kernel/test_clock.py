"""Tests for the injected clocks."""

from datetime import datetime, timedelta, timezone

import pytest

from cashflow_kernel.domain.clock import DEFAULT_FIXED_TIME, DeterministicClock, SystemClock
from cashflow_kernel.domain.fiscal_calendar import fiscal_quarter


class TestDeterministicClock:

    def test_default_falls_in_fiscal_q3(self):
        clock = DeterministicClock()
        assert clock.now() == DEFAULT_FIXED_TIME
        assert fiscal_quarter(clock.now().date()) == 3

    def test_never_advances(self):
        clock = DeterministicClock()
        assert clock.now_utc() == clock.now_utc()

    def test_now_utc_normalizes_offset(self):
        kigali = timezone(timedelta(hours=2))
        clock = DeterministicClock(datetime(2024, 8, 1, 1, 0, tzinfo=kigali))
        assert clock.now_utc() == datetime(2024, 7, 31, 23, 0, tzinfo=timezone.utc)
        assert clock.now_utc().tzinfo == timezone.utc

    def test_rejects_naive_time(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2024, 1, 1))


class TestSystemClock:

    def test_is_utc(self):
        assert SystemClock().now_utc().tzinfo == timezone.utc
