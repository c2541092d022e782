"""Tests for the overall deadline and the per-query timeout runner."""

import threading
import time

import pytest

from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.exceptions import OperationTimeoutError, QueryTimeoutError
from cashflow_kernel.logging_config import LogContext
from cashflow_kernel.services.query_runner import QueryRunner


class FakeMonotonic:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestDeadline:

    def test_remaining_counts_down(self):
        clock = FakeMonotonic()
        deadline = Deadline("op", 15.0, monotonic=clock)
        clock.now = 4.0
        assert deadline.remaining() == pytest.approx(11.0)
        assert not deadline.expired

    def test_remaining_never_negative(self):
        clock = FakeMonotonic()
        deadline = Deadline("op", 1.0, monotonic=clock)
        clock.now = 10.0
        assert deadline.remaining() == 0.0
        assert deadline.expired

    def test_check_raises_when_spent(self):
        clock = FakeMonotonic()
        deadline = Deadline("get_beginning_cash", 15.0, monotonic=clock)
        clock.now = 15.0
        with pytest.raises(OperationTimeoutError) as exc_info:
            deadline.check()
        assert exc_info.value.operation == "get_beginning_cash"
        assert exc_info.value.code == "OPERATION_TIMEOUT"

    def test_bound_clamps_to_remaining(self):
        clock = FakeMonotonic()
        deadline = Deadline("op", 15.0, monotonic=clock)
        assert deadline.bound(5.0) == 5.0
        clock.now = 13.0
        assert deadline.bound(5.0) == pytest.approx(2.0)


class TestQueryRunner:

    @pytest.fixture
    def runner(self, session_factory):
        runner = QueryRunner(session_factory, query_timeout_seconds=0.05)
        yield runner
        runner.close()

    def test_returns_query_result(self, runner):
        assert runner.run("answer", lambda session: 42) == 42

    def test_each_query_gets_its_own_session(self, runner):
        first = runner.run("s1", lambda session: id(session))
        second = runner.run("s2", lambda session: id(session))
        assert isinstance(first, int) and isinstance(second, int)

    def test_slow_query_times_out(self, runner, captured_logs):
        def slow(session):
            time.sleep(0.3)
            return "late"

        with pytest.raises(QueryTimeoutError) as exc_info:
            runner.run("slow_query", slow)
        assert exc_info.value.query_name == "slow_query"
        assert any(r["message"] == "query_timed_out" for r in captured_logs())

    def test_query_errors_propagate(self, runner):
        def broken(session):
            raise RuntimeError("connection lost")

        with pytest.raises(RuntimeError, match="connection lost"):
            runner.run("broken", broken)

    def test_expired_deadline_prevents_submission(self, runner):
        clock = FakeMonotonic()
        deadline = Deadline("op", 1.0, monotonic=clock)
        clock.now = 2.0
        calls = []
        with pytest.raises(OperationTimeoutError):
            runner.run("never", lambda session: calls.append(1), deadline)
        assert calls == []

    def test_log_context_propagates_to_worker(self, runner):
        with LogContext.bind(period_id=7):
            seen = runner.run("ctx", lambda session: LogContext.get_all())
        assert seen["period_id"] == "7"

    def test_rejects_non_positive_timeout(self, session_factory):
        with pytest.raises(ValueError):
            QueryRunner(session_factory, query_timeout_seconds=0)

    def test_abandoned_queries_do_not_starve_later_ones(self, session_factory):
        runner = QueryRunner(session_factory, query_timeout_seconds=0.2)
        release = threading.Event()
        try:
            for n in range(6):
                with pytest.raises(QueryTimeoutError):
                    runner.run(f"hung_{n}", lambda session: release.wait(3))
            assert runner.run("after_hung", lambda session: 42) == 42
        finally:
            release.set()
            runner.close()

    def test_closed_runner_rejects_queries(self, session_factory):
        runner = QueryRunner(session_factory)
        runner.close()
        assert runner.closed
        with pytest.raises(RuntimeError, match="closed"):
            runner.run("late", lambda session: 1)
