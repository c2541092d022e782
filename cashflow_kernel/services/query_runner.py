"""
QueryRunner -- per-query timeouts on worker threads.

Responsibility:
    Executes one read query at a time on a worker thread with its own
    Session, bounded by ``min(query timeout, remaining overall budget)``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure used by every
    reader.  Callers own the runner's lifetime and must call ``close()``.

Invariants enforced:
    - One Session per query, created and closed on the worker thread.
      Sessions are never shared across threads.
    - Each query gets its own single-worker executor.  An abandoned query
      never occupies a worker that a later query is waiting for.
    - On PostgreSQL the statement carries ``statement_timeout``, so the
      server cancels a timed-out query.  Elsewhere the worker finishes in
      the background and its result is discarded.
    - A timed-out query is never re-issued.
    - The caller's LogContext is propagated to the worker.

Failure modes:
    - QueryTimeoutError when the bounded timeout elapses.
    - OperationTimeoutError (before submission) when the overall deadline
      has already expired.
    - RuntimeError when the runner has been closed.
    - Any exception raised by the query itself propagates unchanged.
"""

import contextvars
import math
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.exceptions import QueryTimeoutError
from cashflow_kernel.logging_config import get_logger

logger = get_logger("services.query_runner")

T = TypeVar("T")

DEFAULT_QUERY_TIMEOUT_SECONDS = 5.0


class QueryRunner:
    """
    Runs read queries with a timeout.

    Contract:
        ``run(name, fn, deadline)`` calls ``fn(session)`` on a worker thread
        and returns its result, or raises QueryTimeoutError.

    Guarantees:
        - Calls are independent: a hung query only costs its own thread.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        query_timeout_seconds: float = DEFAULT_QUERY_TIMEOUT_SECONDS,
    ):
        if query_timeout_seconds <= 0:
            raise ValueError("query_timeout_seconds must be positive")
        self._session_factory = session_factory
        self.query_timeout_seconds = query_timeout_seconds
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _execute(self, fn: Callable[[Session], T], timeout: float) -> T:
        session = self._session_factory()
        try:
            if session.get_bind().dialect.name == "postgresql":
                # SET does not take bind parameters
                timeout_ms = max(1, math.ceil(timeout * 1000))
                session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            return fn(session)
        finally:
            session.close()

    def run(
        self,
        query_name: str,
        fn: Callable[[Session], T],
        deadline: Deadline | None = None,
    ) -> T:
        """
        Execute ``fn`` with a fresh session under a timeout.

        Raises:
            OperationTimeoutError: deadline already expired.
            QueryTimeoutError: the query did not finish in time.
            RuntimeError: the runner is closed.
        """
        if self.closed:
            raise RuntimeError("QueryRunner is closed")
        timeout = self.query_timeout_seconds
        if deadline is not None:
            timeout = deadline.bound(timeout)

        ctx = contextvars.copy_context()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cashflow-query")
        try:
            future = executor.submit(ctx.run, self._execute, fn, timeout)
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            logger.error(
                "query_timed_out",
                extra={"query": query_name, "timeout_seconds": round(timeout, 3)},
            )
            raise QueryTimeoutError(query_name, timeout) from exc
        finally:
            executor.shutdown(wait=False)

    def close(self) -> None:
        """Stop accepting queries; abandoned workers finish in the background."""
        self._closed.set()
