"""
Deadline -- overall time budget for one top-level call.

Responsibility:
    Tracks how much of an operation's budget remains so that each query can
    be bounded by ``min(per-query timeout, remaining budget)``, and signals
    when the whole budget is spent.

Architecture position:
    Kernel > Domain.  Reads a monotonic clock only.

Failure modes:
    - OperationTimeoutError from check() once the budget is exhausted.
"""

import time
from collections.abc import Callable

from cashflow_kernel.exceptions import OperationTimeoutError


class Deadline:
    """
    Monotonic deadline for one operation.

    Contract:
        Created at the start of a top-level call; consulted before every
        query.  Not shared between calls.
    """

    def __init__(
        self,
        operation: str,
        budget_seconds: float,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.operation = operation
        self.budget_seconds = budget_seconds
        self._monotonic = monotonic
        self._expires_at = monotonic() + budget_seconds

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self) -> None:
        """Raise OperationTimeoutError if the budget is spent."""
        if self.expired:
            raise OperationTimeoutError(self.operation, self.budget_seconds)

    def bound(self, timeout_seconds: float) -> float:
        """Clamp a per-query timeout to the remaining budget."""
        self.check()
        return min(timeout_seconds, self.remaining())
