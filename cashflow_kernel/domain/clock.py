"""
Clock -- the engine's single source of "now".

Responsibility:
    Two figures depend on the current time:

    * the fiscal quarter whose VAT receivable slot (``q1``..``q4``) counts
      towards ending cash, taken from ``now()`` when ending cash is read;
    * the ``timestamp`` / ``calculation_timestamp`` stamped on every
      carryforward and working-capital result, taken from ``now_utc()``.

    Services receive a Clock through their constructor and never call
    ``datetime.now()`` themselves, so a fixed clock makes both figures
    reproducible.

Architecture position:
    Kernel > Domain.  SystemClock is the only part that reads the host.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

# 2024-01-01 falls in fiscal Q3 of a July fiscal year
DEFAULT_FIXED_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """
    Source of the current time for VAT quarter selection and result stamps.

    Guarantees:
        - ``now()`` is timezone-aware.
        - ``now_utc()`` is ``now()`` normalized to UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Fixed clock for reproducible results.

    Two calls with the same inputs render to identical dicts only when the
    clock does not move, so this clock never advances on its own.
    """

    def __init__(self, fixed_time: datetime | None = None):
        fixed = fixed_time or DEFAULT_FIXED_TIME
        if fixed.tzinfo is None:
            raise ValueError("fixed_time must be timezone-aware")
        self._fixed_time = fixed

    def now(self) -> datetime:
        return self._fixed_time
