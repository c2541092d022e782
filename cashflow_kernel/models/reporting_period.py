"""
Module: cashflow_kernel.models.reporting_period
Responsibility: ORM persistence for reporting periods -- the date ranges that
    execution data is entered against and statements are produced for.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - For a given period_type, periods are totally ordered by end_date.
      The "previous period" of P is the same-type period with the latest
      end_date strictly before P.start_date.
    - (period_type, start_date) is unique.

Failure modes:
    - IntegrityError on a duplicate (period_type, start_date).
"""

from datetime import date
from enum import Enum

from sqlalchemy import Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cashflow_kernel.db.base import TrackedBase


class PeriodType(str, Enum):
    """Cadence of a reporting period."""

    ANNUAL = "ANNUAL"
    QUARTERLY = "QUARTERLY"
    MONTHLY = "MONTHLY"


class ReportingPeriod(TrackedBase):
    """
    Reporting period for execution data and statements.

    Guarantees:
        - start_date <= end_date (enforced by the data-entry workflow).

    Non-goals:
        - Periods are read-only here; no open/close lifecycle is modelled.
    """

    __tablename__ = "reporting_periods"

    __table_args__ = (
        UniqueConstraint("period_type", "start_date", name="uq_reporting_period_start"),
        Index("idx_reporting_period_type_end", "period_type", "end_date"),
    )

    # Fiscal year label (e.g. 2024 for FY2024-25)
    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    period_type: Mapped[PeriodType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Period boundaries (inclusive)
    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ReportingPeriod {self.id}: {self.period_type} {self.start_date}..{self.end_date}>"
