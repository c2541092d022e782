"""
Module: cashflow_kernel.selectors.period_selector
Responsibility: Read-only reporting period lookups.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - find_latest_before() orders by end_date, never by year/quarter
      arithmetic, so gaps in the period table and the first period of a
      cadence are handled without special cases.
"""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import select

from cashflow_kernel.models.reporting_period import PeriodType, ReportingPeriod
from cashflow_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PeriodInfo:
    """Detached view of a reporting period."""

    id: int
    year: int
    period_type: PeriodType
    start_date: date
    end_date: date

    @classmethod
    def from_model(cls, period: ReportingPeriod) -> "PeriodInfo":
        return cls(
            id=period.id,
            year=period.year,
            period_type=PeriodType(period.period_type),
            start_date=period.start_date,
            end_date=period.end_date,
        )


class PeriodSelector(BaseSelector[ReportingPeriod]):
    """Selector for reporting periods."""

    def find_by_id(self, period_id: int) -> PeriodInfo | None:
        period = self.session.get(ReportingPeriod, period_id)
        return PeriodInfo.from_model(period) if period is not None else None

    def find_latest_before(
        self,
        end_before: date,
        period_type: PeriodType,
    ) -> PeriodInfo | None:
        """
        Latest period of ``period_type`` whose end_date is strictly before
        ``end_before``.  Ties on end_date go to the highest id.
        """
        query = (
            select(ReportingPeriod)
            .where(
                ReportingPeriod.end_date < end_before,
                ReportingPeriod.period_type == PeriodType(period_type).value,
            )
            .order_by(ReportingPeriod.end_date.desc(), ReportingPeriod.id.desc())
            .limit(1)
        )
        period = self.session.execute(query).scalar_one_or_none()
        return PeriodInfo.from_model(period) if period is not None else None
