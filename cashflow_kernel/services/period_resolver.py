"""
PeriodResolver -- previous reporting period lookup.

Responsibility:
    Given a reporting period, returns the chronologically preceding period
    of the same cadence (annual, quarterly or monthly).

Architecture position:
    Kernel > Services -- read-only.  Used by CarryforwardService and
    WorkingCapitalCalculator.

Invariants enforced:
    - previous(P) is the same-cadence period with the greatest end_date
      strictly before P.start_date.  Year, quarter and month rollover need
      no arithmetic; the fiscal quarter or month is derived only for the
      diagnostic log line.
    - No previous period (first period of a cadence) is absence, not an
      error.  An unknown current period is absence too.

Failure modes:
    - OperationTimeoutError propagates when the caller's deadline expires.
"""

from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.domain.fiscal_calendar import FISCAL_YEAR_START_MONTH, describe_period
from cashflow_kernel.logging_config import get_logger
from cashflow_kernel.selectors.period_selector import PeriodInfo, PeriodSelector
from cashflow_kernel.services.base import BaseReader
from cashflow_kernel.services.query_runner import QueryRunner

logger = get_logger("services.period_resolver")


class PeriodResolver(BaseReader):
    """Resolves the previous period of the same cadence."""

    def __init__(
        self,
        runner: QueryRunner,
        fiscal_year_start_month: int = FISCAL_YEAR_START_MONTH,
    ):
        super().__init__(runner)
        self._fiscal_year_start_month = fiscal_year_start_month

    def find_period(self, period_id: int, deadline: Deadline | None = None) -> PeriodInfo | None:
        return self._run_or_absent(
            "find_reporting_period",
            lambda session: PeriodSelector(session).find_by_id(period_id),
            deadline,
            None,
            period_id=period_id,
        )

    def find_previous(
        self,
        period_id: int,
        deadline: Deadline | None = None,
    ) -> PeriodInfo | None:
        """
        Previous period of the same cadence, or None.

        Preconditions: period_id identifies a reporting period.
        Postconditions: Returns a PeriodInfo whose end_date is before the
            current period's start_date, or None when no such period exists,
            the current period is unknown, or a query timed out.
        """
        current = self.find_period(period_id, deadline)
        if current is None:
            logger.warning("current_period_not_found", extra={"period_id": period_id})
            return None

        logger.debug(
            "previous_period_lookup",
            extra={
                "period_id": current.id,
                "year": current.year,
                "period_type": current.period_type.value,
                "fiscal_position": describe_period(
                    current.period_type.value,
                    current.start_date,
                    self._fiscal_year_start_month,
                ),
                "start_date": current.start_date,
            },
        )

        previous = self._run_or_absent(
            "find_reporting_periods_before",
            lambda session: PeriodSelector(session).find_latest_before(
                current.start_date, current.period_type
            ),
            deadline,
            None,
            period_id=period_id,
        )

        if previous is None:
            logger.info(
                "no_previous_period",
                extra={"period_id": current.id, "period_type": current.period_type.value},
            )
        else:
            logger.debug(
                "previous_period_found",
                extra={
                    "period_id": current.id,
                    "previous_period_id": previous.id,
                    "previous_end_date": previous.end_date,
                },
            )
        return previous
