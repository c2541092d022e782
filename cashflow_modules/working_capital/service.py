"""
Working Capital Service (``cashflow_modules.working_capital.service``).

Responsibility
--------------
Computes period-over-period changes in receivables and payables for a
facility or facility set and converts them into signed cash flow
adjustments for the indirect method.

Architecture position
---------------------
**Modules layer** -- orchestration over ``PeriodResolver``,
``ExecutionDataReader`` and ``FacilityDirectory``; arithmetic and warning
policy live in ``calculations.py``.  Independent of the carryforward
module.

Invariants enforced
-------------------
* ``calculate_changes`` never raises.
* A missing previous period is a zero baseline plus a warning.
* A timed-out balance query counts as zero and adds a warning naming it.
* Per-facility breakdowns follow the input facility order.

Failure modes
-------------
* No facility supplied, or any unexpected exception  -> zero result with
  ``metadata.error`` set and a warning.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal

from sqlalchemy.orm import Session, sessionmaker

from cashflow_kernel.db.types import ZERO
from cashflow_kernel.domain.clock import Clock, SystemClock
from cashflow_kernel.exceptions import NoFacilitySelectedError, QueryTimeoutError
from cashflow_kernel.logging_config import LogContext, get_logger
from cashflow_kernel.services.execution_reader import ExecutionDataReader
from cashflow_kernel.services.facility_directory import FacilityDirectory
from cashflow_kernel.services.period_resolver import PeriodResolver
from cashflow_kernel.services.query_runner import QueryRunner

from cashflow_modules.working_capital.calculations import (
    build_change,
    build_facility_entry,
    facilities_missing_data,
    missing_facility_warning,
    validate_changes,
)
from cashflow_modules.working_capital.config import WorkingCapitalConfig
from cashflow_modules.working_capital.models import (
    AccountClass,
    CalculateChangesParams,
    FacilityWorkingCapital,
    WorkingCapitalCalculationResult,
    WorkingCapitalChange,
    WorkingCapitalMetadata,
)

logger = get_logger("modules.working_capital.service")

NO_PREVIOUS_PERIOD_WARNING = (
    "No previous period found. Using zero as baseline for previous period balances."
)


def balance_timeout_warning(
    period_label: str,
    account_class: AccountClass,
    scope: str = "",
) -> str:
    """Warning for a balance query that timed out and was read as zero."""
    return (
        f"{period_label} period {account_class.value.lower()} query{scope} "
        "timed out; treated as zero"
    )


class WorkingCapitalCalculator:
    """
    Working capital change calculation.

    Contract
    --------
    * ``calculate_changes(params)`` returns a
      ``WorkingCapitalCalculationResult`` for receivables and payables.
    * Owns a ``QueryRunner``; call ``close()`` when done.

    Non-goals
    ---------
    * Does NOT compute beginning cash (see CarryforwardService).
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        config: WorkingCapitalConfig | None = None,
    ):
        self._clock = clock or SystemClock()
        self._config = config or WorkingCapitalConfig.with_defaults()
        self._runner = QueryRunner(
            session_factory,
            query_timeout_seconds=self._config.query_timeout_seconds,
        )
        self._periods = PeriodResolver(
            self._runner,
            fiscal_year_start_month=self._config.fiscal_year_start_month,
        )
        self._execution = ExecutionDataReader(
            self._runner,
            clock=self._clock,
            fiscal_year_start_month=self._config.fiscal_year_start_month,
        )
        self._facilities = FacilityDirectory(self._runner)

        logger.info(
            "working_capital_calculator_initialized",
            extra={
                "receivables_event_codes": self._config.receivables_event_codes,
                "payables_event_codes": self._config.payables_event_codes,
            },
        )

    def close(self) -> None:
        self._runner.close()

    def __enter__(self) -> WorkingCapitalCalculator:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _event_codes(self, account_class: AccountClass) -> tuple[str, ...]:
        if account_class is AccountClass.RECEIVABLES:
            return self._config.receivables_event_codes
        return self._config.payables_event_codes

    def calculate_changes(
        self,
        params: CalculateChangesParams,
    ) -> WorkingCapitalCalculationResult:
        """Receivables and payables changes between the period and its predecessor."""
        facility_ids = params.effective_facility_ids
        with LogContext.bind(
            period_id=params.period_id,
            facility_id=facility_ids[0] if len(facility_ids) == 1 else None,
            project_type=params.project_type,
        ):
            logger.info(
                "working_capital_calculation_started",
                extra={"project_id": params.project_id, "facility_ids": list(facility_ids)},
            )
            try:
                return self._calculate(params, facility_ids)
            except Exception as exc:
                logger.error("working_capital_calculation_failed", exc_info=True)
                return self._error_result(params, facility_ids, exc)

    def _balances(
        self,
        account_class: AccountClass,
        period_id: int | None,
        project_id: int,
        facility_ids: Sequence[int],
        period_label: str,
        warnings: list[str],
        scope: str = "",
    ) -> dict[str, Decimal]:
        codes = self._event_codes(account_class)
        if period_id is None:
            return {code: ZERO for code in codes}
        try:
            return self._execution.read_balances_by_event_code(
                period_id, project_id, facility_ids, codes
            )
        except QueryTimeoutError as exc:
            logger.warning(
                "balance_query_timed_out",
                extra={
                    "account_class": account_class,
                    "balance_period_id": period_id,
                    "facility_ids": list(facility_ids),
                    "timeout_seconds": exc.timeout_seconds,
                },
            )
            warnings.append(balance_timeout_warning(period_label, account_class, scope))
            return {code: ZERO for code in codes}

    def _calculate(
        self,
        params: CalculateChangesParams,
        facility_ids: tuple[int, ...],
    ) -> WorkingCapitalCalculationResult:
        if not facility_ids:
            raise NoFacilitySelectedError("calculate_changes")

        warnings: list[str] = []
        previous = self._periods.find_previous(params.period_id)
        previous_id = previous.id if previous is not None else None
        if previous is None:
            warnings.append(NO_PREVIOUS_PERIOD_WARNING)
            logger.warning("working_capital_zero_baseline")

        changes: dict[AccountClass, WorkingCapitalChange] = {}
        for account_class in AccountClass:
            current = self._balances(
                account_class, params.period_id, params.project_id, facility_ids,
                "Current", warnings,
            )
            prior = self._balances(
                account_class, previous_id, params.project_id, facility_ids,
                "Previous", warnings,
            )
            changes[account_class] = build_change(
                account_class, current, prior, self._event_codes(account_class)
            )

        receivables = changes[AccountClass.RECEIVABLES]
        payables = changes[AccountClass.PAYABLES]
        logger.info(
            "working_capital_changes_calculated",
            extra={
                "receivables_change": receivables.change,
                "receivables_adjustment": receivables.cash_flow_adjustment,
                "payables_change": payables.change,
                "payables_adjustment": payables.cash_flow_adjustment,
            },
        )
        warnings.extend(
            validate_changes(receivables, payables, self._config.variance_threshold)
        )

        if len(facility_ids) > 1:
            names = self._facilities.names_for(facility_ids)
            receivables_breakdown = self._facility_breakdown(
                AccountClass.RECEIVABLES, params, previous_id, facility_ids, names, warnings
            )
            payables_breakdown = self._facility_breakdown(
                AccountClass.PAYABLES, params, previous_id, facility_ids, names, warnings
            )
            receivables = _with_breakdown(receivables, receivables_breakdown)
            payables = _with_breakdown(payables, payables_breakdown)

            missing = facilities_missing_data(
                facility_ids, (receivables_breakdown, payables_breakdown)
            )
            warning = missing_facility_warning(missing, len(facility_ids))
            if warning is not None:
                warnings.append(warning)
            elif missing:
                logger.debug(
                    "no_facility_has_balance_data",
                    extra={"facility_count": len(facility_ids)},
                )

        return WorkingCapitalCalculationResult(
            receivables_change=receivables,
            payables_change=payables,
            metadata=WorkingCapitalMetadata(
                current_period_id=params.period_id,
                previous_period_id=previous_id,
                facilities_included=facility_ids,
                calculation_timestamp=self._clock.now_utc(),
            ),
            warnings=tuple(warnings),
        )

    def _facility_breakdown(
        self,
        account_class: AccountClass,
        params: CalculateChangesParams,
        previous_id: int | None,
        facility_ids: tuple[int, ...],
        names: Mapping[int, str],
        warnings: list[str],
    ) -> tuple[FacilityWorkingCapital, ...]:
        entries = []
        for facility_id in facility_ids:
            scope = f" for {names[facility_id]} (ID: {facility_id})"
            entries.append(
                build_facility_entry(
                    account_class,
                    facility_id,
                    names[facility_id],
                    self._balances(
                        account_class, params.period_id, params.project_id, [facility_id],
                        "Current", warnings, scope,
                    ),
                    self._balances(
                        account_class, previous_id, params.project_id, [facility_id],
                        "Previous", warnings, scope,
                    ),
                )
            )
        breakdown = tuple(entries)
        logger.debug(
            "facility_breakdown_generated",
            extra={
                "account_class": account_class,
                "facility_count": len(breakdown),
                "total_change": sum((entry.change for entry in breakdown), ZERO),
            },
        )
        return breakdown

    def _error_result(
        self,
        params: CalculateChangesParams,
        facility_ids: tuple[int, ...],
        error: Exception,
    ) -> WorkingCapitalCalculationResult:
        message = str(error)
        return WorkingCapitalCalculationResult(
            receivables_change=WorkingCapitalChange(
                account_class=AccountClass.RECEIVABLES,
                event_codes=self._config.receivables_event_codes,
            ),
            payables_change=WorkingCapitalChange(
                account_class=AccountClass.PAYABLES,
                event_codes=self._config.payables_event_codes,
            ),
            metadata=WorkingCapitalMetadata(
                current_period_id=params.period_id,
                facilities_included=facility_ids,
                calculation_timestamp=self._clock.now_utc(),
                error=message,
            ),
            warnings=(f"Working capital calculation failed: {message}",),
        )


def _with_breakdown(
    change: WorkingCapitalChange,
    breakdown: tuple[FacilityWorkingCapital, ...],
) -> WorkingCapitalChange:
    return WorkingCapitalChange(
        account_class=change.account_class,
        current_balance=change.current_balance,
        previous_balance=change.previous_balance,
        change=change.change,
        cash_flow_adjustment=change.cash_flow_adjustment,
        event_codes=change.event_codes,
        facility_breakdown=breakdown,
    )
