"""
Carryforward Service (``cashflow_modules.carryforward.service``).

Responsibility
--------------
Produces the beginning cash of a reporting period for one facility or an
aggregated facility set.  The previous period's ending cash is carried
forward unless a manual opening balance overrides it; discrepancies and
edge cases become warnings on the result.

Architecture position
---------------------
**Modules layer** -- orchestration over the kernel readers
(``PeriodResolver``, ``ExecutionDataReader``, ``ManualOverrideReader``,
``FacilityDirectory``).  Warning policy lives in ``validator.py``.
Constructor: ``session_factory`` + ``clock`` + ``config``.

Invariants enforced
-------------------
* ``get_beginning_cash`` and ``fallback_to_manual_entry`` never raise.
* Every query runs under ``min(query timeout, remaining overall budget)``.
  A single query timeout is absence; an exhausted overall budget falls
  back to the manual entry.
* Aggregated breakdowns list every requested facility in input order and
  the aggregated amount equals their sum.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* Overall budget exhausted  -> ``FALLBACK`` via fallback_to_manual_entry().
* No facility supplied  -> ``FALLBACK`` via fallback_to_manual_entry().
* Any other exception (e.g. the data store is unreachable)  -> failed
  ``FALLBACK`` result carrying the message in ``metadata.error``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session, sessionmaker

from cashflow_kernel.db.types import ZERO
from cashflow_kernel.domain.clock import Clock, SystemClock
from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.exceptions import NoFacilitySelectedError, OperationTimeoutError
from cashflow_kernel.logging_config import LogContext, get_logger
from cashflow_kernel.selectors.period_selector import PeriodInfo
from cashflow_kernel.services.execution_reader import ExecutionDataReader
from cashflow_kernel.services.facility_directory import FacilityDirectory
from cashflow_kernel.services.manual_override_reader import (
    ManualOpeningBalance,
    ManualOverrideReader,
)
from cashflow_kernel.services.period_resolver import PeriodResolver
from cashflow_kernel.services.query_runner import QueryRunner

from cashflow_modules.carryforward.config import CarryforwardConfig
from cashflow_modules.carryforward.models import (
    CarryforwardMetadata,
    CarryforwardOptions,
    CarryforwardResult,
    CarryforwardSource,
    FacilityEndingCash,
)
from cashflow_modules.carryforward.validator import (
    ZERO_ENDING_CASH_WARNING,
    balance_warnings,
    detect_discrepancy,
    generate_discrepancy_warning,
)

logger = get_logger("modules.carryforward.service")

OPERATION_NAME = "get_beginning_cash"
OPERATION_TIMED_OUT = "Carryforward operation timed out"
NO_ENDING_CASH = "No previous period ending cash found from execution data"


@dataclass(frozen=True)
class _Aggregation:
    """Previous-period ending cash summed over a facility set."""

    total: Decimal
    breakdown: tuple[FacilityEndingCash, ...] = ()
    missing: tuple[int, ...] = ()
    warnings: tuple[str, ...] = ()


class CarryforwardService:
    """
    Beginning cash calculation.

    Contract
    --------
    * ``get_beginning_cash(options)`` returns a ``CarryforwardResult``;
      ``success`` is False only when no figure could be determined and
      the beginning cash defaulted to zero.
    * The service owns a ``QueryRunner``; call ``close()`` (or use the
      service as a context manager) to release its worker threads.

    Guarantees
    ----------
    * Calls share no mutable state; each builds its own ``Deadline``.
    * Clock is injectable for deterministic timestamps and VAT quarter.

    Non-goals
    ---------
    * Does NOT persist results or write to the data store.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        config: CarryforwardConfig | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock or SystemClock()
        self._config = config or CarryforwardConfig.with_defaults()
        self._monotonic = monotonic
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
            cash_section=self._config.cash_section,
            cash_code_suffixes=self._config.cash_code_suffixes,
        )
        self._overrides = ManualOverrideReader(
            self._runner,
            opening_cash_event_code=self._config.opening_cash_event_code,
        )
        self._facilities = FacilityDirectory(self._runner)

        logger.info(
            "carryforward_service_initialized",
            extra={
                "query_timeout_seconds": self._config.query_timeout_seconds,
                "overall_timeout_seconds": self._config.overall_timeout_seconds,
            },
        )

    def close(self) -> None:
        self._runner.close()

    def __enter__(self) -> CarryforwardService:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # Public API
    # =========================================================================

    def get_beginning_cash(self, options: CarryforwardOptions) -> CarryforwardResult:
        """
        Beginning cash for ``options.period_id``.

        Order of evaluation: manual entry; previous period; carryforward
        amount (single or aggregated); zero-data fallback; override and
        discrepancy detection; plain carryforward.
        """
        with LogContext.bind(
            period_id=options.period_id,
            facility_id=options.single_facility_id,
            project_type=options.project_type,
            statement_code=options.statement_code,
        ):
            logger.info(
                "beginning_cash_requested",
                extra={
                    "facility_ids": list(options.facility_ids),
                    "aggregated": options.is_aggregated,
                },
            )
            deadline = Deadline(
                OPERATION_NAME,
                self._config.overall_timeout_seconds,
                monotonic=self._monotonic,
            )
            try:
                result = self._perform_carryforward(options, deadline)
            except OperationTimeoutError:
                logger.error(
                    "carryforward_operation_timed_out",
                    extra={"budget_seconds": self._config.overall_timeout_seconds},
                )
                return self.fallback_to_manual_entry(options, OPERATION_TIMED_OUT)
            except NoFacilitySelectedError as exc:
                logger.error("no_facility_selected")
                return self.fallback_to_manual_entry(options, str(exc))
            except Exception as exc:
                logger.error("carryforward_failed", exc_info=True)
                return self._handle_error(exc)

            logger.info(
                "beginning_cash_determined",
                extra={
                    "source": result.source,
                    "beginning_cash": result.beginning_cash,
                    "warning_count": len(result.warnings),
                },
            )
            return result

    def fallback_to_manual_entry(
        self,
        options: CarryforwardOptions,
        reason: str,
    ) -> CarryforwardResult:
        """
        Re-read the manual entry on its own and use it, or default to zero.

        Runs without the overall deadline, which may already be spent; each
        query keeps its own timeout.  Never raises: a failure here is folded
        into the warnings of a zero result.
        """
        logger.warning("falling_back_to_manual_entry", extra={"reason": reason})
        try:
            manual = self._read_manual(options, deadline=None)
        except Exception as exc:
            message = str(exc)
            logger.error("manual_entry_fallback_failed", exc_info=True)
            return CarryforwardResult(
                success=False,
                beginning_cash=ZERO,
                source=CarryforwardSource.FALLBACK,
                metadata=CarryforwardMetadata(
                    error=f"{reason}. Additionally, fallback to manual entry failed: {message}",
                    timestamp=self._clock.now_utc(),
                ),
                warnings=(
                    f"Carryforward failed: {reason}",
                    f"Fallback to manual entry also failed: {message}",
                    "Beginning cash defaulted to zero.",
                ),
            )

        warnings = []
        if manual.has_entry:
            warnings.append(f"Carryforward failed: {reason}. Using manual entry.")
            if manual.reason:
                warnings.append(f"Manual entry reason: {manual.reason}")
            logger.info("manual_entry_fallback_used", extra={"amount": manual.amount})
        else:
            warnings.append(
                f"Carryforward failed: {reason}. "
                "No manual entry available, defaulting to zero."
            )
            logger.warning("manual_entry_fallback_empty")

        return CarryforwardResult(
            success=manual.has_entry,
            beginning_cash=manual.amount if manual.has_entry else ZERO,
            source=CarryforwardSource.FALLBACK,
            metadata=CarryforwardMetadata(
                error=reason,
                manual_entry_amount=manual.amount if manual.has_entry else None,
                override_reason=manual.reason,
                timestamp=self._clock.now_utc(),
            ),
            warnings=tuple(warnings),
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _read_manual(
        self,
        options: CarryforwardOptions,
        deadline: Deadline | None,
    ) -> ManualOpeningBalance:
        if options.is_aggregated:
            return self._overrides.read_manual_opening_balance(
                options.period_id,
                project_type=options.project_type,
                facility_ids=options.facility_ids,
                deadline=deadline,
            )
        return self._overrides.read_manual_opening_balance(
            options.period_id,
            project_type=options.project_type,
            facility_id=options.single_facility_id,
            deadline=deadline,
        )

    def _perform_carryforward(
        self,
        options: CarryforwardOptions,
        deadline: Deadline,
    ) -> CarryforwardResult:
        manual = self._read_manual(options, deadline)
        logger.debug(
            "manual_entry_resolved",
            extra={"amount": manual.amount, "has_reason": manual.reason is not None},
        )

        previous = self._periods.find_previous(options.period_id, deadline)
        if previous is None:
            return self._no_previous_period(manual)

        if options.is_aggregated:
            aggregation = self._aggregate(
                previous.id, options.facility_ids, options.project_type, deadline
            )
            source = CarryforwardSource.CARRYFORWARD_AGGREGATED
        else:
            facility_id = options.single_facility_id
            if facility_id is None:
                raise NoFacilitySelectedError(OPERATION_NAME)
            amount = self._execution.read_ending_cash(
                previous.id, facility_id, options.project_type, deadline
            )
            if amount == 0 and not manual.has_entry:
                logger.info("no_previous_ending_cash", extra={"previous_period_id": previous.id})
                return self.fallback_to_manual_entry(options, NO_ENDING_CASH)
            aggregation = _Aggregation(total=amount)
            source = CarryforwardSource.CARRYFORWARD

        # Results computed after the budget ran out are discarded
        deadline.check()

        if manual.has_entry:
            return self._with_manual_entry(previous, aggregation, manual)
        return self._carried_forward(previous, aggregation, source)

    def _no_previous_period(self, manual: ManualOpeningBalance) -> CarryforwardResult:
        timestamp = self._clock.now_utc()
        if manual.has_entry:
            return CarryforwardResult(
                success=True,
                beginning_cash=manual.amount,
                source=CarryforwardSource.MANUAL_ENTRY,
                metadata=CarryforwardMetadata(
                    manual_entry_amount=manual.amount,
                    override_reason=manual.reason,
                    timestamp=timestamp,
                ),
                warnings=(
                    "No previous period found. Using manual entry.",
                    *balance_warnings(manual.amount, self._config),
                ),
            )
        return CarryforwardResult(
            success=False,
            beginning_cash=ZERO,
            source=CarryforwardSource.FALLBACK,
            metadata=CarryforwardMetadata(
                error="No previous period found",
                timestamp=timestamp,
            ),
            warnings=("No previous period found and no manual entry available.",),
        )

    def _with_manual_entry(
        self,
        previous: PeriodInfo,
        aggregation: _Aggregation,
        manual: ManualOpeningBalance,
    ) -> CarryforwardResult:
        carryforward = aggregation.total
        check = detect_discrepancy(carryforward, manual.amount, self._config)

        warnings: list[str] = []
        if check.exceeds_tolerance:
            discrepancy = manual.amount - carryforward
            warnings.append(
                generate_discrepancy_warning(carryforward, manual.amount, manual.reason)
            )
            logger.warning(
                "manual_entry_overrides_carryforward",
                extra={
                    "manual_entry": manual.amount,
                    "carryforward": carryforward,
                    "discrepancy": discrepancy,
                },
            )
        else:
            discrepancy = ZERO
            logger.debug("manual_entry_matches_carryforward")
        warnings.extend(aggregation.warnings)
        warnings.extend(balance_warnings(manual.amount, self._config))

        return CarryforwardResult(
            success=True,
            beginning_cash=manual.amount,
            source=CarryforwardSource.MANUAL_ENTRY,
            metadata=CarryforwardMetadata(
                previous_period_id=previous.id,
                previous_period_ending_cash=carryforward,
                manual_entry_amount=manual.amount,
                discrepancy=discrepancy,
                override_reason=manual.reason,
                facility_breakdown=aggregation.breakdown,
                facilities_with_missing_data=aggregation.missing,
                timestamp=self._clock.now_utc(),
            ),
            warnings=tuple(warnings),
        )

    def _carried_forward(
        self,
        previous: PeriodInfo,
        aggregation: _Aggregation,
        source: CarryforwardSource,
    ) -> CarryforwardResult:
        warnings: list[str] = []
        if aggregation.total == 0:
            logger.debug("previous_ending_cash_zero")
            warnings.append(ZERO_ENDING_CASH_WARNING)
        else:
            logger.info(
                "carried_forward",
                extra={"previous_period_id": previous.id, "amount": aggregation.total},
            )
        warnings.extend(aggregation.warnings)
        warnings.extend(balance_warnings(aggregation.total, self._config))

        return CarryforwardResult(
            success=True,
            beginning_cash=aggregation.total,
            source=source,
            metadata=CarryforwardMetadata(
                previous_period_id=previous.id,
                previous_period_ending_cash=aggregation.total,
                facility_breakdown=aggregation.breakdown,
                facilities_with_missing_data=aggregation.missing,
                timestamp=self._clock.now_utc(),
            ),
            warnings=tuple(warnings),
        )

    def _aggregate(
        self,
        previous_period_id: int,
        facility_ids: tuple[int, ...],
        project_type: str,
        deadline: Deadline,
    ) -> _Aggregation:
        """Sum ending cash across facilities, one facility at a time in input order."""
        names = self._facilities.names_for(facility_ids, deadline)

        total = ZERO
        breakdown = []
        missing = []
        for facility_id in facility_ids:
            ending = self._execution.read_ending_cash(
                previous_period_id, facility_id, project_type, deadline
            )
            breakdown.append(
                FacilityEndingCash(
                    facility_id=facility_id,
                    facility_name=names[facility_id],
                    ending_cash=ending,
                )
            )
            if ending == 0:
                missing.append(facility_id)
            total += ending

        warnings = []
        if missing and len(missing) < len(facility_ids):
            described = ", ".join(f"{names[fid]} (ID: {fid})" for fid in missing)
            warnings.append(
                f"Missing previous period statements for {len(missing)} "
                f"out of {len(facility_ids)} facilities: {described}"
            )
            logger.warning(
                "facilities_missing_previous_data",
                extra={"facility_ids": missing, "facility_count": len(facility_ids)},
            )
        elif missing:
            logger.debug(
                "no_facility_has_previous_data",
                extra={"facility_count": len(facility_ids)},
            )

        logger.info(
            "aggregated_ending_cash",
            extra={
                "previous_period_id": previous_period_id,
                "facility_count": len(facility_ids),
                "facilities_with_data": len(facility_ids) - len(missing),
                "total": total,
            },
        )
        return _Aggregation(
            total=total,
            breakdown=tuple(breakdown),
            missing=tuple(missing),
            warnings=tuple(warnings),
        )

    def _handle_error(self, error: Exception) -> CarryforwardResult:
        message = str(error)
        return CarryforwardResult(
            success=False,
            beginning_cash=ZERO,
            source=CarryforwardSource.FALLBACK,
            metadata=CarryforwardMetadata(
                error=f"Carryforward failed: {message}",
                timestamp=self._clock.now_utc(),
            ),
            warnings=(f"Unable to retrieve previous period data: {message}",),
        )
