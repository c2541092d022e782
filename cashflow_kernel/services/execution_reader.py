"""
ExecutionDataReader -- execution records, ending cash and event-code balances.

Responsibility:
    Fetches the form-level execution record of a (period, facility, project)
    triple and derives ending cash from it; sums activity-level amounts
    grouped by accounting event code for the working-capital calculation.

Architecture position:
    Kernel > Services -- read-only.  Parsing is delegated to
    cashflow_kernel.domain.execution_payload; amounts to db.types.

Invariants enforced:
    - A missing record is absence (None / zero), never an error.
    - Malformed payload content is logged at WARNING and contributes zero.
    - Returned amounts are finite Decimals.

Failure modes:
    - QueryTimeoutError propagates from read_balances_by_event_code().
    - OperationTimeoutError propagates when the caller's deadline expires.
    - Data-store errors propagate to the calling service.
"""

from collections.abc import Sequence
from decimal import Decimal

from cashflow_kernel.db.types import ZERO, parse_amount
from cashflow_kernel.domain.clock import Clock, SystemClock
from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.domain.execution_payload import (
    CASH_CODE_SUFFIXES,
    CASH_SECTION,
    ExecutionRecord,
    ending_cash,
    parse_execution_record,
)
from cashflow_kernel.domain.fiscal_calendar import FISCAL_YEAR_START_MONTH, fiscal_quarter
from cashflow_kernel.exceptions import MalformedAmountError
from cashflow_kernel.logging_config import get_logger
from cashflow_kernel.selectors.execution_selector import ExecutionSelector
from cashflow_kernel.services.base import BaseReader
from cashflow_kernel.services.query_runner import QueryRunner

logger = get_logger("services.execution_reader")


class ExecutionDataReader(BaseReader):
    """
    Reader for persisted execution data.

    Contract:
        All methods return absence (None, zero, or zero-filled maps) rather
        than raising for missing or malformed data.

    Non-goals:
        - Does not resolve previous periods; callers pass the period to read.
    """

    def __init__(
        self,
        runner: QueryRunner,
        clock: Clock | None = None,
        fiscal_year_start_month: int = FISCAL_YEAR_START_MONTH,
        cash_section: str = CASH_SECTION,
        cash_code_suffixes: tuple[str, str, str] = CASH_CODE_SUFFIXES,
    ):
        super().__init__(runner)
        self._clock = clock or SystemClock()
        self._fiscal_year_start_month = fiscal_year_start_month
        self._cash_section = cash_section
        self._cash_code_suffixes = cash_code_suffixes

    def read_execution(
        self,
        period_id: int,
        facility_id: int,
        project_id: int,
        deadline: Deadline | None = None,
    ) -> ExecutionRecord | None:
        """Parsed form-level record for the triple, or None when absent."""
        row = self._run_or_absent(
            "find_execution_record",
            lambda session: ExecutionSelector(session).find_execution_record(
                period_id, facility_id, project_id
            ),
            deadline,
            None,
            period_id=period_id,
            facility_id=facility_id,
            project_id=project_id,
        )
        if row is None:
            logger.debug(
                "execution_record_not_found",
                extra={"period_id": period_id, "facility_id": facility_id, "project_id": project_id},
            )
            return None

        record = parse_execution_record(row.form_data)
        if record.issues:
            logger.warning(
                "execution_payload_issues",
                extra={"entry_id": row.id, "issues": list(record.issues)},
            )
        return record

    def current_quarter(self) -> int:
        """Fiscal quarter of the clock's current date (selects the VAT slot)."""
        return fiscal_quarter(self._clock.now().date(), self._fiscal_year_start_month)

    def read_ending_cash(
        self,
        period_id: int,
        facility_id: int,
        project_type: str,
        deadline: Deadline | None = None,
    ) -> Decimal:
        """
        Ending cash of one facility in one period.

        Returns zero when the project, the record, or every cash slot is
        absent.
        """
        project = self.find_project(project_type, deadline)
        if project is None:
            return ZERO

        record = self.read_execution(period_id, facility_id, project.id, deadline)
        if record is None:
            return ZERO

        quarter = self.current_quarter()
        breakdown = ending_cash(
            record,
            quarter,
            section=self._cash_section,
            suffixes=self._cash_code_suffixes,
        )
        logger.info(
            "ending_cash_calculated",
            extra={
                "period_id": period_id,
                "facility_id": facility_id,
                "project_type": project_type,
                "vat_quarter": quarter,
                "cash_at_bank": breakdown.cash_at_bank,
                "petty_cash": breakdown.petty_cash,
                "other_receivables": breakdown.other_receivables,
                "vat_receivables": breakdown.vat_receivables,
                "ending_cash": breakdown.total,
            },
        )
        return breakdown.total

    def read_balances_by_event_code(
        self,
        period_id: int,
        project_id: int,
        facility_ids: Sequence[int],
        event_codes: Sequence[str],
        deadline: Deadline | None = None,
    ) -> dict[str, Decimal]:
        """
        Sum of activity amounts per event code.

        Every requested code is present in the result; codes without rows
        map to zero.  Rows with malformed amounts are skipped.

        A timeout propagates rather than reading as zero balances.

        Raises:
            QueryTimeoutError: the balance query did not finish in time.
        """
        totals: dict[str, Decimal] = {code: ZERO for code in event_codes}
        rows = self._runner.run(
            "find_execution_records_by_event_codes",
            lambda session: ExecutionSelector(session).find_amount_rows_by_event_codes(
                period_id, project_id, facility_ids, event_codes
            ),
            deadline,
        )

        skipped = []
        for row in rows:
            try:
                amount = parse_amount(row.raw_amount, f"entry {row.entry_id} amount")
            except MalformedAmountError as exc:
                skipped.append(row.entry_id)
                logger.warning(
                    "balance_row_amount_invalid",
                    extra={"entry_id": row.entry_id, "event_code": row.event_code, "detail": str(exc)},
                )
                continue
            if amount is not None:
                totals[row.event_code] = totals.get(row.event_code, ZERO) + amount

        logger.debug(
            "balances_by_event_code",
            extra={
                "period_id": period_id,
                "project_id": project_id,
                "facility_ids": list(facility_ids),
                "row_count": len(rows),
                "skipped_entry_ids": skipped,
                "totals": totals,
            },
        )
        return totals
