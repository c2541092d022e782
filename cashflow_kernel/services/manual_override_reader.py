"""
ManualOverrideReader -- user-entered opening cash balances.

Responsibility:
    Fetches the manual "opening balance" entries of a period, i.e. the
    execution rows whose activity maps to the opening-cash event code,
    and reduces them to one amount plus an optional justification note.

Architecture position:
    Kernel > Services -- read-only.

Invariants enforced:
    - Several rows for the same scope are SUMMED, not rejected.  A warning
      is logged listing the entry ids.
    - Rows with malformed amounts are discarded with a logged warning.  A
      row without an amount counts as zero.
    - The reason comes from the first valid row only.
    - Absence of project or rows yields amount zero and no reason.

Failure modes:
    - OperationTimeoutError propagates when the caller's deadline expires.
    - Data-store errors propagate to the calling service.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from cashflow_kernel.db.types import ZERO, parse_amount
from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.domain.override_reason import extract_override_reason
from cashflow_kernel.exceptions import MalformedAmountError
from cashflow_kernel.logging_config import get_logger
from cashflow_kernel.selectors.execution_selector import ExecutionSelector
from cashflow_kernel.services.base import BaseReader
from cashflow_kernel.services.query_runner import QueryRunner

logger = get_logger("services.manual_override_reader")

OPENING_CASH_EVENT_CODE = "CASH_EQUIVALENTS_BEGIN"


@dataclass(frozen=True)
class ManualOpeningBalance:
    """Aggregated manual opening balance."""

    amount: Decimal = ZERO
    reason: str | None = None
    entry_ids: tuple[int, ...] = ()

    @property
    def has_entry(self) -> bool:
        return self.amount > 0


class ManualOverrideReader(BaseReader):
    """Reader for manual opening-balance overrides."""

    def __init__(
        self,
        runner: QueryRunner,
        opening_cash_event_code: str = OPENING_CASH_EVENT_CODE,
    ):
        super().__init__(runner)
        self._event_code = opening_cash_event_code

    def read_manual_opening_balance(
        self,
        period_id: int,
        *,
        project_type: str,
        facility_id: int | None = None,
        facility_ids: Sequence[int] | None = None,
        deadline: Deadline | None = None,
    ) -> ManualOpeningBalance:
        """
        Manual opening balance for a period and project.

        Args:
            period_id: Reporting period the override was entered for.
            project_type: Resolved to a project first.
            facility_id: Restrict to one facility.
            facility_ids: Restrict to a facility set (used when
                aggregating).  Ignored when facility_id is given.
            deadline: Overall deadline of the calling operation.
        """
        project = self.find_project(project_type, deadline)
        if project is None:
            return ManualOpeningBalance()

        scope = [facility_id] if facility_id is not None else (
            list(facility_ids) if facility_ids else None
        )
        rows = self._run_or_absent(
            "find_manual_opening_balance",
            lambda session: ExecutionSelector(session).find_override_rows(
                period_id, project.id, self._event_code, scope
            ),
            deadline,
            [],
            period_id=period_id,
            facility_id=facility_id,
        )
        if not rows:
            logger.debug(
                "manual_opening_balance_not_found",
                extra={"period_id": period_id, "facility_id": facility_id},
            )
            return ManualOpeningBalance()

        total = ZERO
        valid = []
        for row in rows:
            try:
                amount = parse_amount(row.raw_amount, f"manual entry {row.entry_id}")
            except MalformedAmountError as exc:
                logger.warning(
                    "manual_entry_amount_invalid",
                    extra={"entry_id": row.entry_id, "detail": str(exc)},
                )
                continue
            total += amount if amount is not None else ZERO
            valid.append(row)

        if len(valid) < len(rows):
            logger.warning(
                "manual_entries_skipped",
                extra={"skipped": len(rows) - len(valid), "total_rows": len(rows)},
            )

        reason = None
        if valid:
            reason = extract_override_reason(valid[0].metadata, valid[0].form_data)

        entry_ids = tuple(row.entry_id for row in rows)
        if len(rows) > 1:
            logger.warning(
                "multiple_manual_entries_aggregated",
                extra={"entry_ids": list(entry_ids), "amount": total},
            )

        logger.info(
            "manual_opening_balance_found",
            extra={
                "period_id": period_id,
                "entry_count": len(rows),
                "amount": total,
                "has_reason": reason is not None,
            },
        )
        return ManualOpeningBalance(amount=total, reason=reason, entry_ids=entry_ids)
