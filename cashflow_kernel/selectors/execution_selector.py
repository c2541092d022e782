"""
Module: cashflow_kernel.selectors.execution_selector
Responsibility: Read-only queries over execution form data and the
    event-to-activity mappings.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Amounts are returned raw (as stored in form_data["amount"]).  Parsing
      and summation happen in the reader, in Python, so that JSON extraction
      does not depend on the SQL dialect and malformed values can be
      reported individually.
    - Rows are returned in id order, so "first row" is well defined.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select

from cashflow_kernel.models.execution import (
    EXECUTION_ENTITY_TYPE,
    AccountingEvent,
    EventMapping,
    ExecutionEntry,
)
from cashflow_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ExecutionRow:
    """Form-level execution record, detached."""

    id: int
    reporting_period_id: int
    facility_id: int
    project_id: int
    form_data: Any


@dataclass(frozen=True)
class EventAmountRow:
    """Activity-level row joined to its accounting event."""

    entry_id: int
    facility_id: int
    event_code: str
    raw_amount: Any
    form_data: Any
    metadata: Any


class ExecutionSelector(BaseSelector[ExecutionEntry]):
    """Selector for execution entries."""

    def find_execution_record(
        self,
        period_id: int,
        facility_id: int,
        project_id: int,
        entity_type: str = EXECUTION_ENTITY_TYPE,
    ) -> ExecutionRow | None:
        """The form-level record for a (period, facility, project) triple."""
        query = (
            select(ExecutionEntry)
            .where(
                ExecutionEntry.entity_type == entity_type,
                ExecutionEntry.entity_id.is_(None),
                ExecutionEntry.reporting_period_id == period_id,
                ExecutionEntry.facility_id == facility_id,
                ExecutionEntry.project_id == project_id,
            )
            .order_by(ExecutionEntry.id)
            .limit(1)
        )
        entry = self.session.execute(query).scalar_one_or_none()
        if entry is None:
            return None
        return ExecutionRow(
            id=entry.id,
            reporting_period_id=entry.reporting_period_id,
            facility_id=entry.facility_id,
            project_id=entry.project_id,
            form_data=entry.form_data,
        )

    def _event_rows_query(self, period_id: int, project_id: int, event_codes: Sequence[str]):
        return (
            select(
                ExecutionEntry.id,
                ExecutionEntry.facility_id,
                ExecutionEntry.form_data,
                ExecutionEntry.entry_metadata,
                AccountingEvent.code,
            )
            .join(EventMapping, ExecutionEntry.entity_id == EventMapping.activity_id)
            .join(AccountingEvent, EventMapping.event_id == AccountingEvent.id)
            .where(
                ExecutionEntry.reporting_period_id == period_id,
                ExecutionEntry.project_id == project_id,
                AccountingEvent.code.in_(list(event_codes)),
            )
            .order_by(ExecutionEntry.id)
        )

    def _to_rows(self, query) -> list[EventAmountRow]:
        rows = []
        for row in self.session.execute(query).all():
            form_data = row.form_data
            raw_amount = form_data.get("amount") if isinstance(form_data, dict) else None
            rows.append(
                EventAmountRow(
                    entry_id=row.id,
                    facility_id=row.facility_id,
                    event_code=row.code,
                    raw_amount=raw_amount,
                    form_data=form_data,
                    metadata=row.entry_metadata,
                )
            )
        return rows

    def find_amount_rows_by_event_codes(
        self,
        period_id: int,
        project_id: int,
        facility_ids: Sequence[int],
        event_codes: Sequence[str],
        entity_type: str = EXECUTION_ENTITY_TYPE,
    ) -> list[EventAmountRow]:
        """Activity rows for ``event_codes`` within one project, period and facility set."""
        if not facility_ids or not event_codes:
            return []
        query = self._event_rows_query(period_id, project_id, event_codes).where(
            ExecutionEntry.entity_type == entity_type,
            ExecutionEntry.facility_id.in_(list(facility_ids)),
        )
        return self._to_rows(query)

    def find_override_rows(
        self,
        period_id: int,
        project_id: int,
        event_code: str,
        facility_ids: Sequence[int] | None = None,
    ) -> list[EventAmountRow]:
        """
        Rows mapped to the opening-cash event code.

        Without ``facility_ids`` every facility of the period and project
        is included.
        """
        query = self._event_rows_query(period_id, project_id, [event_code])
        if facility_ids is not None:
            query = query.where(ExecutionEntry.facility_id.in_(list(facility_ids)))
        return self._to_rows(query)
