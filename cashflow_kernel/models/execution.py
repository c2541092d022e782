"""
Module: cashflow_kernel.models.execution
Responsibility: ORM persistence for execution form data and the
    event-to-activity mappings used to interpret it.
Architecture position: Kernel > Models.  May import from db/base.py only.

Two row shapes share schema_form_data_entries:

    Form-level record   entity_id IS NULL.  form_data holds the full
                        "activities" map and the optional "vatReceivables"
                        structure for one (period, facility, project).
    Activity-level row  entity_id = activity id.  form_data["amount"] holds
                        the value entered for that activity.  Rows whose
                        activity maps to CASH_EQUIVALENTS_BEGIN are manual
                        opening-balance overrides; rows mapped to the
                        receivables/payables codes are balance rows.

Invariants enforced:
    - Rows are written only by the data-entry workflow; this engine reads.
    - form_data and entry_metadata are JSON documents of unknown quality.
      Every consumer parses them through cashflow_kernel.domain or
      cashflow_kernel.db.types; raw values are never trusted.
"""

from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cashflow_kernel.db.base import Base, TrackedBase

EXECUTION_ENTITY_TYPE = "execution"


class AccountingEvent(Base):
    """Statement line concept (e.g. PAYABLES) that activities feed."""

    __tablename__ = "events"

    __table_args__ = (
        UniqueConstraint("code", name="uq_event_code"),
    )

    code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AccountingEvent {self.code}>"


class EventMapping(Base):
    """Links an activity to the accounting event it supplies."""

    __tablename__ = "configurable_event_mappings"

    __table_args__ = (
        Index("idx_event_mapping_activity", "activity_id"),
    )

    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("events.id"),
        nullable=False,
    )

    activity_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )


class ExecutionEntry(TrackedBase):
    """
    One row of persisted execution form data.

    Contract:
        Keyed by (reporting_period_id, facility_id, project_id, entity_type)
        plus entity_id for activity-level rows.
    """

    __tablename__ = "schema_form_data_entries"

    __table_args__ = (
        Index(
            "idx_form_data_lookup",
            "reporting_period_id",
            "facility_id",
            "project_id",
            "entity_type",
        ),
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=EXECUTION_ENTITY_TYPE,
    )

    # Activity id; NULL for the form-level record
    entity_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    reporting_period_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reporting_periods.id"),
        nullable=False,
    )

    facility_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("facilities.id"),
        nullable=False,
    )

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id"),
        nullable=False,
    )

    form_data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    # "metadata" is reserved on declarative classes
    entry_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ExecutionEntry {self.id}: period={self.reporting_period_id} "
            f"facility={self.facility_id} entity={self.entity_id}>"
        )
