"""
Module: cashflow_kernel.models.reference
Responsibility: ORM persistence for facilities and projects, the reference
    entities that execution data is keyed by.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one project is resolved per project type; when several rows
      share a type the lowest id wins (see ReferenceSelector).
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from cashflow_kernel.db.base import TrackedBase


class Facility(TrackedBase):
    """Health facility or other reporting entity.  Display name only."""

    __tablename__ = "facilities"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Facility {self.id}: {self.name}>"


class Project(TrackedBase):
    """Funded programme, categorised by project type (e.g. "HIV")."""

    __tablename__ = "projects"

    __table_args__ = (
        Index("idx_project_type", "project_type"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    project_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.project_type}>"
