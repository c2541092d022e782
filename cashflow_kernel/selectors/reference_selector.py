"""
Module: cashflow_kernel.selectors.reference_selector
Responsibility: Read-only project and facility lookups.
Architecture position: Kernel > Selectors.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import select

from cashflow_kernel.models.reference import Facility, Project
from cashflow_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ProjectInfo:
    id: int
    name: str
    project_type: str


@dataclass(frozen=True)
class FacilityInfo:
    id: int
    name: str


class ReferenceSelector(BaseSelector[Project]):
    """Selector for projects and facilities."""

    def find_project_by_type(self, project_type: str) -> ProjectInfo | None:
        """First project (lowest id) of the given type."""
        query = (
            select(Project)
            .where(Project.project_type == project_type)
            .order_by(Project.id)
            .limit(1)
        )
        project = self.session.execute(query).scalar_one_or_none()
        if project is None:
            return None
        return ProjectInfo(id=project.id, name=project.name, project_type=project.project_type)

    def find_facilities_by_ids(self, facility_ids: Sequence[int]) -> list[FacilityInfo]:
        """Facilities among ``facility_ids``, ordered by id.  Unknown ids are omitted."""
        if not facility_ids:
            return []
        query = (
            select(Facility.id, Facility.name)
            .where(Facility.id.in_(list(facility_ids)))
            .order_by(Facility.id)
        )
        return [
            FacilityInfo(id=row.id, name=row.name)
            for row in self.session.execute(query).all()
        ]
