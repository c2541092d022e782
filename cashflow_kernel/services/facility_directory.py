"""
FacilityDirectory -- display names for facility breakdowns.

Unknown facilities, and every facility when the lookup times out, are
named ``Facility {id}``.
"""

from collections.abc import Sequence

from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.logging_config import get_logger
from cashflow_kernel.selectors.reference_selector import ReferenceSelector
from cashflow_kernel.services.base import BaseReader

logger = get_logger("services.facility_directory")


def default_facility_name(facility_id: int) -> str:
    return f"Facility {facility_id}"


class FacilityDirectory(BaseReader):
    """Facility id to name lookup."""

    def names_for(
        self,
        facility_ids: Sequence[int],
        deadline: Deadline | None = None,
    ) -> dict[int, str]:
        """Name per requested id, in request order."""
        facilities = self._run_or_absent(
            "find_facilities_by_ids",
            lambda session: ReferenceSelector(session).find_facilities_by_ids(facility_ids),
            deadline,
            [],
            facility_count=len(facility_ids),
        )
        found = {facility.id: facility.name for facility in facilities}
        missing = [fid for fid in facility_ids if fid not in found]
        if missing:
            logger.debug("facility_names_defaulted", extra={"facility_ids": missing})
        return {fid: found.get(fid, default_facility_name(fid)) for fid in facility_ids}
