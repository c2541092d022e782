"""
BaseReader -- abstract base for the kernel's read services.

Responsibility:
    Common constructor and the "timeout means absence" policy shared by
    the Period Resolver, the Execution Data Reader, the Manual Override
    Reader and the facility directory.

Architecture position:
    Kernel > Services.  Readers never call back into the carryforward or
    working-capital services.

Invariants enforced:
    - A QueryTimeoutError is logged and converted into the caller-supplied
      absent value.
    - OperationTimeoutError and every other exception propagate, so that
      the top-level service can fall back or fail the result.
"""

from abc import ABC
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from cashflow_kernel.domain.deadline import Deadline
from cashflow_kernel.exceptions import QueryTimeoutError
from cashflow_kernel.logging_config import get_logger
from cashflow_kernel.selectors.reference_selector import ProjectInfo, ReferenceSelector
from cashflow_kernel.services.query_runner import QueryRunner

logger = get_logger("services.reader")

T = TypeVar("T")


class BaseReader(ABC):
    """
    Abstract base class for read services.

    Contract:
        Accepts a QueryRunner from the caller.  Never writes.
    """

    def __init__(self, runner: QueryRunner):
        self._runner = runner

    def _run_or_absent(
        self,
        query_name: str,
        fn: Callable[[Session], T],
        deadline: Deadline | None,
        absent: T,
        **log_fields: Any,
    ) -> T:
        try:
            return self._runner.run(query_name, fn, deadline)
        except QueryTimeoutError as exc:
            logger.error(
                "query_timeout_treated_as_absent",
                extra={"query": query_name, "timeout_seconds": exc.timeout_seconds, **log_fields},
            )
            return absent

    def find_project(
        self,
        project_type: str,
        deadline: Deadline | None = None,
    ) -> ProjectInfo | None:
        """Resolve a project type to its project; None when absent."""
        project = self._run_or_absent(
            "find_project_by_type",
            lambda session: ReferenceSelector(session).find_project_by_type(project_type),
            deadline,
            None,
            project_type=project_type,
        )
        if project is None:
            logger.warning("project_not_found", extra={"project_type": project_type})
        return project
