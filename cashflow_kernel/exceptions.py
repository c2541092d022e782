"""
Typed Exception Hierarchy for the Cashflow Kernel.

===============================================================================
WHAT IS (AND IS NOT) AN EXCEPTION HERE
===============================================================================

The carryforward and working-capital calculations degrade instead of
failing.  Four conditions are distinguished:

  - Absence (no previous period, no execution record, no manual entry,
    no project for a type).  NOT an exception.  Readers return None or
    zero and the caller folds the condition into its warnings.
  - Malformed data (non-numeric amount, non-object payload section).
    Raised as a DataError at the parsing boundary, caught by the reader,
    logged, and treated as zero.
  - Deadline expiry.  QueryTimeoutError for a single query (treated as
    absence by readers) and OperationTimeoutError for the overall budget
    of a top-level call (propagates to the service, which falls back).
  - Anything else.  Caught at the top of the public service entry points
    and converted into a failed result.  Never re-raised to the caller.

Every exception carries a machine-readable ``code`` and structured
attributes so that log lines and callers never parse message strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CashflowKernelError (base)
    |
    +-- DeadlineError
    |   +-- QueryTimeoutError
    |   +-- OperationTimeoutError
    |
    +-- DataError
    |   +-- MalformedAmountError
    |
    +-- SelectionError
        +-- NoFacilitySelectedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Deadline        | QUERY_TIMEOUT               | One query exceeded its time budget
                | OPERATION_TIMEOUT           | Whole call exceeded its overall budget
----------------|-----------------------------|-----------------------------------------
Data            | MALFORMED_AMOUNT            | Amount is not a finite number
----------------|-----------------------------|-----------------------------------------
Selection       | NO_FACILITY_SELECTED        | Neither facility_id nor facility_ids
"""

from typing import Any


class CashflowKernelError(Exception):
    """
    Base exception for all cashflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CASHFLOW_KERNEL_ERROR"


# Deadline exceptions


class DeadlineError(CashflowKernelError):
    """Base exception for time-budget violations."""

    code: str = "DEADLINE_ERROR"


class QueryTimeoutError(DeadlineError):
    """A single data-store query did not finish within its budget."""

    code: str = "QUERY_TIMEOUT"

    def __init__(self, query_name: str, timeout_seconds: float):
        self.query_name = query_name
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Query '{query_name}' timed out after {timeout_seconds:.3f}s"
        )


class OperationTimeoutError(DeadlineError):
    """The overall budget of a top-level call was exhausted."""

    code: str = "OPERATION_TIMEOUT"

    def __init__(self, operation: str, budget_seconds: float):
        self.operation = operation
        self.budget_seconds = budget_seconds
        super().__init__(
            f"Operation '{operation}' exceeded its {budget_seconds:.3f}s budget"
        )


# Data exceptions


class DataError(CashflowKernelError):
    """Base exception for malformed persisted data."""

    code: str = "DATA_ERROR"


class MalformedAmountError(DataError):
    """A stored amount is not a finite number."""

    code: str = "MALFORMED_AMOUNT"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = repr(value)
        super().__init__(f"Invalid numeric value for {field}: {value!r}")


# Selection exceptions


class SelectionError(CashflowKernelError):
    """Base exception for invalid caller selections."""

    code: str = "SELECTION_ERROR"


class NoFacilitySelectedError(SelectionError):
    """Neither a single facility nor a facility set was supplied."""

    code: str = "NO_FACILITY_SELECTED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("No facility ID provided")

