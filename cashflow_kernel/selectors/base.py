"""
Module: cashflow_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), delete(),
      commit(), or flush().
    - DTO return convention: selectors return frozen dataclasses, NOT ORM
      instances.  Query workers close their session as soon as the selector
      returns, so ORM instances would be detached.
    - Session ownership: the caller (QueryRunner) owns the session.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from cashflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session
