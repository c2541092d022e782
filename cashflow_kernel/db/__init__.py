"""Database layer - engine, base classes, and types."""

from cashflow_kernel.db.base import Base, TrackedBase
from cashflow_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
)
from cashflow_kernel.db.types import ZERO, format_money, parse_amount, round_money

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "create_tables",
    "Base",
    "TrackedBase",
    "ZERO",
    "format_money",
    "parse_amount",
    "round_money",
]
