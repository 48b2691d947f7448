"""Database layer - engine, base classes and money types."""

from fund_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from fund_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_settings,
    init_engine_from_url,
    session_scope,
)
from fund_kernel.db.types import positive_money, round_money, to_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "init_engine_from_url",
    "init_engine_from_settings",
    "session_scope",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "round_money",
    "to_money",
    "positive_money",
]
