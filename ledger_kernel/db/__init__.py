"""Database layer - engine, base classes, unit of work and immutability."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from ledger_kernel.db.unit_of_work import RetryPolicy, UnitOfWork, is_transient_conflict

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "RetryPolicy",
    "UnitOfWork",
    "is_transient_conflict",
]
