"""Database layer - engine, session helpers and declarative base classes."""

from ledger_kernel.db.base import UUID, Base, ScopedBase, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "ScopedBase",
    "UUIDString",
    "UUID",
]
