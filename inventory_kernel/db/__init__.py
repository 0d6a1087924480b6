"""Database layer - engine, base classes, and keyed locks."""

from inventory_kernel.db.base import UUID, Base, TimestampedBase, UUIDString
from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
    supports_row_locks,
)
from inventory_kernel.db.locking import KeyedLockRegistry

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "supports_row_locks",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UUID",
    "KeyedLockRegistry",
]
