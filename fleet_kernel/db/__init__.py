"""Database layer - engine, base classes, and append-only enforcement."""

from fleet_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from fleet_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
