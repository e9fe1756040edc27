"""Database layer - engine, base classes and immutability listeners."""

from bilanz_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from bilanz_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from bilanz_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
]
