"""Database layer - engine, base classes and immutability listeners."""

from docflow_kernel.db.base import Base, TrackedBase, UUIDString
from docflow_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)

__all__ = [
    "build_engine",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
]
