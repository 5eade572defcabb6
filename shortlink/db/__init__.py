"""Database module for the short-link engine."""
from shortlink.db.base import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
)
from shortlink.db.session import SessionManager

__all__ = [
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "SessionManager",
]
