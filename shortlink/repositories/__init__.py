"""
Repository package for data access operations.

This package implements the Repository pattern to abstract database operations
from the service layer. RecordStore is the port the services depend on.
"""

from shortlink.repositories.base import (
    BaseRepository,
    RepositoryError,
    DuplicateEntityError,
)
from shortlink.repositories.link_repository import LinkRepository
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.store import RecordStore, SQLRecordStore

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "DuplicateEntityError",
    "LinkRepository",
    "ClickRepository",
    "RecordStore",
    "SQLRecordStore",
]
