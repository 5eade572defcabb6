"""Session management for database operations.

This module provides a session manager for SQLAlchemy async sessions
with proper lifecycle management and transaction support.
"""

from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar
import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

# Generic return type for transactional operations
T = TypeVar("T")


class SessionManager:
    """Session manager for database operations with context manager support.

    Provides a higher-level API for session management with automatic
    transaction handling. Each context gets its own session, so independent
    operations may run concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a session that is always closed on exit."""
        session = self.session_factory()
        try:
            yield session
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction_context(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for a database session with transaction support.

        Automatically commits on successful completion or rolls back on error.

        Yields:
            AsyncSession: SQLAlchemy async session

        Example:
            ```python
            async with manager.transaction_context() as db:
                db.add(Link(original_url="https://example.com", code="abc1234"))
                # Commits automatically on context exit if no errors
            ```
        """
        async with self.session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def execute_in_transaction(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        session: Optional[AsyncSession] = None
    ) -> T:
        """Execute a database operation within a transaction.

        Args:
            operation: Callable that takes a session and performs database operations
            session: Optional existing session (creates a new one if not provided)

        Returns:
            The result of the operation
        """
        if session:
            try:
                result = await operation(session)
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                raise

        async with self.transaction_context() as new_session:
            return await operation(new_session)
