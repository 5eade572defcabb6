"""Generic repository for the short-link engine.

BaseRepository wraps the handful of SQL operations the link and click
repositories share and translates SQLAlchemy failures into RepositoryError,
so nothing above the repository layer has to know about the driver.
"""

from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar, Union
import logging

from pydantic import BaseModel
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

T = TypeVar("T", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Any failure of the underlying database."""
    pass


class DuplicateEntityError(RepositoryError):
    """A unique constraint rejected the write; ``field_name`` names the column."""

    def __init__(self, model_type: Type[SQLModel], field_name: str, value: Any):
        self.model_type = model_type
        self.field_name = field_name
        self.value = value
        model_name = getattr(model_type, "__name__", "Entity")
        super().__init__(f"{model_name} with {field_name}={value} already exists")


def _as_dict(data: Union[BaseModel, Dict[str, Any]], exclude_unset: bool = False) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data)


class BaseRepository(Generic[T, CreateSchemaType, UpdateSchemaType]):
    """
    Shared CRUD for one SQLModel table.

    Methods take the session as their first argument and never commit; the
    caller owns the transaction. Subclasses list their unique columns in
    ``unique_fields`` so constraint violations can be reported per column.
    """

    unique_fields: Sequence[str] = ()

    def __init__(self, model_type: Type[T]):
        self.model_type = model_type

    @property
    def name(self) -> str:
        return self.model_type.__name__

    def _where(self, filters: Dict[str, Any], operation: str) -> List[Any]:
        if not filters:
            raise ValueError(f"No conditions provided for {operation}")
        return [getattr(self.model_type, field) == value for field, value in filters.items()]

    def _conflicting_field(self, error: IntegrityError) -> Optional[str]:
        """
        Work out which unique column an IntegrityError is about.

        Only the parts of the driver message that name a column are matched,
        never the offending value, which may itself contain a column name.
        PostgreSQL reports ``Key (col)=(value)`` and the constraint name,
        SQLite reports ``UNIQUE constraint failed: table.col``.
        """
        message = str(error.orig if error.orig is not None else error)
        table = getattr(self.model_type, "__tablename__", self.name.lower())
        for field in self.unique_fields:
            markers = (
                f"Key ({field})=",
                f"{table}.{field}",
                f'"ix_{table}_{field}"',
                f'"{table}_{field}_key"',
            )
            if any(marker in message for marker in markers):
                return field
        return None

    def _failed(self, action: str, error: SQLAlchemyError) -> RepositoryError:
        logger.error(f"Error {action} {self.name}: {error}")
        return RepositoryError(f"Database error {action} {self.name}: {error}")

    async def get_by_id(self, db: AsyncSession, id: Any) -> Optional[T]:
        try:
            return await db.get(self.model_type, id)
        except SQLAlchemyError as e:
            raise self._failed("loading", e) from e

    async def get_one_by(self, db: AsyncSession, **filters) -> Optional[T]:
        """Return the first row whose columns equal the given values, or None."""
        query = select(self.model_type).where(*self._where(filters, "lookup")).limit(1)
        try:
            result = await db.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise self._failed("loading", e) from e

    async def get_many(
        self,
        db: AsyncSession,
        *conditions,
        order_by: Sequence[Any] = (),
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Get a page of rows matching all ``conditions``.

        Args:
            db: Database session
            conditions: SQLAlchemy boolean expressions; none means every row
            order_by: Columns or expressions to sort by
            skip: Number of rows to skip
            limit: Maximum number of rows, None for no limit
        """
        query = select(self.model_type)
        if conditions:
            query = query.where(*conditions)
        if order_by:
            query = query.order_by(*order_by)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        try:
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._failed("listing", e) from e

    async def create(self, db: AsyncSession, data: Union[CreateSchemaType, Dict[str, Any]]) -> T:
        """
        Insert a row and return it with its generated id.

        Args:
            db: Database session
            data: Column values, as a schema instance or a plain dict

        Raises:
            DuplicateEntityError: When a unique column already holds the value
            RepositoryError: On any other database error
        """
        values = _as_dict(data)
        entity = self.model_type(**values)
        try:
            db.add(entity)
            # Flush so constraint violations surface here
            await db.flush()
            await db.refresh(entity)
            return entity
        except IntegrityError as e:
            await db.rollback()
            field = self._conflicting_field(e)
            if field is None:
                raise self._failed("creating", e) from e
            raise DuplicateEntityError(self.model_type, field, values.get(field)) from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise self._failed("creating", e) from e

    async def update_entity(
        self,
        db: AsyncSession,
        entity: T,
        data: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> T:
        """Apply the set fields of ``data`` to a loaded row."""
        for key, value in _as_dict(data, exclude_unset=True).items():
            setattr(entity, key, value)
        try:
            await db.flush()
            await db.refresh(entity)
            return entity
        except SQLAlchemyError as e:
            raise self._failed("updating", e) from e

    async def count(self, db: AsyncSession, *conditions) -> int:
        query = select(func.count()).select_from(self.model_type)
        if conditions:
            query = query.where(*conditions)
        try:
            result = await db.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise self._failed("counting", e) from e

    async def exists(self, db: AsyncSession, **filters) -> bool:
        return await self.count(db, *self._where(filters, "exists check")) > 0

    async def bulk_update(self, db: AsyncSession, filters: Dict[str, Any], values: Dict[str, Any]) -> int:
        """
        Update every row matching ``filters`` in one statement.

        Values may be SQL expressions such as ``Model.column + 1``.

        Returns:
            Number of rows updated
        """
        stmt = (
            update(self.model_type)
            .where(*self._where(filters, "bulk update"))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
            return result.rowcount
        except SQLAlchemyError as e:
            raise self._failed("bulk updating", e) from e

    async def bulk_delete(self, db: AsyncSession, **filters) -> int:
        """Delete every row matching ``filters``; returns the number deleted."""
        stmt = delete(self.model_type).where(*self._where(filters, "bulk delete"))
        try:
            result = await db.execute(stmt)
            return result.rowcount
        except SQLAlchemyError as e:
            raise self._failed("bulk deleting", e) from e
