"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction over SQLAlchemy 2.0 async
sessions. Repositories encapsulate data access; services own transactions
and business rules.

Design Notes
------------
This base repository provides:
- Primary-key and condition lookups, optionally with SELECT FOR UPDATE
- Existence/counting utilities
- Race-free conditional insert (`insert_if_absent`) used for the attempt
  ledger gate and lazy score creation
- Structured debug logging for every operation

What this class does NOT do:
- Manage transactions (DatabaseService.get_transaction handles that)
- Contain business logic

Row locks are a no-op on SQLite; the conditional insert and the atomic
UPDATE in the score repository keep the award path correct without them.

Usage
-----
    from src.database.models import UserScore
    from src.modules.shared import BaseRepository

    class UserScoreRepository(BaseRepository[UserScore]):
        async def find_by_user(self, session, user_id):
            return await self.find_one_where(session, UserScore.user_id == user_id)
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")

# Dialects with INSERT ... ON CONFLICT DO NOTHING
_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Get a single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(
            self.model_class.id == id_value  # type: ignore[attr-defined]
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self._model_name}",
            extra={
                "model": self._model_name,
                "id": id_value,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key with a row lock."""
        return await self.get(session, id_value, for_update=True)

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ORDER BY clauses
            for_update: If True, use SELECT FOR UPDATE
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)
        if for_update:
            stmt = stmt.with_for_update()
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )

        return instances

    async def exists(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self._model_name}",
            extra={"model": self._model_name, "count": count},
        )

        return count

    async def insert_if_absent(
        self,
        session: AsyncSession,
        values: Mapping[str, Any],
        conflict_columns: Sequence[str],
    ) -> bool:
        """
        INSERT ... ON CONFLICT DO NOTHING against a unique constraint.

        Exactly one of any number of concurrent callers sees True for the
        same conflict key; the others see False. No exception is raised
        for the duplicate, so the surrounding transaction stays usable.

        Args:
            session: Database session (inside a transaction)
            values: Column values for the new row
            conflict_columns: Columns of the unique constraint to test

        Returns:
            True if this call inserted the row, False if it already existed
        """
        dialect = session.get_bind().dialect.name
        insert_factory = _CONFLICT_INSERTS.get(dialect)
        if insert_factory is None:
            raise NotImplementedError(
                f"Conditional insert is not supported on dialect '{dialect}'"
            )

        stmt = (
            insert_factory(self.model_class)
            .values(**dict(values))
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        result = await session.execute(stmt)
        inserted = result.rowcount == 1

        self.log.debug(
            f"Repository.insert_if_absent: {self._model_name}",
            extra={
                "model": self._model_name,
                "conflict_columns": list(conflict_columns),
                "inserted": inserted,
            },
        )

        return inserted

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)

        self.log.debug(
            f"Repository.add: {self._model_name}",
            extra={"model": self._model_name},
        )

        return instance

    def add_many(self, session: AsyncSession, instances: Sequence[T]) -> List[T]:
        session.add_all(instances)

        self.log.debug(
            f"Repository.add_many: {self._model_name}",
            extra={"model": self._model_name, "count": len(instances)},
        )

        return list(instances)

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)

        self.log.debug(
            f"Repository.delete: {self._model_name}",
            extra={"model": self._model_name},
        )

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()

    async def refresh(
        self,
        session: AsyncSession,
        instance: T,
        attribute_names: Optional[List[str]] = None,
    ) -> T:
        """Reload an instance (or selected attributes) from the database."""
        await session.refresh(instance, attribute_names=attribute_names)

        self.log.debug(
            f"Repository.refresh: {self._model_name}",
            extra={"model": self._model_name, "attributes": attribute_names},
        )

        return instance

    @staticmethod
    def to_dict(instance: Any, columns: Sequence[str]) -> Dict[str, Any]:
        return {column: getattr(instance, column) for column in columns}
