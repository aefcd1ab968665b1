"""SQLAlchemy-backed record store used by the engine.

Every operation opens its own short-lived session. Driver failures surface as
``StoreError``; a missing row is reported as ``None`` (or an empty list),
never as an exception.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loadguard.core.errors import StoreError
from loadguard.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


def _where(model: type[Base], filters: Mapping[str, Any] | None) -> list:
    clauses = []
    for name, value in (filters or {}).items():
        column = getattr(model, name)
        clauses.append(column.is_(None) if value is None else column == value)
    return clauses


class Ledger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(self, record: ModelT) -> ModelT:
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
                return record
        except SQLAlchemyError as exc:
            raise StoreError(f"insert into {record.__tablename__} failed: {exc}") from exc

    async def upsert(
        self, model: type[ModelT], values: Mapping[str, Any], conflict_key: str
    ) -> ModelT:
        """Update the row matching ``values[conflict_key]`` or insert a new one."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(model).where(getattr(model, conflict_key) == values[conflict_key])
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = model(**values)
                    session.add(row)
                else:
                    for name, value in values.items():
                        setattr(row, name, value)
                await session.commit()
                return row
        except SQLAlchemyError as exc:
            raise StoreError(f"upsert into {model.__tablename__} failed: {exc}") from exc

    async def query(
        self,
        model: type[ModelT],
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[Any] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ModelT]:
        stmt = select(model).where(*_where(model, filters)).order_by(*order_by).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"query on {model.__tablename__} failed: {exc}") from exc

    async def find_latest(
        self,
        model: type[ModelT],
        filters: Mapping[str, Any] | None,
        order_by: Sequence[Any],
    ) -> ModelT | None:
        rows = await self.query(model, filters, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def get(self, model: type[ModelT], key: Any) -> ModelT | None:
        try:
            async with self._session_factory() as session:
                return await session.get(model, key)
        except SQLAlchemyError as exc:
            raise StoreError(f"lookup on {model.__tablename__} failed: {exc}") from exc

    async def update(
        self, model: type[ModelT], key: Any, values: Mapping[str, Any]
    ) -> ModelT | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(model, key)
                if row is None:
                    return None
                for name, value in values.items():
                    setattr(row, name, value)
                await session.commit()
                return row
        except SQLAlchemyError as exc:
            raise StoreError(f"update on {model.__tablename__} failed: {exc}") from exc
