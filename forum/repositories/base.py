"""
Generic async repository over a single ORM model.

Repositories hand out immutable pydantic records rather than ORM instances,
so nothing read through them can be flushed back to the database.  Every
call opens its own short-lived session from the injected factory; there is
no session shared between calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import asc, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forum.database import Base
from forum.exceptions import RepositoryError

ModelT = TypeVar("ModelT", bound=Base)
RecordT = TypeVar("RecordT", bound=BaseModel)

ASCENDING = "asc"
DESCENDING = "desc"


@dataclass(frozen=True)
class Query:
    """
    Filter / sort / page description for ``Repository.fetch``.

    Attributes
    ----------
    filters:
        ``(column, value)`` pairs, combined with AND as equality tests.
    sorts:
        ``(column, direction)`` pairs applied in order; *direction* is
        ``"asc"`` or ``"desc"``.
    page:
        1-based page number.
    page_size:
        Number of records per page.
    page_count:
        Number of consecutive pages returned by one fetch.
    """

    filters: tuple[tuple[str, Any], ...] = ()
    sorts: tuple[tuple[str, str], ...] = ()
    page: int = 1
    page_size: int = 20
    page_count: int = 1

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.page_count < 1:
            raise ValueError(f"page_count must be >= 1, got {self.page_count}")
        for _, direction in self.sorts:
            if direction not in (ASCENDING, DESCENDING):
                raise ValueError(f"Unknown sort direction {direction!r}")

    @property
    def offset(self) -> int:
        """SQL OFFSET computed from the current page and page size."""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size * self.page_count


class Repository(Generic[ModelT, RecordT]):
    """Read accessors shared by every concrete repository."""

    model: type[ModelT]
    record: type[RecordT]

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return self.model.__tablename__

    def _column(self, field: str):
        """
        Return the column named *field*, refusing anything that is not a
        mapped column of the model.
        """
        if field not in self.model.__table__.columns:
            raise ValueError(f"{self.name} has no column {field!r}")
        return getattr(self.model, field)

    def _to_records(self, rows) -> list[RecordT]:
        return [self.record.model_validate(row) for row in rows]

    async def _all(self, stmt) -> list[RecordT]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return self._to_records(result.scalars().all())

    async def get(self, record_id: int) -> RecordT | None:
        """Return the record with primary key *record_id*, or None."""
        try:
            async with self._session_factory() as session:
                row = await session.get(self.model, record_id)
                return None if row is None else self.record.model_validate(row)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Gets {self.name} [{record_id}] failed") from exc

    async def fetch(self, query: Query) -> list[RecordT]:
        """
        Return the records matching *query*, in sort order.

        The primary key is appended as a final sort key (in the direction
        of the first sort key) so that rows with equal sort values always
        come back in the same order.
        """
        stmt = select(self.model)
        for field, value in query.filters:
            stmt = stmt.where(self._column(field) == value)

        for field, direction in query.sorts:
            col = self._column(field)
            stmt = stmt.order_by(desc(col) if direction == DESCENDING else asc(col))
        tie_break = query.sorts[0][1] if query.sorts else ASCENDING
        pk = self._column("id")
        stmt = stmt.order_by(desc(pk) if tie_break == DESCENDING else asc(pk))

        stmt = stmt.offset(query.offset).limit(query.limit)
        try:
            return await self._all(stmt)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Fetches {self.name} failed") from exc
