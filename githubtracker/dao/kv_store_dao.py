"""SqlKeyValueStore — kv_entries table operations."""

from __future__ import annotations

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from githubtracker.core.database import create_tables
from githubtracker.models.kv_entry import KeyValueEntry

log = structlog.get_logger("githubtracker.store")


class SqlKeyValueStore:
    """:class:`~githubtracker.core.store.KeyValueStore` backed by SQLite.

    Each operation runs in its own short-lived session; rows are only ever
    replaced wholesale, so concurrent writers never see partial values.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            engine, expire_on_commit=False
        )
        self._ready = False

    async def _ensure_schema(self) -> None:
        if not self._ready:
            await create_tables(self._engine)
            self._ready = True

    # ── read ──────────────────────────────────────────────────────────────

    async def get(self, key: str) -> str | None:
        await self._ensure_schema()
        async with self._session_factory() as session:
            result = await session.execute(
                select(KeyValueEntry.value).where(KeyValueEntry.key == key)
            )
            return result.scalar_one_or_none()

    # ── write ─────────────────────────────────────────────────────────────

    async def set(self, key: str, value: str) -> None:
        await self._ensure_schema()
        stmt = (
            insert(KeyValueEntry)
            .values(key=key, value=value)
            .on_conflict_do_update(
                index_elements=["key"],
                set_={"value": value, "updated_at": func.now()},
            )
        )
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(stmt)

    async def remove(self, key: str) -> None:
        await self._ensure_schema()
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))

    async def clear(self) -> None:
        await self._ensure_schema()
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(delete(KeyValueEntry))
        log.info("store.cleared", rows=result.rowcount)

    async def close(self) -> None:
        await self._engine.dispose()
