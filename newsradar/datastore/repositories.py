"""
Repository layer - data access for keyed JSON documents.
"""

import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsradar.datastore.engine import Database
from newsradar.datastore.models import CachedJsonDB


def _naive_utc(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


class CachedJsonRepository:
    """Keyed JSON documents with expiry, bound to one session."""

    def __init__(self, session: AsyncSession, clock: Callable[[], float] = time.time):
        self.session = session
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        """Get a non-expired document, or None."""
        rows = await self.get_many([key])
        return rows.get(key)

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        if not keys:
            return {}
        result = await self.session.execute(
            select(CachedJsonDB).where(
                CachedJsonDB.key.in_(keys),
                CachedJsonDB.expires_at > _naive_utc(self._clock()),
            )
        )

        documents: dict[str, Any] = {}
        for row in result.scalars().all():
            try:
                documents[row.key] = json.loads(row.value_json)
            except json.JSONDecodeError as e:
                logger.warning(f"Failed to parse cached JSON for {row.key}: {e}")
        return documents

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Insert or update a document."""
        now = self._clock()
        value_json = json.dumps(value, ensure_ascii=False)
        expires_at = _naive_utc(now) + timedelta(seconds=ttl_seconds)

        existing = await self.session.get(CachedJsonDB, key)
        if existing:
            existing.value_json = value_json
            existing.updated_at = _naive_utc(now)
            existing.expires_at = expires_at
        else:
            self.session.add(
                CachedJsonDB(
                    key=key,
                    value_json=value_json,
                    updated_at=_naive_utc(now),
                    expires_at=expires_at,
                )
            )
        await self.session.flush()

    async def cleanup_expired(self) -> int:
        """Delete expired documents."""
        result = await self.session.execute(
            delete(CachedJsonDB).where(
                CachedJsonDB.expires_at <= _naive_utc(self._clock())
            )
        )
        deleted = result.rowcount or 0
        if deleted > 0:
            logger.debug(f"Cleaned up {deleted} expired JSON documents")
        return deleted


class SqlJsonStore:
    """
    JSON store backed by the database, interchangeable with ``CacheManager``.

    Every call runs in its own committed session.
    """

    def __init__(self, database: Database, clock: Callable[[], float] = time.time):
        self.database = database
        self._clock = clock

    async def get_json(self, key: str) -> Any | None:
        async with self.database.session() as session:
            return await CachedJsonRepository(session, self._clock).get(key)

    async def mget_json(self, keys: list[str]) -> list[Any | None]:
        async with self.database.session() as session:
            found = await CachedJsonRepository(session, self._clock).get_many(keys)
        return [found.get(k) for k in keys]

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        async with self.database.session() as session:
            await CachedJsonRepository(session, self._clock).set(key, value, ttl_seconds)

    async def cleanup_expired(self) -> int:
        async with self.database.session() as session:
            return await CachedJsonRepository(session, self._clock).cleanup_expired()
