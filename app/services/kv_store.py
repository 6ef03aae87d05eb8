"""Storage adapter: ordered tuple keys over a single SQL table.

Keys are tuples of str/int segments, e.g. ``("report", "4542")`` or
``("dialog", 1001)``. They are stored JSON-encoded so that a key prefix is
also a string prefix, which is what ``list()`` relies on.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.kv_entry import KVEntry

logger = logging.getLogger(__name__)

Key = tuple


def encode_key(key: Key) -> str:
    return json.dumps(list(key))


def decode_key(raw: str) -> Key:
    return tuple(json.loads(raw))


def _prefix(prefix: Key) -> str:
    if not prefix:
        return "["
    # '["report"]' -> '["report", '
    return encode_key(prefix)[:-1] + ", "


def _aware(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class KVStore:
    """get/set/delete/list over JSON values with optional per-entry expiry."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] | None = None,
    ):
        self._factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _expired(self, entry: KVEntry) -> bool:
        exp = _aware(entry.expires_at)
        return exp is not None and exp <= self._clock()

    async def get(self, key: Key, default: Any = None) -> Any:
        async with self._factory() as db:
            entry = await db.get(KVEntry, encode_key(key))
            if entry is None:
                return default
            if self._expired(entry):
                await db.delete(entry)
                await db.commit()
                return default
            return entry.value

    async def set(self, key: Key, value: Any, ttl: timedelta | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        async with self._factory() as db:
            await db.merge(KVEntry(key=encode_key(key), value=value, expires_at=expires_at))
            await db.commit()

    async def delete(self, key: Key) -> None:
        async with self._factory() as db:
            await db.execute(delete(KVEntry).where(KVEntry.key == encode_key(key)))
            await db.commit()

    async def list(self, prefix: Key = ()) -> list[tuple[Key, Any]]:
        """Return live ``(key, value)`` pairs under *prefix*, ordered by key."""
        async with self._factory() as db:
            result = await db.execute(
                select(KVEntry)
                .where(KVEntry.key.startswith(_prefix(prefix), autoescape=True))
                .order_by(KVEntry.key)
            )
            entries = result.scalars().all()
        return [(decode_key(e.key), e.value) for e in entries if not self._expired(e)]

    async def purge_expired(self) -> int:
        """Delete every entry whose expiry has passed. Returns the count removed."""
        async with self._factory() as db:
            result = await db.execute(
                delete(KVEntry).where(
                    KVEntry.expires_at.is_not(None),
                    KVEntry.expires_at <= self._clock(),
                )
            )
            await db.commit()
        if result.rowcount:
            logger.info("Purged %d expired kv entries", result.rowcount)
        return result.rowcount or 0
