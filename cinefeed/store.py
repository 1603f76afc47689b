"""Key-value persistence port and its adapters."""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import KeyValueEntry

logger = logging.getLogger(__name__)

LIFETIME_SEEN_KEY = "novelty.lifetime_seen"
TASTE_PROFILE_KEY = "taste.profile"


class KeyValueStore(Protocol):
    """Minimal get/set persistence used by the feed engine."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store, handy for tests and ephemeral deployments."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._values.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)


class SQLKeyValueStore:
    """Store JSON values in the ``kv_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Any | None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                return None
            return entry.value

    async def set(self, key: str, value: Any) -> None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            await session.commit()


async def load_id_set(store: KeyValueStore, key: str) -> set[int]:
    """Read an identifier set, treating unreadable values as empty."""

    try:
        raw = await store.get(key)
    except Exception:
        logger.exception("Failed to read %s from the key-value store", key)
        return set()
    if raw is None:
        return set()
    if not isinstance(raw, list):
        logger.warning("Ignoring malformed identifier set stored under %s", key)
        return set()
    ids: set[int] = set()
    for value in raw:
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            continue
    return ids


async def save_id_set(store: KeyValueStore, key: str, ids: Iterable[int]) -> bool:
    """Persist an identifier set; failures are logged and reported as ``False``."""

    try:
        await store.set(key, sorted(ids))
    except Exception:
        logger.exception("Failed to write %s to the key-value store", key)
        return False
    return True
