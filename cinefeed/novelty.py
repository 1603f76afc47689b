"""Tracking of identifiers already surfaced to the user."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Movie
from .rng import TRIM_OFFSET, SeededGenerator
from .store import LIFETIME_SEEN_KEY, KeyValueStore, load_id_set, save_id_set

logger = logging.getLogger(__name__)

DEFAULT_LIFETIME_CAPACITY = 600


@dataclass(slots=True)
class NoveltyFilterResult:
    """Candidates remaining after novelty filtering."""

    movies: list[Movie]
    reset: bool = False


class NoveltyCache:
    """Session and lifetime sets of already surfaced movie identifiers.

    The session set lives only as long as the process. The lifetime set is
    persisted through the key-value store and never grows beyond
    ``capacity``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        capacity: int = DEFAULT_LIFETIME_CAPACITY,
        key: str = LIFETIME_SEEN_KEY,
    ):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._store = store
        self._key = key
        self.capacity = capacity
        self.session_seen: set[int] = set()
        self.lifetime_seen: set[int] = set()

    async def load(self) -> None:
        """Restore the lifetime set from the store."""

        self.lifetime_seen = await load_id_set(self._store, self._key)
        if len(self.lifetime_seen) > self.capacity:
            # Capacity may have been lowered since the set was written.
            self.lifetime_seen = set(sorted(self.lifetime_seen)[: self.capacity])
        logger.debug("Loaded %d lifetime-seen identifiers", len(self.lifetime_seen))

    def is_novel(self, movie_id: int) -> bool:
        return movie_id not in self.session_seen and movie_id not in self.lifetime_seen

    async def commit(self, ids: Iterable[int], *, seed: int) -> None:
        """Record surfaced identifiers and trim the lifetime set if needed."""

        new_ids = set(ids)
        self.session_seen |= new_ids
        self.lifetime_seen |= new_ids

        if len(self.lifetime_seen) > self.capacity:
            generator = SeededGenerator(seed + TRIM_OFFSET)
            shuffled = generator.shuffle(sorted(self.lifetime_seen))
            evicted = len(self.lifetime_seen) - self.capacity
            self.lifetime_seen = set(shuffled[: self.capacity])
            logger.debug("Evicted %d identifiers from the lifetime cache", evicted)

        await save_id_set(self._store, self._key, self.lifetime_seen)

    async def reset_if_exhausted(self, pool: Sequence[Movie]) -> NoveltyFilterResult:
        """Return novel candidates, clearing history when none remain."""

        novel = [movie for movie in pool if self.is_novel(movie.id)]
        if novel:
            return NoveltyFilterResult(movies=novel)

        logger.info(
            "Novelty cache exhausted for %d candidates; clearing seen history",
            len(pool),
        )
        await self.clear()
        return NoveltyFilterResult(movies=list(pool), reset=True)

    async def clear(self) -> None:
        self.session_seen = set()
        self.lifetime_seen = set()
        await save_id_set(self._store, self._key, self.lifetime_seen)
