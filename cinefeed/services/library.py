"""Per-user movie collections and the taste signals they produce."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..models import Movie
from ..store import TASTE_PROFILE_KEY, KeyValueStore, load_id_set, save_id_set
from ..taste import MovieMood, TasteProfile

logger = logging.getLogger(__name__)

FAVORITE_MULTIPLIER = 2
MAX_TRAINING_STRENGTH = 5


class Collection(str, Enum):
    FAVORITES = "favorites"
    SEEN = "seen"
    WATCHLIST = "watchlist"
    DISLIKED = "disliked"

    @property
    def store_key(self) -> str:
        return f"library.{self.value}"


class UserLibrary:
    """Favorites, seen, watchlist and disliked sets keyed by movie id.

    Positive interactions are recorded into the shared taste profile. When
    ``persist_taste`` is set the profile counters are written back to the
    store after every change.
    """

    def __init__(
        self,
        store: KeyValueStore,
        taste: TasteProfile,
        *,
        persist_taste: bool = False,
        lock: asyncio.Lock | None = None,
    ):
        self._store = store
        self._taste = taste
        self._persist_taste = persist_taste
        self._lock = lock or asyncio.Lock()
        self._sets: dict[Collection, set[int]] = {
            collection: set() for collection in Collection
        }

    @property
    def taste(self) -> TasteProfile:
        return self._taste

    async def load(self) -> None:
        """Restore collections and, if enabled, the taste counters."""

        async with self._lock:
            for collection in Collection:
                self._sets[collection] = await load_id_set(self._store, collection.store_key)
            if self._persist_taste:
                await self._restore_taste()

    def contains(self, collection: Collection, movie_id: int) -> bool:
        return movie_id in self._sets[collection]

    def snapshot(self) -> dict[str, list[int]]:
        return {collection.value: sorted(ids) for collection, ids in self._sets.items()}

    async def toggle_favorite(self, movie: Movie) -> bool:
        """Flip favorite status; returns whether the movie is now a favorite."""

        async with self._lock:
            favorites = self._sets[Collection.FAVORITES]
            if movie.id in favorites:
                favorites.discard(movie.id)
                await self._save(Collection.FAVORITES)
                return False
            favorites.add(movie.id)
            self._sets[Collection.DISLIKED].discard(movie.id)
            self._taste.record_movie(movie, FAVORITE_MULTIPLIER)
            await self._save(Collection.FAVORITES, Collection.DISLIKED)
            await self._save_taste()
            return True

    async def toggle_watchlist(self, movie: Movie) -> bool:
        async with self._lock:
            watchlist = self._sets[Collection.WATCHLIST]
            if movie.id in watchlist:
                watchlist.discard(movie.id)
                added = False
            else:
                watchlist.add(movie.id)
                added = True
            await self._save(Collection.WATCHLIST)
            return added

    async def mark_seen(self, movie: Movie) -> bool:
        """Mark as seen; taste is only recorded the first time."""

        async with self._lock:
            seen = self._sets[Collection.SEEN]
            if movie.id in seen:
                return False
            seen.add(movie.id)
            self._taste.record_movie(movie)
            await self._save(Collection.SEEN)
            await self._save_taste()
            return True

    async def dislike(self, movie: Movie) -> None:
        async with self._lock:
            self._sets[Collection.DISLIKED].add(movie.id)
            self._sets[Collection.FAVORITES].discard(movie.id)
            self._sets[Collection.WATCHLIST].discard(movie.id)
            await self._save(Collection.DISLIKED, Collection.FAVORITES, Collection.WATCHLIST)

    async def record_detail_view(self, movie: Movie) -> None:
        async with self._lock:
            self._taste.record(movie.genre_ids)
            await self._save_taste()

    async def train(self, movie: Movie, strength: int = 3) -> None:
        """Explicit "more like this" signal weighted by ``strength``."""

        multiplier = max(1, min(MAX_TRAINING_STRENGTH, strength))
        async with self._lock:
            self._taste.record_movie(movie, multiplier)
            await self._save_taste()

    async def record_mood(self, mood: MovieMood) -> None:
        async with self._lock:
            self._taste.record_mood(mood)
            await self._save_taste()

    async def _save(self, *collections: Collection) -> None:
        for collection in collections:
            await save_id_set(self._store, collection.store_key, self._sets[collection])

    async def _save_taste(self) -> None:
        if not self._persist_taste:
            return
        try:
            await self._store.set(TASTE_PROFILE_KEY, self._taste.to_payload())
        except Exception:
            logger.exception("Failed to persist taste profile")

    async def _restore_taste(self) -> None:
        try:
            payload = await self._store.get(TASTE_PROFILE_KEY)
        except Exception:
            logger.exception("Failed to read stored taste profile")
            return
        restored = TasteProfile.from_payload(payload)
        self._taste.genre_counts.update(restored.genre_counts)
        self._taste.decade_counts.update(restored.decade_counts)
        self._taste.mood_counts.update(restored.mood_counts)
