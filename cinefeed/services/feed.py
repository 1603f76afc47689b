"""Feed assembly: sampling, reconciliation, novelty and ranking."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Iterable, Sequence, TypeVar

from ..config import Settings
from ..errors import CatalogError, FeedUnavailable, GatewayUnavailable
from ..models import DiscoverCriteria, Movie, MoviePage
from ..novelty import NoveltyCache
from ..rng import SHUFFLE_OFFSET, SeededGenerator, SessionSeed
from ..taste import TasteProfile
from .gateway import CatalogGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SORT_KEY = "popularity.desc"
ACCLAIMED_MIN_RATING = 7.7
GEM_MIN_RATING = 6.5
GEM_MAX_VOTES = 1000
SEARCH_FAILED_MESSAGE = "Search failed. Please try again."


class FeedMode(str, Enum):
    """Top-level feed surfaces."""

    FOR_YOU = "for-you"
    TRENDING = "trending"
    POPULAR = "popular"


class FeedFlavor(str, Enum):
    """Post-processing pass applied to a discovery feed."""

    PLAIN = "plain"
    CROWD_PLEASERS = "crowd-pleasers"
    CRITICS_PICKS = "critics-picks"
    FROM_YOUR_TASTE = "from-your-taste"
    HIDDEN_GEMS = "hidden-gems"


@dataclass(frozen=True)
class FeedLimits:
    """Size knobs for discovery feeds."""

    feed_size: int = 40
    sample_pages: int = 5
    max_pages: int = 500
    min_vote_count: int = 20

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeedLimits":
        return cls(
            feed_size=settings.feed_size,
            sample_pages=settings.feed_sample_pages,
            max_pages=settings.feed_max_pages,
            min_vote_count=settings.min_vote_count,
        )


def passes_engagement_gate(movie: Movie, min_vote_count: int = 20) -> bool:
    """Data-quality gate: a poster and enough votes to trust the rating."""

    return movie.has_poster and movie.vote_count >= min_vote_count


def dedupe_by_id(movies: Iterable[Movie]) -> list[Movie]:
    """Drop repeated identifiers, keeping the first occurrence."""

    seen: set[int] = set()
    unique: list[Movie] = []
    for movie in movies:
        if movie.id in seen:
            continue
        seen.add(movie.id)
        unique.append(movie)
    return unique


def apply_flavor(
    movies: Sequence[Movie],
    flavor: FeedFlavor,
    *,
    taste: TasteProfile,
    generator: SeededGenerator,
) -> list[Movie]:
    """Reorder or filter an already capped feed."""

    if flavor is FeedFlavor.CROWD_PLEASERS:
        return sorted(
            movies, key=lambda movie: (movie.vote_average, movie.vote_count), reverse=True
        )
    if flavor is FeedFlavor.CRITICS_PICKS:
        return [movie for movie in movies if movie.vote_average >= ACCLAIMED_MIN_RATING]
    if flavor is FeedFlavor.FROM_YOUR_TASTE:
        if not taste.top_genres():
            return list(movies)
        return sorted(
            movies,
            key=lambda movie: (taste.score(movie), movie.vote_average),
            reverse=True,
        )
    if flavor is FeedFlavor.HIDDEN_GEMS:
        gems = [
            movie
            for movie in movies
            if movie.vote_average >= GEM_MIN_RATING and movie.vote_count < GEM_MAX_VOTES
        ]
        # Continues the caller's shuffle stream rather than reseeding.
        return generator.shuffle(gems)
    return list(movies)


class FeedAssembler:
    """Builds feeds from the catalog gateway.

    The assembler owns the session seed and mutates the novelty cache; access
    to shared state is serialised with ``lock``, which callers may share with
    other writers of the taste profile.
    """

    def __init__(
        self,
        gateway: CatalogGateway,
        novelty: NoveltyCache,
        taste: TasteProfile,
        *,
        limits: FeedLimits | None = None,
        seed: SessionSeed | None = None,
        fetch_timeout: float | None = None,
        lock: asyncio.Lock | None = None,
    ):
        self._gateway = gateway
        self._novelty = novelty
        self._taste = taste
        self._limits = limits or FeedLimits()
        self.seed = seed or SessionSeed()
        self._fetch_timeout = fetch_timeout
        self._lock = lock or asyncio.Lock()

    @property
    def taste(self) -> TasteProfile:
        return self._taste

    @property
    def novelty(self) -> NoveltyCache:
        return self._novelty

    async def assemble(
        self,
        mode: FeedMode,
        *,
        criteria: DiscoverCriteria | None = None,
        flavor: FeedFlavor = FeedFlavor.PLAIN,
        seed: int | None = None,
    ) -> list[Movie]:
        """Return the feed for ``mode``.

        Raises :class:`FeedUnavailable` when a primary fetch fails.
        """

        async with self._lock:
            try:
                if criteria is not None and criteria.is_active:
                    return await self._assemble_filtered(mode, criteria, seed)
                if mode is FeedMode.FOR_YOU:
                    return await self._assemble_discovery(flavor, seed)
                return await self._assemble_listing(mode)
            except CatalogError as exc:
                logger.warning("Feed assembly for %s failed: %s", mode.value, exc)
                raise FeedUnavailable() from exc

    async def search(self, query: str) -> list[Movie]:
        """Return gated search results in upstream order."""

        cleaned = query.strip()
        if not cleaned:
            return []
        try:
            page = await self._fetch(self._gateway.search(cleaned, 1))
        except CatalogError as exc:
            logger.warning("Search for %r failed: %s", cleaned, exc)
            raise FeedUnavailable(SEARCH_FAILED_MESSAGE) from exc
        return self._gate(page.results)

    async def _assemble_listing(self, mode: FeedMode) -> list[Movie]:
        if mode is FeedMode.TRENDING:
            page = await self._fetch(self._gateway.fetch_trending(1))
        else:
            page = await self._fetch(self._gateway.fetch_popular(1))
        return self._gate(page.results)

    async def _assemble_discovery(
        self, flavor: FeedFlavor, seed: int | None
    ) -> list[Movie]:
        current_seed = self._next_seed(seed)

        first_page, trending, popular = await asyncio.gather(
            self._fetch(self._gateway.fetch_discover(1, DEFAULT_SORT_KEY)),
            self._fetch(self._gateway.fetch_trending(1)),
            self._fetch(self._gateway.fetch_popular(1)),
            return_exceptions=True,
        )
        if isinstance(first_page, BaseException):
            raise first_page

        excluded: set[int] = set()
        for label, result in (("trending", trending), ("popular", popular)):
            if isinstance(result, MoviePage):
                excluded.update(movie.id for movie in result.results)
            elif isinstance(result, CatalogError):
                logger.warning("Ignoring %s exclusion list: %s", label, result)
            else:
                raise result

        total_pages = max(1, min(first_page.total_pages, self._limits.max_pages))
        extra_pages = self._sample_pages(total_pages, SeededGenerator(current_seed))
        # Every sibling fetch settles before a failure is raised.
        extra_results = await asyncio.gather(
            *(
                self._fetch(self._gateway.fetch_discover(page, DEFAULT_SORT_KEY))
                for page in extra_pages
            ),
            return_exceptions=True,
        )

        merged: list[Movie] = list(first_page.results)
        for page_number, result in zip(extra_pages, extra_results):
            if isinstance(result, BaseException):
                logger.warning("Sampled discover page %d failed: %s", page_number, result)
                raise result
            merged.extend(result.results)

        candidates = dedupe_by_id(
            movie for movie in self._gate(merged) if movie.id not in excluded
        )
        novelty = await self._novelty.reset_if_exhausted(candidates)

        generator = SeededGenerator(current_seed + SHUFFLE_OFFSET)
        capped = generator.shuffle(novelty.movies)[: self._limits.feed_size]
        feed = apply_flavor(capped, flavor, taste=self._taste, generator=generator)

        await self._novelty.commit((movie.id for movie in feed), seed=current_seed)
        logger.info(
            "Assembled %d movies (flavor=%s, pages=%d, candidates=%d, excluded=%d, reset=%s)",
            len(feed),
            flavor.value,
            1 + len(extra_pages),
            len(candidates),
            len(excluded),
            novelty.reset,
        )
        return feed

    async def _assemble_filtered(
        self, mode: FeedMode, criteria: DiscoverCriteria, seed: int | None
    ) -> list[Movie]:
        current_seed = self._next_seed(seed) if mode is FeedMode.FOR_YOU else None

        resolved = await self._resolve_people(criteria)
        page = await self._fetch(self._gateway.fetch_filtered_discover(1, resolved))
        movies = self._gate(page.results)

        if current_seed is None:
            return movies
        generator = SeededGenerator(current_seed + SHUFFLE_OFFSET)
        return generator.shuffle(movies)[: self._limits.feed_size]

    async def _resolve_people(self, criteria: DiscoverCriteria) -> DiscoverCriteria:
        """Look up actor/director names; failures drop that constraint."""

        lookups: list[tuple[str, str]] = []
        if criteria.actor_name:
            lookups.append(("actor", criteria.actor_name))
        if criteria.director_name:
            lookups.append(("director", criteria.director_name))
        if not lookups:
            return criteria

        results = await asyncio.gather(
            *(
                self._fetch(self._gateway.resolve_person_id(name, role))  # type: ignore[arg-type]
                for role, name in lookups
            ),
            return_exceptions=True,
        )
        cast_ids: list[int] = []
        crew_ids: list[int] = []
        for (role, name), result in zip(lookups, results):
            if isinstance(result, CatalogError):
                logger.warning("Could not resolve %s %r: %s", role, name, result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None:
                logger.info("No %s found for %r; ignoring constraint", role, name)
                continue
            (cast_ids if role == "actor" else crew_ids).append(result)
        return criteria.with_people(cast_ids, crew_ids)

    def _sample_pages(self, total_pages: int, generator: SeededGenerator) -> list[int]:
        """Draw distinct extra pages in draw order; page 1 is always included."""

        target = min(self._limits.sample_pages, total_pages)
        chosen: set[int] = {1}
        extra: list[int] = []
        while len(chosen) < target:
            page = generator.randint(1, total_pages)
            if page in chosen:
                continue
            chosen.add(page)
            extra.append(page)
        return extra

    def _gate(self, movies: Iterable[Movie]) -> list[Movie]:
        return [
            movie
            for movie in movies
            if passes_engagement_gate(movie, self._limits.min_vote_count)
        ]

    def _next_seed(self, seed: int | None) -> int:
        if seed is not None:
            return seed
        return self.seed.advance()

    async def _fetch(self, call: Awaitable[T]) -> T:
        if self._fetch_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._fetch_timeout)
        except asyncio.TimeoutError as exc:
            raise GatewayUnavailable("Catalog fetch timed out") from exc
