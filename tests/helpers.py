"""Shared builders for test movies and fake collaborators."""

from __future__ import annotations

from typing import Any, Iterable

from cinefeed.errors import GatewayUnavailable
from cinefeed.models import DiscoverCriteria, Movie, MoviePage


def make_movie(movie_id: int, **overrides: Any) -> Movie:
    data: dict[str, Any] = {
        "id": movie_id,
        "title": f"Movie {movie_id}",
        "overview": "",
        "poster_path": f"/poster-{movie_id}.jpg",
        "release_date": "2015-06-01",
        "vote_average": 7.0,
        "vote_count": 100,
        "genre_ids": [18],
    }
    data.update(overrides)
    return Movie.model_validate(data)


def make_page(movies: Iterable[Movie], *, page: int = 1, total_pages: int = 1) -> MoviePage:
    results = list(movies)
    return MoviePage(
        page=page,
        results=results,
        total_pages=total_pages,
        total_results=len(results) * total_pages,
    )


class FakeGateway:
    """In-memory catalog gateway recording every call."""

    def __init__(
        self,
        *,
        discover: dict[int, MoviePage] | None = None,
        trending: MoviePage | Exception | None = None,
        popular: MoviePage | Exception | None = None,
        filtered: MoviePage | Exception | None = None,
        search_results: MoviePage | Exception | None = None,
        people: dict[str, int | Exception | None] | None = None,
    ):
        self.discover_pages = discover or {1: make_page([])}
        self.trending = trending if trending is not None else make_page([])
        self.popular = popular if popular is not None else make_page([])
        self.filtered = filtered if filtered is not None else make_page([])
        self.search_results = search_results if search_results is not None else make_page([])
        self.people = people or {}
        self.calls: list[tuple[Any, ...]] = []
        self.filtered_criteria: list[DiscoverCriteria] = []

    @staticmethod
    def _resolve(value: MoviePage | Exception) -> MoviePage:
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_popular(self, page: int = 1) -> MoviePage:
        self.calls.append(("popular", page))
        return self._resolve(self.popular)

    async def fetch_trending(self, page: int = 1) -> MoviePage:
        self.calls.append(("trending", page))
        return self._resolve(self.trending)

    async def fetch_discover(self, page: int = 1, sort_key: str = "popularity.desc") -> MoviePage:
        self.calls.append(("discover", page, sort_key))
        value = self.discover_pages.get(page)
        if value is None:
            return make_page([], page=page)
        return self._resolve(value)

    async def fetch_filtered_discover(self, page: int, criteria: DiscoverCriteria) -> MoviePage:
        self.calls.append(("filtered", page))
        self.filtered_criteria.append(criteria)
        return self._resolve(self.filtered)

    async def search(self, query: str, page: int = 1) -> MoviePage:
        self.calls.append(("search", query, page))
        return self._resolve(self.search_results)

    async def resolve_person_id(self, name: str, role: str) -> int | None:
        self.calls.append(("person", name, role))
        value = self.people.get(name)
        if isinstance(value, Exception):
            raise value
        return value


def unavailable() -> GatewayUnavailable:
    return GatewayUnavailable("connection refused")
