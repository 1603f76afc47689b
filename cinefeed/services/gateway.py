"""Interface the feed assembler expects from a movie catalog."""

from __future__ import annotations

from typing import Literal, Protocol

from ..models import DiscoverCriteria, MoviePage

PersonRole = Literal["actor", "director"]


class CatalogGateway(Protocol):
    """Paged, filterable access to a remote movie catalog.

    Implementations raise :class:`cinefeed.errors.CatalogError` subclasses on
    failure.
    """

    async def fetch_popular(self, page: int = 1) -> MoviePage: ...

    async def fetch_trending(self, page: int = 1) -> MoviePage: ...

    async def fetch_discover(
        self, page: int = 1, sort_key: str = "popularity.desc"
    ) -> MoviePage: ...

    async def fetch_filtered_discover(
        self, page: int, criteria: DiscoverCriteria
    ) -> MoviePage: ...

    async def search(self, query: str, page: int = 1) -> MoviePage: ...

    async def resolve_person_id(self, name: str, role: PersonRole) -> int | None: ...
