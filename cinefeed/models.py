"""Pydantic models describing catalog payloads and discover filters."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w780"


class Movie(BaseModel):
    """A single catalog entry as returned by the catalog gateway."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    title: str = Field(default="", validation_alias=AliasChoices("title", "name"))
    overview: str = ""
    poster_path: str | None = Field(
        default=None, validation_alias=AliasChoices("poster_path", "posterPath")
    )
    backdrop_path: str | None = Field(
        default=None, validation_alias=AliasChoices("backdrop_path", "backdropPath")
    )
    release_date: str | None = Field(
        default=None, validation_alias=AliasChoices("release_date", "releaseDate")
    )
    vote_average: float = Field(
        default=0.0,
        ge=0,
        le=10,
        validation_alias=AliasChoices("vote_average", "voteAverage"),
    )
    vote_count: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("vote_count", "voteCount")
    )
    genre_ids: tuple[int, ...] = Field(
        default=(), validation_alias=AliasChoices("genre_ids", "genreIds", "genres")
    )

    @field_validator("overview", mode="before")
    @classmethod
    def _default_overview(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("poster_path", "backdrop_path", "release_date", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("genre_ids", mode="before")
    @classmethod
    def _parse_genres(cls, value: object) -> object:
        # Detail payloads carry ``[{"id": 28, "name": "Action"}]``.
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            parsed: list[object] = []
            for entry in value:
                if isinstance(entry, Mapping):
                    parsed.append(entry.get("id"))
                else:
                    parsed.append(entry)
            return tuple(parsed)
        return value

    @property
    def release_year(self) -> int | None:
        """Return the release year or ``None`` when it cannot be parsed."""

        if not self.release_date or len(self.release_date) < 4:
            return None
        try:
            return int(self.release_date[:4])
        except ValueError:
            return None

    @property
    def has_poster(self) -> bool:
        return self.poster_path is not None

    def poster_url(self, base_url: str = POSTER_BASE_URL) -> str | None:
        return _build_image_url(self.poster_path, base_url)

    def backdrop_url(self, base_url: str = BACKDROP_BASE_URL) -> str | None:
        return _build_image_url(self.backdrop_path, base_url)


def _build_image_url(path: str | None, base_url: str) -> str | None:
    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class MoviePage(BaseModel):
    """One page of a paged catalog query."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    page: int = 1
    results: list[Movie] = Field(default_factory=list)
    total_pages: int = Field(
        default=1, validation_alias=AliasChoices("total_pages", "totalPages")
    )
    total_results: int = Field(
        default=0, validation_alias=AliasChoices("total_results", "totalResults")
    )


class DiscoverSort(str, Enum):
    """Sort options for discover queries."""

    POPULARITY = "popularity"
    RATING = "rating"
    NEWEST = "newest"
    OLDEST = "oldest"
    TITLE = "title"

    @property
    def tmdb_key(self) -> str:
        return _SORT_KEYS[self]


_SORT_KEYS: dict[DiscoverSort, str] = {
    DiscoverSort.POPULARITY: "popularity.desc",
    DiscoverSort.RATING: "vote_average.desc",
    DiscoverSort.NEWEST: "primary_release_date.desc",
    DiscoverSort.OLDEST: "primary_release_date.asc",
    DiscoverSort.TITLE: "original_title.asc",
}


class StreamingService(str, Enum):
    """Streaming services mapped to TMDB watch provider identifiers."""

    NETFLIX = "netflix"
    PRIME_VIDEO = "prime-video"
    DISNEY_PLUS = "disney-plus"
    HULU = "hulu"
    MAX = "max"
    APPLE_TV_PLUS = "apple-tv-plus"
    PEACOCK = "peacock"
    PARAMOUNT_PLUS = "paramount-plus"

    @property
    def provider_id(self) -> int:
        return _PROVIDER_IDS[self]


_PROVIDER_IDS: dict[StreamingService, int] = {
    StreamingService.NETFLIX: 8,
    StreamingService.PRIME_VIDEO: 9,
    StreamingService.HULU: 15,
    StreamingService.DISNEY_PLUS: 337,
    StreamingService.APPLE_TV_PLUS: 350,
    StreamingService.MAX: 384,
    StreamingService.PEACOCK: 387,
    StreamingService.PARAMOUNT_PLUS: 531,
}


class DiscoverCriteria(BaseModel):
    """Caller supplied filters and sort order for discover queries."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sort: DiscoverSort = DiscoverSort.POPULARITY
    min_rating: float = Field(
        default=0.0, ge=0, le=10, validation_alias=AliasChoices("minRating", "min_rating")
    )
    min_year: int | None = Field(
        default=None, ge=1870, le=2100, validation_alias=AliasChoices("minYear", "min_year")
    )
    max_year: int | None = Field(
        default=None, ge=1870, le=2100, validation_alias=AliasChoices("maxYear", "max_year")
    )
    genre_ids: tuple[int, ...] = Field(
        default=(), validation_alias=AliasChoices("genres", "genreIds", "genre_ids")
    )
    streaming_services: tuple[StreamingService, ...] = Field(
        default=(),
        validation_alias=AliasChoices("services", "streamingServices", "streaming_services"),
    )
    provider_ids: tuple[int, ...] = Field(
        default=(), validation_alias=AliasChoices("providers", "providerIds", "provider_ids")
    )
    watch_region: str | None = Field(
        default=None, validation_alias=AliasChoices("region", "watchRegion", "watch_region")
    )
    min_runtime: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("minRuntime", "min_runtime")
    )
    max_runtime: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("maxRuntime", "max_runtime")
    )
    actor_name: str | None = Field(
        default=None, validation_alias=AliasChoices("actor", "actorName", "actor_name")
    )
    director_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("director", "directorName", "director_name"),
    )
    cast_ids: tuple[int, ...] = Field(
        default=(), validation_alias=AliasChoices("cast", "castIds", "cast_ids")
    )
    crew_ids: tuple[int, ...] = Field(
        default=(), validation_alias=AliasChoices("crew", "crewIds", "crew_ids")
    )

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "DiscoverCriteria":
        """Build criteria from flat query parameters, ignoring unknown keys."""

        known = {
            alias
            for field_info in cls.model_fields.values()
            if isinstance(field_info.validation_alias, AliasChoices)
            for alias in field_info.validation_alias.choices
        }
        known.add("sort")
        payload = {key: value for key, value in params.items() if key in known}
        return cls.model_validate(payload)

    @field_validator(
        "genre_ids", "provider_ids", "cast_ids", "crew_ids", "streaming_services",
        mode="before",
    )
    @classmethod
    def _split_list(cls, value: object) -> object:
        if value is None or value == "":
            return ()
        if isinstance(value, str):
            parts = [part.strip() for part in value.replace("|", ",").split(",")]
            return tuple(part for part in parts if part)
        return value

    @field_validator("genre_ids", "provider_ids", "cast_ids", "crew_ids")
    @classmethod
    def _dedupe_ids(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        return tuple(dict.fromkeys(value))

    @field_validator("min_year", "max_year", "min_runtime", "max_runtime", mode="before")
    @classmethod
    def _blank_number(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("min_rating", mode="before")
    @classmethod
    def _blank_rating(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0.0
        return value

    @field_validator("actor_name", "director_name", "watch_region", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def is_active(self) -> bool:
        """Return whether any constraint differs from the default discover query."""

        return (
            self.min_rating > 0.0
            or self.min_year is not None
            or self.max_year is not None
            or bool(self.genre_ids)
            or bool(self.streaming_services)
            or bool(self.provider_ids)
            or self.watch_region is not None
            or self.min_runtime is not None
            or self.max_runtime is not None
            or self.actor_name is not None
            or self.director_name is not None
            or bool(self.cast_ids)
            or bool(self.crew_ids)
            or self.sort is not DiscoverSort.POPULARITY
        )

    @property
    def all_provider_ids(self) -> tuple[int, ...]:
        merged = [service.provider_id for service in self.streaming_services]
        merged.extend(self.provider_ids)
        return tuple(dict.fromkeys(merged))

    def with_people(
        self, cast_ids: Iterable[int] = (), crew_ids: Iterable[int] = ()
    ) -> "DiscoverCriteria":
        """Return a copy with resolved person identifiers merged in."""

        return self.model_copy(
            update={
                "cast_ids": tuple(dict.fromkeys([*self.cast_ids, *cast_ids])),
                "crew_ids": tuple(dict.fromkeys([*self.crew_ids, *crew_ids])),
            }
        )
