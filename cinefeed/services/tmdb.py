"""Catalog gateway backed by The Movie Database (TMDB)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..errors import (
    ConfigurationInvalid,
    GatewayUnavailable,
    MalformedResponse,
    UpstreamRejected,
)
from ..models import DiscoverCriteria, MoviePage
from .gateway import PersonRole

logger = logging.getLogger(__name__)

DEFAULT_SORT_KEY = "popularity.desc"
MONETIZATION_TYPES = "flatrate|free|ads"
PERSON_DEPARTMENTS: dict[str, str] = {"actor": "Acting", "director": "Directing"}


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ConfigurationInvalid(
                "TMDB API key is required when initialising TMDBClient"
            )
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.tmdb_max_retries

    async def fetch_popular(self, page: int = 1) -> MoviePage:
        return await self._fetch_page("movie/popular", {"page": page})

    async def fetch_trending(self, page: int = 1) -> MoviePage:
        return await self._fetch_page("trending/movie/day", {"page": page})

    async def fetch_discover(
        self, page: int = 1, sort_key: str = DEFAULT_SORT_KEY
    ) -> MoviePage:
        params = {"page": page, "sort_by": sort_key, "include_adult": "false"}
        return await self._fetch_page("discover/movie", params)

    async def fetch_filtered_discover(
        self, page: int, criteria: DiscoverCriteria
    ) -> MoviePage:
        params = self.discover_params(criteria, default_region=self._settings.watch_region)
        params["page"] = page
        return await self._fetch_page("discover/movie", params)

    async def search(self, query: str, page: int = 1) -> MoviePage:
        params = {"query": query, "page": page, "include_adult": "false"}
        return await self._fetch_page("search/movie", params)

    async def resolve_person_id(self, name: str, role: PersonRole) -> int | None:
        """Return the best matching person identifier for ``name``."""

        cleaned = name.strip()
        if not cleaned:
            return None
        payload = await self._get_json(
            "search/person", {"query": cleaned, "page": 1, "include_adult": "false"}
        )
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise MalformedResponse("TMDB person search returned no results list")

        department = PERSON_DEPARTMENTS.get(role)
        best_match: dict[str, Any] | None = None
        for candidate in results:
            if not isinstance(candidate, dict) or "id" not in candidate:
                continue
            if best_match is None:
                best_match = candidate
            if department and candidate.get("known_for_department") == department:
                best_match = candidate
                break

        if best_match is None:
            return None
        try:
            return int(best_match["id"])
        except (TypeError, ValueError) as exc:
            raise MalformedResponse("TMDB person id is not an integer") from exc

    @staticmethod
    def discover_params(
        criteria: DiscoverCriteria, *, default_region: str = "US"
    ) -> dict[str, Any]:
        """Translate discover criteria into TMDB query parameters."""

        params: dict[str, Any] = {
            "sort_by": criteria.sort.tmdb_key,
            "include_adult": "false",
        }
        if criteria.min_rating > 0:
            params["vote_average.gte"] = str(criteria.min_rating)
        if criteria.min_year is not None:
            params["primary_release_date.gte"] = f"{criteria.min_year}-01-01"
        if criteria.max_year is not None:
            params["primary_release_date.lte"] = f"{criteria.max_year}-12-31"
        if criteria.genre_ids:
            params["with_genres"] = "|".join(str(value) for value in criteria.genre_ids)

        provider_ids = criteria.all_provider_ids
        if provider_ids:
            params["with_watch_providers"] = "|".join(str(value) for value in provider_ids)
            params["watch_region"] = criteria.watch_region or default_region
            params["with_watch_monetization_types"] = MONETIZATION_TYPES
        elif criteria.watch_region:
            params["watch_region"] = criteria.watch_region

        if criteria.min_runtime is not None:
            params["with_runtime.gte"] = criteria.min_runtime
        if criteria.max_runtime is not None:
            params["with_runtime.lte"] = criteria.max_runtime
        if criteria.cast_ids:
            params["with_cast"] = "|".join(str(value) for value in criteria.cast_ids)
        if criteria.crew_ids:
            params["with_crew"] = "|".join(str(value) for value in criteria.crew_ids)
        return params

    async def _fetch_page(self, endpoint: str, params: dict[str, Any]) -> MoviePage:
        payload = await self._get_json(endpoint, params)
        try:
            return MoviePage.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponse(f"Unexpected TMDB payload for {endpoint}") from exc

    async def _get_json(self, endpoint: str, params: dict[str, Any]) -> Any:
        """Issue a GET request, retrying transient failures with backoff."""

        query = {**params, "api_key": self._settings.tmdb_api_key}
        attempt = 0
        while True:
            try:
                response = await self._client.get(
                    endpoint, params=query, headers={"Accept": "application/json"}
                )
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "Transient error talking to TMDB (%s). Retrying %s in %.1fs",
                        exc.__class__.__name__,
                        endpoint,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise GatewayUnavailable(f"TMDB request to {endpoint} failed: {exc}") from exc

            if 500 <= response.status_code < 600:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "TMDB %s during %s. Retrying in %.1fs",
                        response.status_code,
                        endpoint,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
            break

        if not 200 <= response.status_code < 300:
            logger.warning(
                "TMDB %s failed with %s: %s", endpoint, response.status_code, response.text
            )
            raise UpstreamRejected(response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse(f"TMDB returned non-JSON content for {endpoint}") from exc

    @staticmethod
    def _backoff(attempt: int) -> float:
        return min(2 ** (attempt - 1), 5) + (0.1 * attempt)
