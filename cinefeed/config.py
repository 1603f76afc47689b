"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineFeed", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_url: HttpUrl = Field(
        default="https://image.tmdb.org/t/p/w500", alias="TMDB_IMAGE_URL"
    )
    tmdb_timeout_seconds: float = Field(
        default=15.0, alias="TMDB_TIMEOUT", gt=0, le=120
    )
    tmdb_max_retries: int = Field(default=2, alias="TMDB_MAX_RETRIES", ge=0, le=10)

    feed_size: int = Field(default=40, alias="FEED_SIZE", ge=1, le=500)
    feed_sample_pages: int = Field(default=5, alias="FEED_SAMPLE_PAGES", ge=1, le=20)
    feed_max_pages: int = Field(default=500, alias="FEED_MAX_PAGES", ge=1, le=500)
    min_vote_count: int = Field(default=20, alias="MIN_VOTE_COUNT", ge=0)
    lifetime_seen_capacity: int = Field(
        default=600, alias="LIFETIME_SEEN_CAPACITY", ge=1, le=100_000
    )
    feed_seed: int | None = Field(default=None, alias="FEED_SEED")
    persist_taste_profile: bool = Field(default=False, alias="PERSIST_TASTE_PROFILE")
    watch_region: str = Field(default="US", alias="WATCH_REGION")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./cinefeed.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", "feed_seed", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("watch_region", mode="before")
    @classmethod
    def _normalise_region(cls, value: object) -> object:
        """Region codes are two-letter ISO codes in upper case."""

        if value is None:
            return "US"
        if isinstance(value, str):
            cleaned = value.strip().upper()
            if len(cleaned) != 2 or not cleaned.isalpha():
                raise ValueError("WATCH_REGION must be a two-letter country code")
            return cleaned
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
