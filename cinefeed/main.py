"""Entry point for the FastAPI-powered feed service."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from .config import Settings, settings
from .database import Database
from .errors import FeedUnavailable
from .models import DiscoverCriteria, Movie
from .novelty import NoveltyCache
from .rng import SessionSeed
from .services.feed import FeedAssembler, FeedFlavor, FeedLimits, FeedMode
from .services.gateway import CatalogGateway
from .services.library import Collection, UserLibrary
from .services.tmdb import TMDBClient
from .store import KeyValueStore, SQLKeyValueStore
from .taste import MovieMood, TasteProfile

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI

FEED_CONTROL_PARAMS = {"mode", "flavor", "seed"}
LIBRARY_ACTIONS = ("favorite", "seen", "watchlist", "dislike", "view", "more-like-this")


class MoodPayload(BaseModel):
    mood: MovieMood


class LibraryPayload(BaseModel):
    movie: Movie
    strength: int = Field(default=3, ge=1, le=5)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    try:
        tmdb_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.tmdb_api_url),
                timeout=httpx.Timeout(settings.tmdb_timeout_seconds, connect=5.0),
            )
        )
        database = Database(settings.database_url)
        exit_stack.push_async_callback(database.dispose)
        await database.create_all()

        assembler, library = await build_services(
            settings,
            TMDBClient(settings, tmdb_http_client),
            SQLKeyValueStore(database.session_factory),
        )
        fastapi_app.state.feed_assembler = assembler
        fastapi_app.state.user_library = library
        fastapi_app.state.database = database

        yield
    finally:
        await exit_stack.aclose()


async def build_services(
    config: Settings, gateway: CatalogGateway, store: KeyValueStore
) -> tuple[FeedAssembler, UserLibrary]:
    """Wire the engine components around one shared state lock."""

    lock = asyncio.Lock()
    taste = TasteProfile()
    novelty = NoveltyCache(store, capacity=config.lifetime_seen_capacity)
    await novelty.load()
    library = UserLibrary(
        store, taste, persist_taste=config.persist_taste_profile, lock=lock
    )
    await library.load()
    seed = SessionSeed(base=config.feed_seed) if config.feed_seed is not None else SessionSeed()
    assembler = FeedAssembler(
        gateway,
        novelty,
        taste,
        limits=FeedLimits.from_settings(config),
        seed=seed,
        fetch_timeout=config.tmdb_timeout_seconds,
        lock=lock,
    )
    logger.info("Feed engine ready (base seed %s)", seed.base)
    return assembler, library


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Personalized, reproducible movie discovery feeds",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_feed_assembler(app: FastAPI) -> FeedAssembler:
    assembler = getattr(app.state, "feed_assembler", None)
    if not isinstance(assembler, FeedAssembler):
        raise RuntimeError("Feed assembler not initialised")
    return assembler


def get_user_library(app: FastAPI) -> UserLibrary:
    library = getattr(app.state, "user_library", None)
    if not isinstance(library, UserLibrary):
        raise RuntimeError("User library not initialised")
    return library


def serialize_movie(
    movie: Movie, taste: TasteProfile, image_base_url: str | None = None
) -> dict[str, Any]:
    base_url = image_base_url or str(settings.tmdb_image_url)
    return {
        "id": movie.id,
        "title": movie.title,
        "overview": movie.overview,
        "poster": movie.poster_url(base_url),
        "backdrop": movie.backdrop_url(),
        "year": movie.release_year,
        "rating": movie.vote_average,
        "votes": movie.vote_count,
        "genreIds": list(movie.genre_ids),
        # Raw catalog fields so a served item can be posted back as a Movie.
        "poster_path": movie.poster_path,
        "backdrop_path": movie.backdrop_path,
        "release_date": movie.release_date,
        "vote_average": movie.vote_average,
        "vote_count": movie.vote_count,
        "match": taste.match_percentage(movie),
    }


def register_routes(fastapi_app: FastAPI) -> None:
    def _parse_enum(enum_type, raw: str | None, default):
        if raw is None or not raw.strip():
            return default
        try:
            return enum_type(raw.strip().lower())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Unsupported value {raw!r}") from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/feed")
    async def feed(request: Request) -> JSONResponse:
        assembler = get_feed_assembler(fastapi_app)
        params = dict(request.query_params)
        mode = _parse_enum(FeedMode, params.get("mode"), FeedMode.FOR_YOU)
        flavor = _parse_enum(FeedFlavor, params.get("flavor"), FeedFlavor.PLAIN)

        seed: int | None = None
        raw_seed = params.get("seed")
        if raw_seed:
            try:
                seed = int(raw_seed)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail="seed must be an integer") from exc

        criteria_params = {
            key: value for key, value in params.items() if key not in FEED_CONTROL_PARAMS
        }
        try:
            criteria = DiscoverCriteria.from_query(criteria_params)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc

        try:
            movies = await assembler.assemble(
                mode, criteria=criteria, flavor=flavor, seed=seed
            )
        except FeedUnavailable as exc:
            raise HTTPException(status_code=503, detail=exc.message) from exc

        return JSONResponse(
            {
                "mode": mode.value,
                "flavor": flavor.value,
                "filtered": criteria.is_active,
                "items": [serialize_movie(movie, assembler.taste) for movie in movies],
            }
        )

    @fastapi_app.get("/api/search")
    async def search(query: str = "") -> JSONResponse:
        assembler = get_feed_assembler(fastapi_app)
        try:
            movies = await assembler.search(query)
        except FeedUnavailable as exc:
            raise HTTPException(status_code=503, detail=exc.message) from exc
        return JSONResponse(
            {"items": [serialize_movie(movie, assembler.taste) for movie in movies]}
        )

    @fastapi_app.get("/api/taste")
    async def taste_summary() -> dict[str, Any]:
        library = get_user_library(fastapi_app)
        return library.taste.summary()

    @fastapi_app.post("/api/taste/mood")
    async def record_mood(payload: MoodPayload) -> dict[str, Any]:
        library = get_user_library(fastapi_app)
        await library.record_mood(payload.mood)
        return library.taste.summary()

    @fastapi_app.get("/api/library")
    async def library_snapshot() -> dict[str, list[int]]:
        return get_user_library(fastapi_app).snapshot()

    @fastapi_app.post("/api/library/{action}")
    async def library_action(action: str, payload: LibraryPayload) -> dict[str, Any]:
        library = get_user_library(fastapi_app)
        movie = payload.movie
        if action == "favorite":
            await library.toggle_favorite(movie)
        elif action == "seen":
            await library.mark_seen(movie)
        elif action == "watchlist":
            await library.toggle_watchlist(movie)
        elif action == "dislike":
            await library.dislike(movie)
        elif action == "view":
            await library.record_detail_view(movie)
        elif action == "more-like-this":
            await library.train(movie, payload.strength)
        else:
            raise HTTPException(
                status_code=404,
                detail=f"Unknown action; expected one of {', '.join(LIBRARY_ACTIONS)}",
            )
        return {
            "movieId": movie.id,
            "collections": [
                collection.value
                for collection in Collection
                if library.contains(collection, movie.id)
            ],
            "taste": library.taste.summary(),
        }


app = create_app()
