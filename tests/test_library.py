"""User library behaviour and the taste signals it records."""

from __future__ import annotations

import pytest

from cinefeed.services.library import Collection, UserLibrary
from cinefeed.store import TASTE_PROFILE_KEY, InMemoryKeyValueStore
from cinefeed.taste import MovieMood, TasteProfile

from helpers import make_movie


@pytest.mark.anyio
async def test_favorite_toggle_records_double_weight() -> None:
    store = InMemoryKeyValueStore()
    library = UserLibrary(store, TasteProfile())
    movie = make_movie(1, genre_ids=[28, 12], release_date="1994-05-01")

    assert await library.toggle_favorite(movie) is True
    assert library.taste.genre_counts[28] == 2
    assert library.taste.genre_counts[12] == 2
    assert library.taste.favorite_decade() == 1990
    assert await store.get(Collection.FAVORITES.store_key) == [1]

    assert await library.toggle_favorite(movie) is False
    assert not library.contains(Collection.FAVORITES, 1)
    # Removing a favorite does not undo the recorded signal.
    assert library.taste.genre_counts[28] == 2


@pytest.mark.anyio
async def test_mark_seen_records_taste_once() -> None:
    library = UserLibrary(InMemoryKeyValueStore(), TasteProfile())
    movie = make_movie(2, genre_ids=[35])

    assert await library.mark_seen(movie) is True
    assert await library.mark_seen(movie) is False

    assert library.taste.genre_counts[35] == 1
    assert library.contains(Collection.SEEN, 2)


@pytest.mark.anyio
async def test_dislike_clears_positive_collections() -> None:
    library = UserLibrary(InMemoryKeyValueStore(), TasteProfile())
    movie = make_movie(3)
    await library.toggle_favorite(movie)
    await library.toggle_watchlist(movie)

    await library.dislike(movie)

    assert library.snapshot() == {
        "favorites": [],
        "seen": [],
        "watchlist": [],
        "disliked": [3],
    }

    await library.toggle_favorite(movie)
    assert not library.contains(Collection.DISLIKED, 3)


@pytest.mark.anyio
async def test_watchlist_does_not_touch_taste() -> None:
    library = UserLibrary(InMemoryKeyValueStore(), TasteProfile())

    assert await library.toggle_watchlist(make_movie(4, genre_ids=[27])) is True
    assert await library.toggle_watchlist(make_movie(4, genre_ids=[27])) is False
    assert not library.taste.has_signal


@pytest.mark.anyio
async def test_detail_view_and_training_weights() -> None:
    library = UserLibrary(InMemoryKeyValueStore(), TasteProfile())
    movie = make_movie(5, genre_ids=[878])

    await library.record_detail_view(movie)
    await library.train(movie, strength=4)
    await library.train(movie, strength=99)
    await library.train(movie, strength=0)

    assert library.taste.genre_counts[878] == 1 + 4 + 5 + 1


@pytest.mark.anyio
async def test_collections_reload_from_store() -> None:
    store = InMemoryKeyValueStore()
    first = UserLibrary(store, TasteProfile())
    await first.toggle_favorite(make_movie(6))
    await first.mark_seen(make_movie(7))

    second = UserLibrary(store, TasteProfile())
    await second.load()

    assert second.contains(Collection.FAVORITES, 6)
    assert second.contains(Collection.SEEN, 7)
    # Taste persistence is opt-in.
    assert not second.taste.has_signal
    assert await store.get(TASTE_PROFILE_KEY) is None


@pytest.mark.anyio
async def test_persisted_taste_is_restored() -> None:
    store = InMemoryKeyValueStore()
    first = UserLibrary(store, TasteProfile(), persist_taste=True)
    await first.toggle_favorite(make_movie(8, genre_ids=[16]))
    await first.record_mood(MovieMood.COZY)

    second = UserLibrary(store, TasteProfile(), persist_taste=True)
    await second.load()

    assert second.taste.genre_counts[16] == 2
    assert second.taste.favorite_mood() is MovieMood.COZY
