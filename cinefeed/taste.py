"""Online taste profile built from user interactions."""

from __future__ import annotations

import logging
import random
from collections import Counter
from enum import Enum
from typing import Any, Iterable, Mapping

from .models import Movie

logger = logging.getLogger(__name__)

MATCH_BASE = 65
MATCH_PER_GENRE = 12
MATCH_RATING_BONUS = 8
MATCH_RATING_THRESHOLD = 7.5
MATCH_JITTER = 3
MATCH_CEILING = 99
COLD_START_RANGE = (72, 89)
STRENGTH_SATURATION = 20
MIN_DECADE_YEAR = 1900


class MovieMood(str, Enum):
    """Viewing moods a user can pick while browsing."""

    ANY = "any"
    FEEL_GOOD = "feel-good"
    COZY = "cozy"
    ADRENALINE = "adrenaline"
    SPOOKY = "spooky"
    NOSTALGIC = "nostalgic"
    MIND_BEND = "mind-bend"
    DATE_NIGHT = "date-night"

    @property
    def label(self) -> str:
        return _MOOD_LABELS[self]


_MOOD_LABELS: dict[MovieMood, str] = {
    MovieMood.ANY: "Surprise me",
    MovieMood.FEEL_GOOD: "Happy / feel-good",
    MovieMood.COZY: "Cozy night in",
    MovieMood.ADRENALINE: "Intense / thrilling",
    MovieMood.SPOOKY: "Spooky",
    MovieMood.NOSTALGIC: "Nostalgic",
    MovieMood.MIND_BEND: "Mind-bending",
    MovieMood.DATE_NIGHT: "Date night",
}


class TasteProfile:
    """Genre, decade and mood affinity counters.

    Counters only grow; there is no decay or recency weighting.
    """

    def __init__(self) -> None:
        self.genre_counts: Counter[int] = Counter()
        self.decade_counts: Counter[int] = Counter()
        self.mood_counts: Counter[MovieMood] = Counter()

    def record(self, genre_ids: Iterable[int], multiplier: int = 1) -> None:
        """Count each genre ``multiplier`` times."""

        if multiplier < 1:
            return
        for genre_id in genre_ids:
            self.genre_counts[int(genre_id)] += multiplier

    def record_decade(self, movie: Movie, multiplier: int = 1) -> None:
        year = movie.release_year
        if year is None or year < MIN_DECADE_YEAR or multiplier < 1:
            return
        self.decade_counts[(year // 10) * 10] += multiplier

    def record_mood(self, mood: MovieMood, multiplier: int = 1) -> None:
        if mood is MovieMood.ANY or multiplier < 1:
            return
        self.mood_counts[mood] += multiplier

    def record_movie(self, movie: Movie, multiplier: int = 1) -> None:
        """Record both the genres and the release decade of ``movie``."""

        self.record(movie.genre_ids, multiplier)
        self.record_decade(movie, multiplier)

    @property
    def has_signal(self) -> bool:
        return bool(self.genre_counts)

    def top_genres(self, n: int = 3) -> list[int]:
        """Return the ``n`` most recorded genres; ties favour the lower id."""

        ranked = sorted(self.genre_counts.items(), key=lambda entry: (-entry[1], entry[0]))
        return [genre_id for genre_id, _ in ranked[:n]]

    def favorite_decade(self) -> int | None:
        if not self.decade_counts:
            return None
        decade, _ = min(self.decade_counts.items(), key=lambda entry: (-entry[1], entry[0]))
        return decade

    def favorite_mood(self) -> MovieMood | None:
        if not self.mood_counts:
            return None
        mood, _ = min(self.mood_counts.items(), key=lambda entry: (-entry[1], entry[0].value))
        return mood

    def score(self, movie: Movie) -> int:
        """Number of the movie's genres that are among the top three."""

        top = set(self.top_genres(3))
        if not top:
            return 0
        return len(top.intersection(movie.genre_ids))

    def match_percentage(self, movie: Movie, rng: random.Random | None = None) -> int:
        """Return a cosmetic "% match" figure for display."""

        rng = rng or random.Random()
        if not self.has_signal:
            low, high = COLD_START_RANGE
            return rng.randint(low, high)

        value = MATCH_BASE + MATCH_PER_GENRE * self.score(movie)
        if movie.vote_average >= MATCH_RATING_THRESHOLD:
            value += MATCH_RATING_BONUS
        value += rng.randint(-MATCH_JITTER, MATCH_JITTER)
        return max(0, min(MATCH_CEILING, value))

    def taste_strength(self) -> float:
        """How established the profile is, from 0.0 (nothing) to 1.0."""

        total = sum(self.genre_counts.values())
        return min(1.0, total / STRENGTH_SATURATION)

    def summary(self) -> dict[str, Any]:
        mood = self.favorite_mood()
        return {
            "topGenres": self.top_genres(),
            "favoriteDecade": self.favorite_decade(),
            "favoriteMood": mood.value if mood else None,
            "strength": round(self.taste_strength(), 2),
        }

    def to_payload(self) -> dict[str, dict[str, int]]:
        """Serialise counters to JSON-compatible mappings."""

        return {
            "genres": {str(key): value for key, value in self.genre_counts.items()},
            "decades": {str(key): value for key, value in self.decade_counts.items()},
            "moods": {key.value: value for key, value in self.mood_counts.items()},
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "TasteProfile":
        """Rebuild a profile, skipping any entry that cannot be parsed."""

        profile = cls()
        if not isinstance(payload, Mapping):
            return profile

        def _counts(section: str) -> Iterable[tuple[str, int]]:
            raw = payload.get(section)
            if not isinstance(raw, Mapping):
                return []
            entries: list[tuple[str, int]] = []
            for key, value in raw.items():
                try:
                    count = int(value)
                except (TypeError, ValueError):
                    continue
                if count > 0:
                    entries.append((str(key), count))
            return entries

        for key, count in _counts("genres"):
            try:
                profile.genre_counts[int(key)] = count
            except ValueError:
                continue
        for key, count in _counts("decades"):
            try:
                profile.decade_counts[int(key)] = count
            except ValueError:
                continue
        for key, count in _counts("moods"):
            try:
                mood = MovieMood(key)
            except ValueError:
                logger.debug("Dropping unknown mood %s from stored profile", key)
                continue
            if mood is not MovieMood.ANY:
                profile.mood_counts[mood] = count
        return profile
