from __future__ import annotations

import pytest
from pydantic import ValidationError

from cinefeed.models import DiscoverCriteria, DiscoverSort, Movie, MoviePage, StreamingService


def test_movie_from_tmdb_payload():
    movie = Movie.model_validate(
        {
            "id": 603,
            "title": "The Matrix",
            "overview": None,
            "poster_path": "/matrix.jpg",
            "backdrop_path": "",
            "release_date": "1999-03-30",
            "vote_average": 8.2,
            "vote_count": 25000,
            "genre_ids": [28, 878],
            "popularity": 91.2,
        }
    )

    assert movie.overview == ""
    assert movie.release_year == 1999
    assert movie.genre_ids == (28, 878)
    assert movie.has_poster
    assert movie.backdrop_path is None
    assert movie.poster_url("https://image.tmdb.org/t/p/w500/") == (
        "https://image.tmdb.org/t/p/w500/matrix.jpg"
    )
    assert movie.backdrop_url() is None


def test_movie_accepts_detail_genres_and_camel_case():
    movie = Movie.model_validate(
        {
            "id": 1,
            "name": "Alias",
            "posterPath": "https://cdn.example/poster.jpg",
            "releaseDate": "20",
            "genres": [{"id": 18, "name": "Drama"}, {"id": 10749, "name": "Romance"}],
        }
    )

    assert movie.title == "Alias"
    assert movie.genre_ids == (18, 10749)
    assert movie.release_year is None
    assert movie.poster_url() == "https://cdn.example/poster.jpg"


def test_movie_rejects_out_of_range_rating():
    with pytest.raises(ValidationError):
        Movie.model_validate({"id": 1, "vote_average": 11})


def test_movie_page_defaults():
    page = MoviePage.model_validate({"results": [{"id": 4}]})

    assert page.page == 1
    assert page.total_pages == 1
    assert [movie.id for movie in page.results] == [4]


def test_default_criteria_are_inactive():
    criteria = DiscoverCriteria.from_query({"minRating": "", "minYear": "", "genres": ""})

    assert not criteria.is_active
    assert criteria.min_rating == 0.0
    assert criteria.min_year is None


def test_criteria_from_query_parses_lists_and_ignores_unknown_keys():
    criteria = DiscoverCriteria.from_query(
        {
            "sort": "newest",
            "genres": "28|35,28",
            "services": "netflix,max",
            "providers": "9",
            "minYear": "1980",
            "maxRuntime": "120",
            "actor": "  ",
            "director": " Greta Gerwig ",
            "page": "7",
        }
    )

    assert criteria.sort is DiscoverSort.NEWEST
    assert criteria.genre_ids == (28, 35)
    assert criteria.streaming_services == (StreamingService.NETFLIX, StreamingService.MAX)
    assert criteria.all_provider_ids == (8, 384, 9)
    assert criteria.min_year == 1980
    assert criteria.max_runtime == 120
    assert criteria.actor_name is None
    assert criteria.director_name == "Greta Gerwig"
    assert criteria.is_active


@pytest.mark.parametrize(
    "params",
    [
        {"sort": "rating"},
        {"minRating": "6"},
        {"maxYear": "2000"},
        {"region": "DE"},
        {"cast": "31"},
    ],
)
def test_single_constraint_activates_criteria(params):
    assert DiscoverCriteria.from_query(params).is_active


def test_with_people_merges_identifiers():
    criteria = DiscoverCriteria(cast_ids=(1,))

    merged = criteria.with_people([1, 2], [3])

    assert merged.cast_ids == (1, 2)
    assert merged.crew_ids == (3,)
    assert criteria.cast_ids == (1,)


def test_sort_keys_map_to_tmdb():
    assert DiscoverSort.POPULARITY.tmdb_key == "popularity.desc"
    assert DiscoverSort.RATING.tmdb_key == "vote_average.desc"
    assert DiscoverSort.OLDEST.tmdb_key == "primary_release_date.asc"
