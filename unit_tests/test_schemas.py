"""Unit tests for schema validators, computed fields and legacy-shape migration."""

import pytest

from implementation.classes.enums import Mood, TagKind, TagSource
from implementation.classes.schemas import (
    DiscoverFilters,
    Genre,
    Movie,
    ProfileSnapshot,
    RecommendationResult,
    Tag,
    TagRef,
    UserProfile,
)


# -----------------------------
#            Movie
# -----------------------------

def test_movie_none_text_fields_become_empty() -> None:
    """Missing title/overview/release_date from TMDB should become empty strings."""
    movie = Movie.model_validate({"id": 1, "title": None, "overview": None, "release_date": None})
    assert movie.title == ""
    assert movie.overview == ""
    assert movie.release_date == ""


def test_movie_resolved_genre_ids_prefers_embedded_genres() -> None:
    """resolved_genre_ids should use genre objects when present, else genre_ids."""
    detail = Movie(id=1, genres=[Genre(id=18, name="Drama")], genre_ids=[28])
    listing = Movie(id=2, genre_ids=[28, 12])
    bare = Movie(id=3)
    assert detail.resolved_genre_ids() == [18]
    assert listing.resolved_genre_ids() == [28, 12]
    assert bare.resolved_genre_ids() == []


def test_movie_searchable_text_is_lowercased() -> None:
    """searchable_text should join title and overview in lowercase."""
    movie = Movie(id=1, title="Heat", overview="A Heist in LA")
    assert movie.searchable_text() == "heat a heist in la"


# -----------------------------
#        DiscoverFilters
# -----------------------------

def test_discover_filters_params_join_positive_with_pipe_and_exclusions_with_comma() -> None:
    """to_params should OR-join positive filters and AND-join exclusions."""
    filters = DiscoverFilters(
        with_genres=[28, 12],
        with_keywords=[9715],
        without_genres=[27, 53],
        without_keywords=[1, 2],
    )
    params = filters.to_params()
    assert params["with_genres"] == "28|12"
    assert params["with_keywords"] == "9715"
    assert params["without_genres"] == "27,53"
    assert params["without_keywords"] == "1,2"
    assert params["sort_by"] == "popularity.desc"
    assert params["include_adult"] == "false"
    assert "with_people" not in params


def test_discover_filters_without_ids_not_sent() -> None:
    """without_ids has no TMDB parameter and should not appear in the query."""
    params = DiscoverFilters(with_genres=[28], without_ids=[1, 2]).to_params()
    assert "without_ids" not in params


def test_discover_filters_has_positive_filter() -> None:
    """has_positive_filter should ignore exclusion-only filters."""
    assert not DiscoverFilters(without_genres=[27]).has_positive_filter
    assert DiscoverFilters(with_people=[500]).has_positive_filter


# -----------------------------
#          TagRef / Tag
# -----------------------------

@pytest.mark.parametrize(
    ("tag_id", "expected"),
    [
        ("genre-28", TagRef(kind=TagKind.GENRE, ref=28)),
        ("keyword-time-travel", TagRef(kind=TagKind.KEYWORD, ref="time-travel")),
        ("keyword-1984", TagRef(kind=TagKind.KEYWORD, ref="1984")),
        ("custom-1700000000000", TagRef(kind=TagKind.CUSTOM, ref=1700000000000)),
        ("actor-500", TagRef(kind=TagKind.ACTOR, ref=500)),
        ("theme-redemption", TagRef(kind=TagKind.THEME, ref="redemption")),
        ("genre-comedy", None),
        ("studio-1", None),
        ("genre", None),
        ("genre-", None),
    ],
)
def test_tag_ref_parse(tag_id: str, expected: TagRef | None) -> None:
    """TagRef.parse should rebuild refs from rendered ids and reject malformed ones."""
    assert TagRef.parse(tag_id) == expected


def test_tag_computed_fields(tag_factory) -> None:
    """Tag id/type/net_score should derive from the ref and counters."""
    tag = tag_factory(TagKind.GENRE, 27, "Horror", occurrences=1, disliked_occurrences=2)
    assert tag.id == "genre-27"
    assert tag.type is TagKind.GENRE
    assert tag.net_score == -3


def test_tag_migrates_legacy_flat_shape() -> None:
    """A legacy tag with a string id, camelCase keys and null counters should load."""
    tag = Tag.model_validate(
        {
            "id": "genre-35",
            "name": "Comedy",
            "type": "genre",
            "occurrences": None,
            "dislikedOccurrences": 1,
            "movieIds": [1, 1, 2],
            "dislikedMovieIds": None,
        }
    )
    assert tag.ref == TagRef(kind=TagKind.GENRE, ref=35)
    assert tag.occurrences == 0
    assert tag.disliked_occurrences == 1
    assert tag.movie_ids == [1, 2]
    assert tag.disliked_movie_ids == []


def test_tag_legacy_shape_with_unparseable_id_falls_back_to_type() -> None:
    """Legacy ids that do not parse should keep their kind from `type`."""
    tag = Tag.model_validate({"id": "dark", "name": "Dark", "type": "tone"})
    assert tag.type is TagKind.TONE
    assert tag.id == "tone-dark"


def test_tag_legacy_prefixed_id_keeps_its_id() -> None:
    """An unparseable legacy id that already carries its kind prefix should not gain a second one."""
    profile = UserProfile.model_validate(
        {"tags": [{"id": "genre-comedy", "name": "Comedy", "type": "genre", "occurrences": 1}]}
    )
    tag = profile.liked_tags[0]
    assert tag.id == "genre-comedy"
    assert tag.type is TagKind.GENRE
    assert tag.ref.numeric_ref is None


def test_tag_round_trips_through_json(tag_factory) -> None:
    """A dumped tag (including computed fields) should validate back to an equal tag."""
    tag = tag_factory(TagKind.KEYWORD, "heist", "heist", occurrences=3, catalog_ids=[10051])
    restored = Tag.model_validate_json(tag.model_dump_json())
    assert restored == tag


# -----------------------------
#          UserProfile
# -----------------------------

def test_profile_migrates_legacy_tags_list() -> None:
    """A legacy `tags` list should split into liked and pinned confirmed tags."""
    profile = UserProfile.model_validate(
        {
            "likedMovies": [{"id": 1, "title": "Heat"}],
            "tags": [
                {"id": "genre-28", "name": "Action", "type": "genre", "occurrences": 3, "confirmed": True},
                {"id": "genre-18", "name": "Drama", "type": "genre", "occurrences": 1},
                "not-a-tag",
            ],
        }
    )
    assert [movie.id for movie in profile.liked_movies] == [1]
    assert [tag.id for tag in profile.confirmed_tags] == ["genre-28"]
    assert profile.confirmed_tags[0].override is True
    assert [tag.id for tag in profile.liked_tags] == ["genre-18"]


def test_profile_ignores_legacy_tags_when_new_shape_present() -> None:
    """A profile already carrying liked_tags should not be overwritten by `tags`."""
    profile = UserProfile.model_validate(
        {
            "liked_tags": [{"id": "genre-18", "name": "Drama", "type": "genre"}],
            "tags": [{"id": "genre-28", "name": "Action", "type": "genre", "confirmed": True}],
        }
    )
    assert [tag.id for tag in profile.liked_tags] == ["genre-18"]
    assert profile.confirmed_tags == []


def test_profile_coerces_null_collections_and_fields() -> None:
    """Null lists, names and unknown moods should load as empty defaults."""
    profile = UserProfile.model_validate(
        {
            "liked_movies": None,
            "avoidedTags": None,
            "name": None,
            "bio": None,
            "currentMood": "nostalgic",
            "favoriteGenres": [{"id": 28, "name": "Action"}, "Drama", None],
        }
    )
    assert profile.liked_movies == []
    assert profile.avoided_tags == []
    assert profile.name == ""
    assert profile.bio == ""
    assert profile.current_mood is None
    assert profile.favorite_genres == ["Action", "Drama"]


def test_profile_accepts_known_mood() -> None:
    """A stored mood string should load as a Mood member."""
    assert UserProfile.model_validate({"current_mood": "tense"}).current_mood is Mood.TENSE


def test_snapshot_round_trips_through_json(tag_factory) -> None:
    """A snapshot should survive a JSON dump/load unchanged."""
    profile = UserProfile(
        liked_movies=[Movie(id=1, title="Heat", genre_ids=[80])],
        liked_tags=[tag_factory(TagKind.GENRE, 80, "Crime", occurrences=1, movie_ids=[1])],
        confirmed_tags=[
            tag_factory(TagKind.CUSTOM, 1700, "slow burn", source=TagSource.MANUAL, confirmed=True, override=True)
        ],
        current_mood=Mood.SAD,
    )
    snapshot = ProfileSnapshot(version=4, profile=profile)
    assert ProfileSnapshot.model_validate_json(snapshot.model_dump_json()) == snapshot


# -----------------------------
#     RecommendationResult
# -----------------------------

def test_recommendation_result_can_show_more() -> None:
    """can_show_more should be true only while unused tiers remain, and be serialized."""
    assert RecommendationResult(used_tiers=1, total_tiers=3).can_show_more is True
    assert RecommendationResult(used_tiers=3, total_tiers=3).can_show_more is False
    assert RecommendationResult().model_dump()["can_show_more"] is False
