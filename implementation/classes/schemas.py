"""
Pydantic schemas for the taste-profile data models.

This module contains the movie, tag and profile records that flow through
the extraction → confidence → weighting → recommendation pipeline, plus the
request/result structures exchanged with the catalog client.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from .enums import Mood, TagKind, TagSource


# -----------------------------
#           CATALOG
# -----------------------------

class Genre(BaseModel):
    id: int
    name: str


class Keyword(BaseModel):
    id: int
    name: str


class Movie(BaseModel):
    """
    A catalog movie as returned by TMDB list/search/discover/detail endpoints.

    List endpoints carry `genre_ids`, the detail endpoint carries resolved
    `genres`; use `resolved_genre_ids()` rather than either field directly.
    """
    id: int
    title: str = ""
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: str = ""
    vote_average: float = 0.0
    popularity: float = 0.0
    genre_ids: Optional[list[int]] = None
    genres: Optional[list[Genre]] = None
    # Set by the recommendation pipeline; cleared when a movie is stored in a collection
    likability_percentage: Optional[int] = None

    @field_validator("title", "overview", "release_date", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def resolved_genre_ids(self) -> list[int]:
        """Return the movie's genre ids from whichever representation it carries."""
        if self.genres is not None:
            return [genre.id for genre in self.genres]
        return list(self.genre_ids or [])

    def searchable_text(self) -> str:
        """Lowercased title + overview used for keyword text matching."""
        return f"{self.title} {self.overview}".lower()


class DiscoverFilters(BaseModel):
    """
    Parameters for one catalog discovery query.

    Positive filters are OR-joined ("|") so that adding values widens the
    query; exclusions are comma-joined. `without_ids` has no TMDB equivalent
    and is applied by the client after the response arrives.
    """
    with_genres: list[int] = []
    with_keywords: list[int] = []
    with_people: list[int] = []
    without_genres: list[int] = []
    without_keywords: list[int] = []
    without_ids: list[int] = []
    sort_by: str = "popularity.desc"
    page: int = 1

    @property
    def has_positive_filter(self) -> bool:
        return bool(self.with_genres or self.with_keywords or self.with_people)

    def to_params(self) -> dict[str, str | int]:
        """Render the filters as TMDB /discover/movie query parameters."""
        params: dict[str, str | int] = {
            "sort_by": self.sort_by,
            "page": self.page,
            "include_adult": "false",
        }
        if self.with_genres:
            params["with_genres"] = "|".join(str(v) for v in self.with_genres)
        if self.with_keywords:
            params["with_keywords"] = "|".join(str(v) for v in self.with_keywords)
        if self.with_people:
            params["with_people"] = "|".join(str(v) for v in self.with_people)
        if self.without_genres:
            params["without_genres"] = ",".join(str(v) for v in self.without_genres)
        if self.without_keywords:
            params["without_keywords"] = ",".join(str(v) for v in self.without_keywords)
        return params


# -----------------------------
#             TAGS
# -----------------------------

class TagRef(BaseModel):
    """
    Tagged identifier of a tag: its kind plus the semantic key it was built from.

    Genre refs hold the TMDB genre id, keyword refs the canonical keyword slug,
    custom refs the creation timestamp in milliseconds.
    """
    model_config = ConfigDict(frozen=True)

    kind: TagKind
    ref: int | str

    @property
    def tag_id(self) -> str:
        return f"{self.kind.value}-{self.ref}"

    @property
    def numeric_ref(self) -> int | None:
        return self.ref if isinstance(self.ref, int) else None

    @classmethod
    def parse(cls, tag_id: str) -> "TagRef | None":
        """
        Rebuild a TagRef from a rendered tag id such as "genre-28".

        Only used for legacy snapshots and request paths. Returns None for ids
        that do not follow the "<kind>-<ref>" pattern or whose genre part is
        not numeric.
        """
        if not isinstance(tag_id, str) or "-" not in tag_id:
            return None
        raw_kind, raw_ref = tag_id.split("-", 1)
        kind = TagKind.from_string(raw_kind)
        if kind is None or not raw_ref:
            return None
        if kind is TagKind.GENRE:
            return cls(kind=kind, ref=int(raw_ref)) if raw_ref.isdigit() else None
        if kind is TagKind.KEYWORD:
            return cls(kind=kind, ref=raw_ref)
        if raw_ref.isdigit():
            return cls(kind=kind, ref=int(raw_ref))
        return cls(kind=kind, ref=raw_ref)


# Keys written by older clients, mapped onto the current field names
_LEGACY_TAG_KEYS: dict[str, str] = {
    "dislikedOccurrences": "disliked_occurrences",
    "movieIds": "movie_ids",
    "dislikedMovieIds": "disliked_movie_ids",
}


class Tag(BaseModel):
    ref: TagRef
    name: str
    source: TagSource = TagSource.AUTO
    occurrences: int = 0
    disliked_occurrences: int = 0
    confirmed: bool = False
    override: bool = False
    movie_ids: list[int] = []
    disliked_movie_ids: list[int] = []
    catalog_ids: list[int] = []

    @computed_field
    @property
    def id(self) -> str:
        return self.ref.tag_id

    @computed_field
    @property
    def type(self) -> TagKind:
        return self.ref.kind

    @computed_field
    @property
    def net_score(self) -> int:
        """Disliked signal counts double: occurrences − 2 × disliked occurrences."""
        return self.occurrences - 2 * self.disliked_occurrences

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy_shape(cls, data: Any) -> Any:
        """Accept the older flat shape that carried only a string id and a type."""
        if not isinstance(data, dict) or "ref" in data:
            return data
        migrated = {_LEGACY_TAG_KEYS.get(key, key): value for key, value in data.items()}
        tag_ref = TagRef.parse(migrated.get("id", ""))
        if tag_ref is None:
            kind = TagKind.from_string(str(migrated.get("type", ""))) or TagKind.CUSTOM
            raw_ref = str(migrated.get("id") or migrated.get("name", ""))
            # The rendered id must stay the legacy id, so drop a prefix it already carries
            raw_ref = raw_ref.removeprefix(f"{kind.value}-") or raw_ref
            tag_ref = TagRef(kind=kind, ref=raw_ref)
        migrated["ref"] = tag_ref
        for counter in ("occurrences", "disliked_occurrences"):
            if migrated.get(counter) is None:
                migrated[counter] = 0
        return migrated

    @field_validator("movie_ids", "disliked_movie_ids", "catalog_ids", mode="before")
    @classmethod
    def _coerce_id_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return list(dict.fromkeys(value))


class TagExtraction(BaseModel):
    """Output of one extraction pass over the liked/disliked movie sets."""
    liked_tags: list[Tag] = []
    confirmed_tags: list[Tag] = []
    threshold: int = 2


# -----------------------------
#            PROFILE
# -----------------------------

_LEGACY_PROFILE_KEYS: dict[str, str] = {
    "likedMovies": "liked_movies",
    "dislikedMovies": "disliked_movies",
    "avoidedMovies": "avoided_movies",
    "watchLaterMovies": "watch_later_movies",
    "likedTags": "liked_tags",
    "confirmedTags": "confirmed_tags",
    "avoidedTags": "avoided_tags",
    "currentMood": "current_mood",
    "favoriteGenres": "favorite_genres",
}

_PROFILE_LIST_FIELDS = (
    "liked_movies",
    "disliked_movies",
    "avoided_movies",
    "watch_later_movies",
    "liked_tags",
    "confirmed_tags",
    "avoided_tags",
)


class UserProfile(BaseModel):
    """
    A single client's taste profile.

    Liked, disliked and avoided movies are mutually exclusive. Tag collections
    are derived by extraction (liked/confirmed) or curated by the user
    (avoided, manual promotions).
    """
    liked_movies: list[Movie] = []
    disliked_movies: list[Movie] = []
    avoided_movies: list[Movie] = []
    watch_later_movies: list[Movie] = []
    liked_tags: list[Tag] = []
    confirmed_tags: list[Tag] = []
    avoided_tags: list[Tag] = []
    current_mood: Optional[Mood] = None
    name: str = ""
    bio: str = ""
    favorite_genres: list[str] = []

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy_shape(cls, data: Any) -> Any:
        """
        Map camelCase keys and fold the legacy flat `tags` list into the
        liked/confirmed collections. Runs once at load; `tags` is never written.
        """
        if not isinstance(data, dict):
            return data
        migrated = {_LEGACY_PROFILE_KEYS.get(key, key): value for key, value in data.items()}
        legacy_tags = migrated.pop("tags", None)
        has_new_shape = isinstance(migrated.get("liked_tags"), list) or isinstance(
            migrated.get("confirmed_tags"), list
        )
        if isinstance(legacy_tags, list) and not has_new_shape:
            liked, confirmed = [], []
            for raw_tag in legacy_tags:
                if not isinstance(raw_tag, dict):
                    continue
                if raw_tag.get("confirmed"):
                    confirmed.append({**raw_tag, "confirmed": True, "override": True})
                else:
                    liked.append(raw_tag)
            migrated["liked_tags"] = liked
            migrated["confirmed_tags"] = confirmed
        return migrated

    @field_validator(*_PROFILE_LIST_FIELDS, mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @field_validator("favorite_genres", mode="before")
    @classmethod
    def _genre_objects_to_names(cls, value: Any) -> Any:
        # Older clients stored {"id", "name"} genre objects
        if not isinstance(value, list):
            return []
        names = [item.get("name") if isinstance(item, dict) else item for item in value]
        return [name for name in names if name]

    @field_validator("current_mood", mode="before")
    @classmethod
    def _unknown_mood_to_none(cls, value: Any) -> Any:
        if value is None or isinstance(value, Mood):
            return value
        try:
            return Mood(value)
        except ValueError:
            return None

    @field_validator("name", "bio", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ProfileSnapshot(BaseModel):
    """An immutable-by-convention profile version. Every mutation bumps `version`."""
    version: int = 0
    profile: UserProfile = Field(default_factory=UserProfile)


# -----------------------------
#        RECOMMENDATIONS
# -----------------------------

class RecommendationResult(BaseModel):
    movies: list[Movie] = []
    used_tiers: int = 0
    total_tiers: int = 0

    @computed_field
    @property
    def can_show_more(self) -> bool:
        return self.used_tiers < self.total_tiers
