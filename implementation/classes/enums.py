"""
Enum classes for the taste-profile data models.

This module contains all Enum classes used for tag, genre and mood
representation across the project.
"""

from enum import Enum
from implementation.misc.helpers import normalize_string


class TagKind(Enum):
    """Closed set of tag kinds. Every branch on a kind must handle all members."""
    GENRE = "genre"
    THEME = "theme"
    TONE = "tone"
    KEYWORD = "keyword"
    ACTOR = "actor"
    DIRECTOR = "director"
    CUSTOM = "custom"

    @classmethod
    def from_string(cls, kind: str) -> "TagKind | None":
        """
        Convert a string to a TagKind enum value.
        Returns None if the string doesn't match any known kind.
        """
        normalized_kind = normalize_string(kind)
        for member in cls:
            if member.value == normalized_kind:
                return member
        return None

    @property
    def label(self) -> str:
        """Plural display label used when grouping tags by kind."""
        _labels = {
            TagKind.GENRE: "Genres",
            TagKind.THEME: "Themes",
            TagKind.TONE: "Tones",
            TagKind.KEYWORD: "Keywords",
            TagKind.ACTOR: "Actors",
            TagKind.DIRECTOR: "Directors",
            TagKind.CUSTOM: "Custom Tags",
        }
        return _labels[self]


class TagSource(Enum):
    AUTO = "auto"
    MANUAL = "manual"


class TagStatus(Enum):
    """Which of the profile's three tag collections a tag lives in."""
    LIKED = "liked"
    CONFIRMED = "confirmed"
    AVOIDED = "avoided"


class MovieCollection(Enum):
    """The four movie collections owned by a profile."""
    LIKED = "liked"
    DISLIKED = "disliked"
    AVOIDED = "avoided"
    WATCH_LATER = "watch_later"


class MovieGenre(Enum):
    """Built-in TMDB movie genre table, used when the catalog genre list is unavailable."""
    genre_id: int
    value: str

    def __new__(cls, genre_id: int, value: str) -> "MovieGenre":
        obj = object.__new__(cls)
        obj._value_ = value
        obj.genre_id = genre_id
        return obj

    ACTION          = (28,    "Action")
    ADVENTURE       = (12,    "Adventure")
    ANIMATION       = (16,    "Animation")
    COMEDY          = (35,    "Comedy")
    CRIME           = (80,    "Crime")
    DOCUMENTARY     = (99,    "Documentary")
    DRAMA           = (18,    "Drama")
    FAMILY          = (10751, "Family")
    FANTASY         = (14,    "Fantasy")
    HISTORY         = (36,    "History")
    HORROR          = (27,    "Horror")
    MUSIC           = (10402, "Music")
    MYSTERY         = (9648,  "Mystery")
    ROMANCE         = (10749, "Romance")
    SCIENCE_FICTION = (878,   "Science Fiction")
    TV_MOVIE        = (10770, "TV Movie")
    THRILLER        = (53,    "Thriller")
    WAR             = (10752, "War")
    WESTERN         = (37,    "Western")


class Mood(Enum):
    HAPPY = "happy"
    SAD = "sad"
    EXCITED = "excited"
    RELAXED = "relaxed"
    THOUGHTFUL = "thoughtful"
    TENSE = "tense"

    @property
    def genres(self) -> tuple[MovieGenre, ...]:
        """Ordered genres queried for this mood."""
        _genres = {
            Mood.HAPPY: (MovieGenre.COMEDY, MovieGenre.FAMILY, MovieGenre.ANIMATION),
            Mood.SAD: (MovieGenre.DRAMA, MovieGenre.ROMANCE),
            Mood.EXCITED: (MovieGenre.ACTION, MovieGenre.ADVENTURE, MovieGenre.SCIENCE_FICTION),
            Mood.RELAXED: (MovieGenre.COMEDY, MovieGenre.ROMANCE, MovieGenre.MUSIC),
            Mood.THOUGHTFUL: (MovieGenre.DRAMA, MovieGenre.MYSTERY, MovieGenre.DOCUMENTARY),
            Mood.TENSE: (MovieGenre.THRILLER, MovieGenre.HORROR, MovieGenre.CRIME),
        }
        return _genres[self]

    @property
    def genre_ids(self) -> list[int]:
        return [genre.genre_id for genre in self.genres]
