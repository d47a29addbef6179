"""
Functional updates over a UserProfile.

Every function returns a new profile and leaves its input untouched, so a
ProfileSession can swap whole snapshots and readers never observe a partial
update.
"""

import time
from typing import Optional

from implementation.classes.enums import Mood, MovieCollection, TagKind, TagSource, TagStatus
from implementation.classes.schemas import Movie, Tag, TagRef, UserProfile

_COLLECTION_FIELDS: dict[MovieCollection, str] = {
    MovieCollection.LIKED: "liked_movies",
    MovieCollection.DISLIKED: "disliked_movies",
    MovieCollection.AVOIDED: "avoided_movies",
    MovieCollection.WATCH_LATER: "watch_later_movies",
}

_TAG_FIELDS: dict[TagStatus, str] = {
    TagStatus.LIKED: "liked_tags",
    TagStatus.CONFIRMED: "confirmed_tags",
    TagStatus.AVOIDED: "avoided_tags",
}


def movies_in(profile: UserProfile, collection: MovieCollection) -> list[Movie]:
    return getattr(profile, _COLLECTION_FIELDS[collection])


def tags_in(profile: UserProfile, status: TagStatus) -> list[Tag]:
    return getattr(profile, _TAG_FIELDS[status])


# ================================
#        MOVIE COLLECTIONS
# ================================

def add_movie(profile: UserProfile, collection: MovieCollection, movie: Movie) -> UserProfile:
    """
    Add a movie to one collection.

    Liking, disliking or avoiding a movie removes it from the other three
    collections (watch-later included). Watch-later only appends. Adding a
    movie that is already present is a no-op.
    """
    current = movies_in(profile, collection)
    if any(existing.id == movie.id for existing in current):
        return profile
    movie = movie.model_copy(update={"likability_percentage": None})

    if collection is MovieCollection.WATCH_LATER:
        return profile.model_copy(update={"watch_later_movies": [*current, movie]})

    update: dict[str, list[Movie]] = {}
    for other, field in _COLLECTION_FIELDS.items():
        if other is collection:
            continue
        update[field] = [existing for existing in movies_in(profile, other) if existing.id != movie.id]
    update[_COLLECTION_FIELDS[collection]] = [*current, movie]
    return profile.model_copy(update=update)


def remove_movie(profile: UserProfile, collection: MovieCollection, movie_id: int) -> UserProfile:
    field = _COLLECTION_FIELDS[collection]
    remaining = [movie for movie in movies_in(profile, collection) if movie.id != movie_id]
    return profile.model_copy(update={field: remaining})


# ================================
#              TAGS
# ================================

def create_custom_tag(name: str, now_ms: Optional[int] = None) -> Tag:
    """Build a manual tag with id "custom-<timestamp ms>"."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return Tag(
        ref=TagRef(kind=TagKind.CUSTOM, ref=timestamp),
        name=name.strip(),
        source=TagSource.MANUAL,
    )


def add_liked_tag(profile: UserProfile, tag: Tag) -> UserProfile:
    """
    Add a tag to liked_tags.

    A tag already present gains one occurrence and the union of both
    provenance lists; a new tag starts at one occurrence.
    """
    existing = next((t for t in profile.liked_tags if t.id == tag.id), None)
    if existing is not None:
        merged = existing.model_copy(
            update={
                "occurrences": existing.occurrences + 1,
                "movie_ids": list(dict.fromkeys([*existing.movie_ids, *tag.movie_ids])),
            }
        )
        liked = [merged if t.id == tag.id else t for t in profile.liked_tags]
        return profile.model_copy(update={"liked_tags": liked})

    added = tag.model_copy(update={"occurrences": 1, "movie_ids": list(tag.movie_ids)})
    return profile.model_copy(update={"liked_tags": [*profile.liked_tags, added]})


def add_confirmed_tag(profile: UserProfile, tag: Tag) -> UserProfile:
    """Add a tag straight to confirmed_tags as a manual override."""
    if any(t.id == tag.id for t in profile.confirmed_tags):
        return profile
    pinned = tag.model_copy(update={"confirmed": True, "override": True})
    return profile.model_copy(update={"confirmed_tags": [*profile.confirmed_tags, pinned]})


def add_avoided_tag(profile: UserProfile, tag: Tag) -> UserProfile:
    if any(t.id == tag.id for t in profile.avoided_tags):
        return profile
    return profile.model_copy(update={"avoided_tags": [*profile.avoided_tags, tag]})


def add_tag(profile: UserProfile, status: TagStatus, tag: Tag) -> UserProfile:
    if status is TagStatus.LIKED:
        return add_liked_tag(profile, tag)
    if status is TagStatus.CONFIRMED:
        return add_confirmed_tag(profile, tag)
    if status is TagStatus.AVOIDED:
        return add_avoided_tag(profile, tag)
    raise ValueError(f"Unhandled tag status: {status!r}")


def remove_tag(profile: UserProfile, status: TagStatus, tag_id: str) -> UserProfile:
    field = _TAG_FIELDS[status]
    remaining = [tag for tag in tags_in(profile, status) if tag.id != tag_id]
    return profile.model_copy(update={field: remaining})


# ================================
#          PROFILE VIEWS
# ================================

def combined_tags(profile: UserProfile) -> list[Tag]:
    """
    The user-facing tag view: confirmed tags first, then liked tags that are
    not also confirmed. Avoided tags are not included.
    """
    confirmed_ids = {tag.id for tag in profile.confirmed_tags}
    return [
        *profile.confirmed_tags,
        *(tag for tag in profile.liked_tags if tag.id not in confirmed_ids),
    ]


def excluded_movie_ids(profile: UserProfile) -> list[int]:
    """Ids of liked, disliked and avoided movies, in that order, deduplicated."""
    ids = [
        movie.id
        for collection in (MovieCollection.LIKED, MovieCollection.DISLIKED, MovieCollection.AVOIDED)
        for movie in movies_in(profile, collection)
    ]
    return list(dict.fromkeys(ids))


def set_current_mood(profile: UserProfile, mood: Optional[Mood]) -> UserProfile:
    return profile.model_copy(update={"current_mood": mood})


def update_details(
    profile: UserProfile,
    name: Optional[str] = None,
    bio: Optional[str] = None,
    favorite_genres: Optional[list[str]] = None,
) -> UserProfile:
    update: dict[str, object] = {}
    if name is not None:
        update["name"] = name
    if bio is not None:
        update["bio"] = bio
    if favorite_genres is not None:
        update["favorite_genres"] = [genre for genre in favorite_genres if genre]
    return profile.model_copy(update=update)
