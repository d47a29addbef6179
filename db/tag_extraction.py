"""
Tag extraction from a profile's liked and disliked movies.

Resolves genres and catalog keywords for every movie, folds keywords onto
their synonym-group representative, and counts how many liked / disliked
movies contribute to each tag. The confirmation threshold is derived from the
number of distinct liked tags.
"""

import logging
from dataclasses import dataclass, field

from db.tmdb import TMDBCatalog
from implementation.classes.enums import MovieGenre, TagKind, TagSource
from implementation.classes.schemas import Genre, Keyword, Movie, Tag, TagExtraction, TagRef
from implementation.confidence import confirmation_threshold, count_liked_tags, should_confirm
from implementation.misc.helpers import slugify_keyword
from implementation.semantic_normalizer import normalize_keyword

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _TagCounter:
    """Mutable accumulator for one tag while movies are folded in."""
    ref: TagRef
    name: str
    movie_ids: list[int] = field(default_factory=list)
    disliked_movie_ids: list[int] = field(default_factory=list)
    catalog_ids: list[int] = field(default_factory=list)

    def add(self, movie_id: int, disliked: bool, catalog_id: int | None = None) -> None:
        target = self.disliked_movie_ids if disliked else self.movie_ids
        if movie_id not in target:
            target.append(movie_id)
        if catalog_id is not None and catalog_id not in self.catalog_ids:
            self.catalog_ids.append(catalog_id)

    def to_tag(self) -> Tag:
        return Tag(
            ref=self.ref,
            name=self.name,
            source=TagSource.AUTO,
            occurrences=len(self.movie_ids),
            disliked_occurrences=len(self.disliked_movie_ids),
            movie_ids=self.movie_ids,
            disliked_movie_ids=self.disliked_movie_ids,
            catalog_ids=self.catalog_ids,
        )


def genre_names_by_id(genres: list[Genre]) -> dict[int, str]:
    """Genre id → name, falling back to the built-in TMDB genre table."""
    names = {genre.genre_id: genre.value for genre in MovieGenre}
    names.update({genre.id: genre.name for genre in genres})
    return names


def movie_genres(movie: Movie, genre_names: dict[int, str]) -> list[tuple[int, str]]:
    """(id, name) pairs for a movie's genres, preferring embedded genre objects."""
    if movie.genres is not None:
        return [(genre.id, genre.name) for genre in movie.genres]
    return [
        (genre_id, genre_names.get(genre_id, f"Genre {genre_id}"))
        for genre_id in movie.genre_ids or []
    ]


def fold_movie(
    counters: dict[str, _TagCounter],
    movie: Movie,
    keywords: list[Keyword],
    genre_names: dict[int, str],
    disliked: bool,
) -> None:
    """Fold one movie's genres and normalized keywords into the tag counters."""
    for genre_id, genre_name in movie_genres(movie, genre_names):
        ref = TagRef(kind=TagKind.GENRE, ref=genre_id)
        counter = counters.get(ref.tag_id)
        if counter is None:
            counter = counters[ref.tag_id] = _TagCounter(ref=ref, name=genre_name)
        counter.add(movie.id, disliked)

    for keyword in keywords:
        canonical = normalize_keyword(keyword.name)
        slug = slugify_keyword(canonical)
        if not slug:
            continue
        ref = TagRef(kind=TagKind.KEYWORD, ref=slug)
        counter = counters.get(ref.tag_id)
        if counter is None:
            counter = counters[ref.tag_id] = _TagCounter(ref=ref, name=canonical)
        counter.add(movie.id, disliked, catalog_id=keyword.id)


def build_extraction(tags: list[Tag]) -> TagExtraction:
    """Sort tags by occurrences and flag the ones meeting the threshold."""
    liked_tags = sorted(tags, key=lambda tag: tag.occurrences, reverse=True)
    threshold = confirmation_threshold(count_liked_tags(liked_tags))
    confirmed_tags = [
        tag.model_copy(update={"confirmed": True})
        for tag in liked_tags
        if should_confirm(tag, threshold)
    ]
    return TagExtraction(liked_tags=liked_tags, confirmed_tags=confirmed_tags, threshold=threshold)


async def extract_tags(
    liked_movies: list[Movie],
    disliked_movies: list[Movie],
    catalog: TMDBCatalog,
) -> TagExtraction:
    """
    Derive genre and keyword tags from liked and disliked movies.

    Each movie contributes at most once to a tag. Liked movies feed
    `occurrences`, disliked movies feed `disliked_occurrences`; a tag seen in
    both keeps both counters on the same record.

    A failed genre or keyword lookup for a movie contributes nothing for that
    movie; the rest of the extraction proceeds.

    Returns:
        TagExtraction with liked tags sorted by occurrences descending, the
        confirmed subset, and the threshold applied.
    """
    if not liked_movies and not disliked_movies:
        return TagExtraction(threshold=confirmation_threshold(0))

    needs_genre_lookup = any(movie.genres is None for movie in [*liked_movies, *disliked_movies])
    genres = await catalog.list_genres() if needs_genre_lookup else []
    genre_names = genre_names_by_id(genres)

    keyword_map = await catalog.get_movies_keywords([*liked_movies, *disliked_movies])

    counters: dict[str, _TagCounter] = {}
    for movie in liked_movies:
        fold_movie(counters, movie, keyword_map.get(movie.id, []), genre_names, disliked=False)
    for movie in disliked_movies:
        fold_movie(counters, movie, keyword_map.get(movie.id, []), genre_names, disliked=True)

    extraction = build_extraction([counter.to_tag() for counter in counters.values()])
    logger.info(
        "Extracted %d tags (%d confirmed, threshold %d) from %d liked / %d disliked movies",
        len(extraction.liked_tags), len(extraction.confirmed_tags), extraction.threshold,
        len(liked_movies), len(disliked_movies),
    )
    return extraction
