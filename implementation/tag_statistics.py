"""
Summary statistics over a profile's tag collections.
"""

from dataclasses import dataclass, field

from implementation.classes.enums import TagKind
from implementation.classes.schemas import Movie, Tag
from implementation.confidence import confirmation_threshold

_TOP_TAG_LIMIT = 5
_MANUAL_MATCH_BONUS = 2


@dataclass(slots=True)
class TagCollectionSummary:
    total_liked_tags: int
    total_confirmed_tags: int
    manually_confirmed_tags: int
    auto_confirmed_tags: int
    confidence_threshold: int


@dataclass(slots=True)
class TagCollectionStats:
    summary: TagCollectionSummary
    tag_kinds: list[tuple[TagKind, int]] = field(default_factory=list)
    high_occurrence_tags: list[Tag] = field(default_factory=list)


def analyze_tag_collection(liked_tags: list[Tag], confirmed_tags: list[Tag]) -> TagCollectionStats:
    """
    Summarize liked and confirmed tags.

    The threshold reported is the one that applies to the current number of
    liked tags. Kind counts are sorted by frequency; the top tags are the five
    with the most occurrences among those seen in more than one movie.
    """
    manual = sum(1 for tag in confirmed_tags if tag.override)
    summary = TagCollectionSummary(
        total_liked_tags=len(liked_tags),
        total_confirmed_tags=len(confirmed_tags),
        manually_confirmed_tags=manual,
        auto_confirmed_tags=len(confirmed_tags) - manual,
        confidence_threshold=confirmation_threshold(len(liked_tags)),
    )

    all_tags = [*liked_tags, *confirmed_tags]
    kind_counts: dict[TagKind, int] = {}
    for tag in all_tags:
        kind_counts[tag.type] = kind_counts.get(tag.type, 0) + 1

    top_tags = sorted(
        (tag for tag in all_tags if tag.occurrences > 1),
        key=lambda tag: tag.occurrences,
        reverse=True,
    )[:_TOP_TAG_LIMIT]

    return TagCollectionStats(
        summary=summary,
        tag_kinds=sorted(kind_counts.items(), key=lambda item: item[1], reverse=True),
        high_occurrence_tags=top_tags,
    )


def predict_movie_match(confirmed_tags: list[Tag], movie: Movie) -> int:
    """
    Rough match score of a movie against confirmed genre tags.

    Each confirmed genre tag the movie carries adds its occurrences (at
    least 1), plus 2 when the tag was pinned by the user.
    """
    movie_genre_ids = set(movie.resolved_genre_ids())
    match_score = 0
    for tag in confirmed_tags:
        if tag.type is not TagKind.GENRE:
            continue
        if tag.ref.numeric_ref in movie_genre_ids:
            match_score += tag.occurrences or 1
            if tag.override:
                match_score += _MANUAL_MATCH_BONUS
    return match_score
