"""
Likability percentage for recommended movies.

Scores each candidate by how much of its genre/keyword makeup overlaps the
profile's weighted tags. Candidates were already selected by the
recommendation cascade, so the percentage never drops below 50.
"""

import math

from implementation.classes.enums import TagKind
from implementation.classes.schemas import Movie, Tag
from implementation.confidence import without_star
from implementation.tag_weighting import tag_weight

LIKABILITY_FLOOR = 50
LIKABILITY_CEILING = 100
LIKABILITY_DEFAULT = 70
_KEYWORD_MATCH_MULTIPLIER = 2
_MAX_SCORING_KEYWORDS = 5


def build_scoring_inputs(
    tags: list[Tag],
    avoided_tags: list[Tag] | None = None,
) -> tuple[dict[int, int], list[Tag]]:
    """
    Derive the scorer inputs from a profile's tags.

    Returns:
        (genre_weights, keyword_tags): canonical weights summed per genre id,
        and the top keyword tags (confirmed first, then by occurrences).
        Avoided tags contribute to neither.
    """
    avoided_ids = {tag.id for tag in avoided_tags or []}
    genre_weights: dict[int, int] = {}
    keyword_tags: list[Tag] = []

    for tag in tags:
        if tag.id in avoided_ids:
            continue
        if tag.type is TagKind.GENRE:
            genre_id = tag.ref.numeric_ref
            if genre_id is not None:
                genre_weights[genre_id] = genre_weights.get(genre_id, 0) + tag_weight(tag)
        elif tag.type is TagKind.KEYWORD:
            keyword_tags.append(tag)

    keyword_tags.sort(key=lambda tag: (not tag.confirmed, -tag.occurrences))
    return genre_weights, keyword_tags[:_MAX_SCORING_KEYWORDS]


def likability_percentage(
    movie: Movie,
    genre_weights: dict[int, int],
    keyword_tags: list[Tag],
) -> int:
    """
    Percentage of the achievable score a movie reaches.

    Every genre of the movie adds its profile weight to the score and the
    heaviest profile genre weight to the denominator. Keyword tags whose name
    appears in the title or overview add twice their weight to both.
    """
    score = 0
    max_possible = 0
    heaviest_genre = max([*genre_weights.values(), 1])

    for genre_id in movie.resolved_genre_ids():
        score += genre_weights.get(genre_id, 0)
        max_possible += heaviest_genre

    if keyword_tags:
        text = movie.searchable_text()
        for tag in keyword_tags:
            if without_star(tag.name).lower() in text:
                boost = tag_weight(tag) * _KEYWORD_MATCH_MULTIPLIER
                score += boost
                max_possible += boost

    if max_possible == 0:
        return LIKABILITY_DEFAULT
    # Halves round up
    percentage = math.floor(100 * score / max_possible + 0.5)
    return min(LIKABILITY_CEILING, max(LIKABILITY_FLOOR, percentage))


def score_movies(
    movies: list[Movie],
    genre_weights: dict[int, int],
    keyword_tags: list[Tag],
) -> list[Movie]:
    """Return copies of `movies` carrying likability_percentage, best first."""
    scored = [
        movie.model_copy(
            update={"likability_percentage": likability_percentage(movie, genre_weights, keyword_tags)}
        )
        for movie in movies
    ]
    scored.sort(key=lambda movie: movie.likability_percentage or 0, reverse=True)
    return scored
