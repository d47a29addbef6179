"""
recommendations.py: cascading tag-tier recommender.

Tags are grouped into weight tiers. The engine queries the catalog with the
heaviest tier first, then keeps widening the query one tier at a time until
enough movies are collected or every tier has been used. Mood and popularity
paths bypass the cascade. The profile-level entry points add likability
scoring and never raise.
"""

import logging
from typing import Optional

from db.tmdb import TMDBCatalog
from implementation.classes.enums import Mood, TagKind, TagSource
from implementation.classes.schemas import DiscoverFilters, Movie, RecommendationResult, Tag, UserProfile
from implementation.likability import build_scoring_inputs, score_movies
from implementation.profile import combined_tags, excluded_movie_ids
from implementation.tag_weighting import group_tags_by_weight

logger = logging.getLogger(__name__)

DEFAULT_MIN_RESULTS = 6


def _unique(values: list[int]) -> list[int]:
    return list(dict.fromkeys(values))


def build_discover_filters(
    tags: list[Tag],
    avoided_tags: list[Tag],
    excluded_ids: list[int],
) -> DiscoverFilters:
    """
    Translate accumulated tags into one discovery query.

    Genre tags map to genre ids, keyword tags to their catalog keyword ids,
    actor/director tags with a numeric ref to people ids. Theme, tone and
    custom tags have no catalog filter. Avoided tags become exclusions and are
    never used as positive filters.
    """
    avoided_ids = {tag.id for tag in avoided_tags}
    without_genres: list[int] = []
    without_keywords: list[int] = []
    for tag in avoided_tags:
        if tag.type is TagKind.GENRE and tag.ref.numeric_ref is not None:
            without_genres.append(tag.ref.numeric_ref)
        elif tag.type is TagKind.KEYWORD:
            without_keywords.extend(tag.catalog_ids)

    with_genres: list[int] = []
    with_keywords: list[int] = []
    with_people: list[int] = []
    for tag in tags:
        if tag.id in avoided_ids:
            continue
        kind = tag.type
        if kind is TagKind.GENRE:
            if tag.ref.numeric_ref is not None and tag.ref.numeric_ref not in without_genres:
                with_genres.append(tag.ref.numeric_ref)
        elif kind is TagKind.KEYWORD:
            with_keywords.extend(kid for kid in tag.catalog_ids if kid not in without_keywords)
        elif kind is TagKind.ACTOR or kind is TagKind.DIRECTOR:
            if tag.ref.numeric_ref is not None:
                with_people.append(tag.ref.numeric_ref)
        elif kind is TagKind.THEME or kind is TagKind.TONE or kind is TagKind.CUSTOM:
            continue
        else:
            raise ValueError(f"Unhandled tag kind: {kind!r}")

    return DiscoverFilters(
        with_genres=_unique(with_genres),
        with_keywords=_unique(with_keywords),
        with_people=_unique(with_people),
        without_genres=_unique(without_genres),
        without_keywords=_unique(without_keywords),
        without_ids=_unique(excluded_ids),
    )


class RecommendationEngine:
    """Catalog-backed recommender: tag cascade, show-more, mood and popular paths."""

    def __init__(self, catalog: TMDBCatalog):
        self.catalog = catalog

    async def popular(self, excluded_ids: list[int], page: int = 1) -> list[Movie]:
        excluded = set(excluded_ids)
        movies = await self.catalog.list_popular(page)
        return [movie for movie in movies if movie.id not in excluded]

    async def recommend_for_mood(self, mood: Mood, excluded_ids: list[int]) -> list[Movie]:
        """One popularity-sorted discovery query over the mood's genres. No cascade."""
        filters = DiscoverFilters(with_genres=mood.genre_ids, without_ids=_unique(excluded_ids))
        return await self.catalog.discover(filters)

    async def _cascade(
        self,
        tiers: list[list[Tag]],
        first_tier: int,
        last_tier: int,
        avoided_tags: list[Tag],
        excluded_ids: list[int],
        min_results: int,
        seed: list[Movie],
    ) -> tuple[list[Movie], int]:
        """
        Query tier counts first_tier..last_tier, merging new movies into `seed`.

        Returns the merged movies and the last tier count used. Stops early
        once `min_results` movies are collected.
        """
        movies = list(seed)
        seen = {movie.id for movie in movies}
        excluded = set(excluded_ids)
        used_tiers = first_tier - 1

        for tier_count in range(first_tier, last_tier + 1):
            used_tiers = tier_count
            accumulated = [tag for tier in tiers[:tier_count] for tag in tier]
            filters = build_discover_filters(accumulated, avoided_tags, excluded_ids)
            if not filters.has_positive_filter:
                logger.debug("Tier set %d has no catalog filter, skipping query", tier_count)
                continue

            results = await self.catalog.discover(filters)
            for movie in results:
                if movie.id in seen or movie.id in excluded:
                    continue
                seen.add(movie.id)
                movies.append(movie)

            logger.info(
                "Tier %d/%d: %d new movies, %d total",
                tier_count, len(tiers), len(results), len(movies),
            )
            if len(movies) >= min_results:
                break

        return movies, used_tiers

    async def recommend(
        self,
        tags: list[Tag],
        liked_ids: list[int],
        disliked_ids: list[int],
        avoided_ids: list[int],
        avoided_tags: Optional[list[Tag]] = None,
        min_results: int = DEFAULT_MIN_RESULTS,
    ) -> RecommendationResult:
        """
        Recommend movies for a tag set, relaxing one weight tier at a time.

        With no tags, or no tag that maps to a catalog filter, falls back to
        the popular listing (used_tiers = 0). Otherwise issues at most one
        discovery query per tier and stops at the first tier count whose
        merged results reach `min_results`.
        """
        excluded_ids = _unique([*liked_ids, *disliked_ids, *avoided_ids])
        if not tags:
            return RecommendationResult(movies=await self.popular(excluded_ids))
        if not build_discover_filters(tags, avoided_tags or [], excluded_ids).has_positive_filter:
            logger.info("None of %d tags maps to a catalog filter, using popular movies", len(tags))
            return RecommendationResult(movies=await self.popular(excluded_ids))

        tiers = group_tags_by_weight(tags)
        movies, used_tiers = await self._cascade(
            tiers,
            first_tier=1,
            last_tier=len(tiers),
            avoided_tags=avoided_tags or [],
            excluded_ids=excluded_ids,
            min_results=min_results,
            seed=[],
        )
        return RecommendationResult(movies=movies, used_tiers=used_tiers, total_tiers=len(tiers))

    async def show_more(
        self,
        previous: RecommendationResult,
        tags: list[Tag],
        liked_ids: list[int],
        disliked_ids: list[int],
        avoided_ids: list[int],
        avoided_tags: Optional[list[Tag]] = None,
    ) -> RecommendationResult:
        """
        Relax by exactly one tier beyond `previous.used_tiers`.

        New movies are appended after the previously shown ones, deduplicated
        by id. Returns `previous` unchanged when every tier is already used.
        """
        tiers = group_tags_by_weight(tags)
        if previous.used_tiers >= len(tiers):
            return previous

        next_tier = previous.used_tiers + 1
        movies, used_tiers = await self._cascade(
            tiers,
            first_tier=next_tier,
            last_tier=next_tier,
            avoided_tags=avoided_tags or [],
            excluded_ids=_unique([*liked_ids, *disliked_ids, *avoided_ids]),
            min_results=0,
            seed=previous.movies,
        )
        return RecommendationResult(movies=movies, used_tiers=used_tiers, total_tiers=len(tiers))


# ================================
#     PROFILE-LEVEL ENTRY POINTS
# ================================

def recommendation_tags(profile: UserProfile, selected_tag_ids: Optional[list[str]] = None) -> list[Tag]:
    """
    Tags fed to the cascade: the user-facing view, optionally narrowed to a
    selection. Extracted tags with a non-positive net score (mostly disliked
    signal) are left out unless pinned.
    """
    tags = combined_tags(profile)
    if selected_tag_ids:
        selected = set(selected_tag_ids)
        tags = [tag for tag in tags if tag.id in selected]
    return [
        tag for tag in tags
        if tag.override or tag.source is TagSource.MANUAL or tag.net_score > 0
    ]


def _score(movies: list[Movie], tags: list[Tag], avoided_tags: list[Tag]) -> list[Movie]:
    genre_weights, keyword_tags = build_scoring_inputs(tags, avoided_tags)
    return score_movies(movies, genre_weights, keyword_tags)


async def recommend_for_profile(
    profile: UserProfile,
    engine: RecommendationEngine,
    *,
    selected_tag_ids: Optional[list[str]] = None,
    min_results: int = DEFAULT_MIN_RESULTS,
) -> RecommendationResult:
    """
    Recommendations for a profile snapshot.

    Mood mode wins unless the caller selected specific tags; otherwise the tag
    cascade runs and its movies are ranked by likability. Without usable tags
    the popular listing is returned. Any unexpected failure is logged and
    yields an empty result so the caller can offer a retry.
    """
    try:
        excluded_ids = excluded_movie_ids(profile)
        if profile.current_mood is not None and not selected_tag_ids:
            movies = await engine.recommend_for_mood(profile.current_mood, excluded_ids)
            return RecommendationResult(movies=movies)

        tags = recommendation_tags(profile, selected_tag_ids)
        result = await engine.recommend(
            tags,
            [movie.id for movie in profile.liked_movies],
            [movie.id for movie in profile.disliked_movies],
            [movie.id for movie in profile.avoided_movies],
            profile.avoided_tags,
            min_results=min_results,
        )
        if not tags:
            return result
        return result.model_copy(update={"movies": _score(result.movies, tags, profile.avoided_tags)})
    except Exception:
        logger.exception("Recommendation pipeline failed")
        return RecommendationResult()


async def show_more_for_profile(
    profile: UserProfile,
    engine: RecommendationEngine,
    previous: RecommendationResult,
    *,
    selected_tag_ids: Optional[list[str]] = None,
) -> RecommendationResult:
    """
    Extend `previous` by one tier. Newly found movies are scored and appended
    after the movies already shown; on failure `previous` is returned.
    Mood and popular results have no tiers left and are returned as they are.
    """
    if not previous.can_show_more:
        return previous
    try:
        tags = recommendation_tags(profile, selected_tag_ids)
        if not tags:
            return previous
        result = await engine.show_more(
            previous,
            tags,
            [movie.id for movie in profile.liked_movies],
            [movie.id for movie in profile.disliked_movies],
            [movie.id for movie in profile.avoided_movies],
            profile.avoided_tags,
        )
        new_movies = result.movies[len(previous.movies):]
        scored = _score(new_movies, tags, profile.avoided_tags)
        return result.model_copy(update={"movies": [*previous.movies, *scored]})
    except Exception:
        logger.exception("Show-more request failed")
        return previous
