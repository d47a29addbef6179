"""
ProfileSession: the single owner of the current profile snapshot.

Every mutation produces a new snapshot with a bumped version and persists
it. Tag recomputation runs against the snapshot current when it starts and
is discarded if another mutation lands while the catalog calls are in
flight, so a slow extraction can never overwrite newer state. A discarded
extraction is rerun against the newest snapshot.
"""

import logging
from typing import Callable, Optional

from db.profile_store import ProfileStore
from db.recommendations import RecommendationEngine, recommend_for_profile, show_more_for_profile
from db.tag_extraction import extract_tags
from db.tmdb import TMDBCatalog
from implementation import profile as profile_ops
from implementation.classes.enums import Mood, MovieCollection, TagStatus
from implementation.classes.schemas import Movie, ProfileSnapshot, RecommendationResult, Tag, UserProfile
from implementation.confidence import apply_extraction, demote_tag, promote_tag, refresh_confirmed

logger = logging.getLogger(__name__)

_MAX_RECOMPUTE_ATTEMPTS = 3


def _tag_source_ids(profile: UserProfile) -> tuple[list[int], list[int]]:
    return [movie.id for movie in profile.liked_movies], [movie.id for movie in profile.disliked_movies]


class ProfileSession:
    """
    Versioned, persisted profile plus the last recommendation page shown.

    Readers take `snapshot` and work on that immutable value; writers go
    through `apply` or one of the named mutations.
    """

    def __init__(
        self,
        store: ProfileStore,
        catalog: TMDBCatalog,
        engine: Optional[RecommendationEngine] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.engine = engine or RecommendationEngine(catalog)
        self._snapshot = store.read()
        self._last_result: Optional[RecommendationResult] = None
        self._last_result_version = -1
        self._last_selection: Optional[list[str]] = None

    @property
    def snapshot(self) -> ProfileSnapshot:
        return self._snapshot

    @property
    def profile(self) -> UserProfile:
        return self._snapshot.profile

    @property
    def version(self) -> int:
        return self._snapshot.version

    def apply(self, transform: Callable[[UserProfile], UserProfile]) -> ProfileSnapshot:
        """Run a pure profile transform, bump the version and persist. No-op transforms write nothing."""
        updated = transform(self._snapshot.profile)
        if updated is self._snapshot.profile:
            return self._snapshot
        self._snapshot = ProfileSnapshot(version=self._snapshot.version + 1, profile=updated)
        self.store.write(self._snapshot)
        return self._snapshot

    async def recompute_confirmed(self) -> bool:
        """
        Re-extract tags from liked/disliked movies and reconcile confirmed tags.

        An extraction finishing after the profile moved on is discarded and
        rerun against the newest snapshot, up to _MAX_RECOMPUTE_ATTEMPTS
        times. Returns False when every attempt was discarded.
        """
        for attempt in range(1, _MAX_RECOMPUTE_ATTEMPTS + 1):
            started = self._snapshot
            extraction = await extract_tags(
                started.profile.liked_movies, started.profile.disliked_movies, self.catalog
            )
            if self._snapshot.version == started.version:
                self.apply(lambda profile: apply_extraction(profile, extraction))
                return True
            logger.info(
                "Discarding tag extraction for version %d (attempt %d/%d); profile is now at version %d",
                started.version, attempt, _MAX_RECOMPUTE_ATTEMPTS, self._snapshot.version,
            )

        logger.warning("Tag extraction kept going stale; leaving tags for version %d as they are", self.version)
        return False

    # ================================
    #        MOVIE MUTATIONS
    # ================================

    async def _apply_movie_change(self, transform: Callable[[UserProfile], UserProfile]) -> ProfileSnapshot:
        before = _tag_source_ids(self.profile)
        self.apply(transform)
        if _tag_source_ids(self.profile) != before:
            await self.recompute_confirmed()
        return self._snapshot

    async def add_movie(self, collection: MovieCollection, movie: Movie) -> ProfileSnapshot:
        return await self._apply_movie_change(lambda profile: profile_ops.add_movie(profile, collection, movie))

    async def remove_movie(self, collection: MovieCollection, movie_id: int) -> ProfileSnapshot:
        return await self._apply_movie_change(
            lambda profile: profile_ops.remove_movie(profile, collection, movie_id)
        )

    # ================================
    #         TAG MUTATIONS
    # ================================

    def add_tag(self, status: TagStatus, tag: Tag) -> ProfileSnapshot:
        self.apply(lambda profile: profile_ops.add_tag(profile, status, tag))
        if status is TagStatus.LIKED:
            self.apply(refresh_confirmed)
        return self._snapshot

    def remove_tag(self, status: TagStatus, tag_id: str) -> ProfileSnapshot:
        self.apply(lambda profile: profile_ops.remove_tag(profile, status, tag_id))
        if status is TagStatus.LIKED:
            self.apply(refresh_confirmed)
        return self._snapshot

    def promote(self, tag_id: str) -> ProfileSnapshot:
        return self.apply(lambda profile: promote_tag(profile, tag_id))

    def demote(self, tag_id: str) -> ProfileSnapshot:
        return self.apply(lambda profile: demote_tag(profile, tag_id))

    # ================================
    #         PROFILE DETAILS
    # ================================

    def set_mood(self, mood: Optional[Mood]) -> ProfileSnapshot:
        return self.apply(lambda profile: profile_ops.set_current_mood(profile, mood))

    def update_details(
        self,
        name: Optional[str] = None,
        bio: Optional[str] = None,
        favorite_genres: Optional[list[str]] = None,
    ) -> ProfileSnapshot:
        return self.apply(lambda profile: profile_ops.update_details(profile, name, bio, favorite_genres))

    def reset(self) -> ProfileSnapshot:
        """Replace the profile with an empty one. The version keeps increasing."""
        self._last_result = None
        return self.apply(lambda profile: UserProfile())

    # ================================
    #        RECOMMENDATIONS
    # ================================

    async def recommend(self, selected_tag_ids: Optional[list[str]] = None) -> RecommendationResult:
        snapshot = self._snapshot
        result = await recommend_for_profile(snapshot.profile, self.engine, selected_tag_ids=selected_tag_ids)
        self._last_result = result
        self._last_result_version = snapshot.version
        self._last_selection = selected_tag_ids
        return result

    async def show_more(self) -> RecommendationResult:
        """
        Widen the last recommendation by one tier. Starts over when there is
        no previous page or the profile changed since it was produced.
        """
        if self._last_result is None or self._last_result_version != self._snapshot.version:
            return await self.recommend(self._last_selection)
        result = await show_more_for_profile(
            self._snapshot.profile, self.engine, self._last_result, selected_tag_ids=self._last_selection
        )
        self._last_result = result
        return result

    def check(self) -> str:
        return self.store.check()
