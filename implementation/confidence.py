"""
Confirmation rules for extracted tags.

A tag becomes *confirmed* either because enough liked movies carry it
(system-confirmed, may be silently demoted on the next recompute) or because
the user pinned it (override, survives every recompute until demoted).

All functions here are pure: they take a profile or tag list and return a
new one without touching the input.
"""

import logging
import math

from implementation.classes.enums import TagSource
from implementation.classes.schemas import Tag, TagExtraction, UserProfile

logger = logging.getLogger(__name__)

STAR_MARKER = "⭐"

_SMALL_PROFILE_TAG_LIMIT = 50
_SMALL_PROFILE_THRESHOLD = 2
_LARGE_PROFILE_RATIO = 0.05


def confirmation_threshold(total_liked_tags: int) -> int:
    """
    Minimum occurrences for a tag to be confirmed.

    Profiles with up to 50 distinct liked tags use a flat threshold of 2.
    Larger profiles require 5% of the tag count, rounded up, so the bar
    rises with the breadth of the profile.
    """
    if total_liked_tags <= _SMALL_PROFILE_TAG_LIMIT:
        return _SMALL_PROFILE_THRESHOLD
    return math.ceil(total_liked_tags * _LARGE_PROFILE_RATIO)


def count_liked_tags(tags: list[Tag]) -> int:
    """Number of distinct tags contributed by at least one liked movie."""
    return len({tag.id for tag in tags if tag.occurrences > 0})


def should_confirm(tag: Tag, threshold: int) -> bool:
    """A tag qualifies when its net score is positive and it met the threshold."""
    return tag.net_score > 0 and tag.occurrences >= threshold


def with_star(name: str) -> str:
    if name.startswith(STAR_MARKER):
        return name
    return f"{STAR_MARKER} {name}"


def without_star(name: str) -> str:
    if name.startswith(STAR_MARKER):
        return name[len(STAR_MARKER):].strip()
    return name


def _merge_counts(pinned: Tag, recomputed: Tag) -> Tag:
    """Copy the latest counters onto a pinned tag, keeping its name and flags."""
    return pinned.model_copy(
        update={
            "occurrences": recomputed.occurrences,
            "disliked_occurrences": recomputed.disliked_occurrences,
            "movie_ids": list(recomputed.movie_ids),
            "disliked_movie_ids": list(recomputed.disliked_movie_ids),
            "catalog_ids": list(recomputed.catalog_ids),
            "confirmed": True,
            "override": True,
        }
    )


def reconcile_confirmed(existing_confirmed: list[Tag], extraction: TagExtraction) -> list[Tag]:
    """
    Merge a fresh extraction with the current confirmed tags.

    1. Every overridden tag is kept, refreshed with its recomputed counters
       when the extraction produced it.
    2. Every recomputed tag meeting the threshold is upserted as
       system-confirmed.
    3. Anything else is dropped.
    """
    recomputed_by_id = {tag.id: tag for tag in extraction.liked_tags}
    reconciled: dict[str, Tag] = {}

    for tag in existing_confirmed:
        if not tag.override:
            continue
        recomputed = recomputed_by_id.get(tag.id)
        reconciled[tag.id] = _merge_counts(tag, recomputed) if recomputed else tag

    for tag in extraction.confirmed_tags:
        if tag.id in reconciled:
            continue
        if not should_confirm(tag, extraction.threshold):
            continue
        reconciled[tag.id] = tag.model_copy(update={"confirmed": True, "override": False})

    dropped = [
        tag.name for tag in existing_confirmed
        if tag.id not in reconciled
    ]
    if dropped:
        logger.info("Demoting %d tag(s) that no longer meet the threshold: %s", len(dropped), dropped)

    return list(reconciled.values())


def apply_extraction(profile: UserProfile, extraction: TagExtraction) -> UserProfile:
    """
    Return a profile whose liked/confirmed tags reflect `extraction`.

    Liked tags become the extracted tags minus any tag the user pinned as
    confirmed, plus manually added liked tags the extraction cannot produce.
    """
    confirmed = reconcile_confirmed(profile.confirmed_tags, extraction)
    pinned_ids = {tag.id for tag in confirmed if tag.override}

    liked = [tag for tag in extraction.liked_tags if tag.id not in pinned_ids]
    extracted_ids = {tag.id for tag in extraction.liked_tags}
    liked.extend(
        tag for tag in profile.liked_tags
        if tag.source is TagSource.MANUAL
        and tag.id not in extracted_ids
        and tag.id not in pinned_ids
    )

    return profile.model_copy(update={"liked_tags": liked, "confirmed_tags": confirmed})


def refresh_confirmed(profile: UserProfile) -> UserProfile:
    """
    Re-apply the threshold to the profile's current liked tags.

    Used after manual liked-tag edits, which change counts without a
    catalog round trip.
    """
    threshold = confirmation_threshold(count_liked_tags(profile.liked_tags))
    extraction = TagExtraction(
        liked_tags=profile.liked_tags,
        confirmed_tags=[tag for tag in profile.liked_tags if should_confirm(tag, threshold)],
        threshold=threshold,
    )
    confirmed = reconcile_confirmed(profile.confirmed_tags, extraction)
    return profile.model_copy(update={"confirmed_tags": confirmed})


def promote_tag(profile: UserProfile, tag_id: str) -> UserProfile:
    """
    Pin a liked tag as confirmed.

    The tag leaves liked_tags and enters (or replaces its entry in)
    confirmed_tags with confirmed=True, override=True and a starred name.
    Unknown ids leave the profile unchanged.
    """
    liked_tag = next((tag for tag in profile.liked_tags if tag.id == tag_id), None)
    if liked_tag is None:
        logger.warning("Cannot promote tag %s: not in liked tags", tag_id)
        return profile

    pinned = liked_tag.model_copy(
        update={"confirmed": True, "override": True, "name": with_star(liked_tag.name)}
    )
    already_confirmed = any(tag.id == tag_id for tag in profile.confirmed_tags)
    if already_confirmed:
        confirmed = [pinned if tag.id == tag_id else tag for tag in profile.confirmed_tags]
    else:
        confirmed = [*profile.confirmed_tags, pinned]

    return profile.model_copy(
        update={
            "liked_tags": [tag for tag in profile.liked_tags if tag.id != tag_id],
            "confirmed_tags": confirmed,
        }
    )


def demote_tag(profile: UserProfile, tag_id: str) -> UserProfile:
    """
    Undo a manual promotion.

    Overridden tags leave confirmed_tags, lose the star and return to
    liked_tags unless already there. Threshold-derived confirmations carry no
    override to remove, so demoting them is a no-op.
    """
    confirmed_tag = next((tag for tag in profile.confirmed_tags if tag.id == tag_id), None)
    if confirmed_tag is None:
        return profile
    if not confirmed_tag.override:
        logger.debug("Tag %s is system-confirmed; demote is a no-op", tag_id)
        return profile

    remaining = [tag for tag in profile.confirmed_tags if tag.id != tag_id]
    liked = list(profile.liked_tags)
    if not any(tag.id == tag_id for tag in liked):
        liked.append(
            confirmed_tag.model_copy(
                update={
                    "confirmed": False,
                    "override": False,
                    "name": without_star(confirmed_tag.name),
                }
            )
        )

    return profile.model_copy(update={"liked_tags": liked, "confirmed_tags": remaining})
