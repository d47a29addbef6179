"""
Tag weights and weight tiers.

One weight function serves tiering, display grouping and likability scoring:

    base   = occurrences, or 1 for tags without occurrences (manual tags)
    weight = 2 × base if confirmed else base
    weight += 3 if the user pinned the tag (override)
"""

from implementation.classes.enums import TagKind
from implementation.classes.schemas import Tag

TIER_WEIGHT_DELTA = 2
_CONFIRMED_MULTIPLIER = 2
_OVERRIDE_BONUS = 3


def tag_weight(tag: Tag) -> int:
    base = tag.occurrences or 1
    weight = base * _CONFIRMED_MULTIPLIER if tag.confirmed else base
    if tag.override:
        weight += _OVERRIDE_BONUS
    return weight


def group_tags_by_weight(tags: list[Tag], delta: int = TIER_WEIGHT_DELTA) -> list[list[Tag]]:
    """
    Split tags into tiers of similar weight, heaviest tier first.

    Tags are sorted by descending weight (stable for ties). A new tier starts
    whenever a tag's weight is more than `delta` below the previous tag's.
    Concatenating the tiers yields every input tag exactly once.

    Args:
        tags: Tags to group. May be empty.
        delta: Largest weight drop allowed inside one tier.

    Returns:
        Ordered list of tiers; [] for empty input.
    """
    if not tags:
        return []

    ordered = sorted(tags, key=tag_weight, reverse=True)
    tiers: list[list[Tag]] = [[ordered[0]]]
    previous_weight = tag_weight(ordered[0])

    for tag in ordered[1:]:
        weight = tag_weight(tag)
        if previous_weight - weight > delta:
            tiers.append([])
        tiers[-1].append(tag)
        previous_weight = weight

    return tiers


def categorize_tags_by_type(tags: list[Tag]) -> dict[TagKind, list[list[Tag]]]:
    """Group tags by kind (first-seen order), each kind split into weight tiers."""
    by_kind: dict[TagKind, list[Tag]] = {}
    for tag in tags:
        by_kind.setdefault(tag.type, []).append(tag)
    return {kind: group_tags_by_weight(kind_tags) for kind, kind_tags in by_kind.items()}
