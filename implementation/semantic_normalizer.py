"""
Keyword normalization against a fixed table of synonym groups.

Catalog keywords are free text ("alien invasion", "ufo", "extraterrestrial").
Folding them onto one canonical term per group lets movies that share a
concept contribute to the same keyword tag.
"""

# Each group lists interchangeable terms; the first term is canonical.
# Group order is the tie-break when a keyword matches several groups. The
# "abandoned" group sits before the mining group so that "abandoned" stays a
# fixed point instead of being captured by "abandoned mine".
KEYWORD_SYNONYM_GROUPS: tuple[tuple[str, ...], ...] = (
    ("alien", "extraterrestrial", "alien invasion", "space creature", "ufo"),
    ("monster", "creature", "beast", "mutant", "abomination"),
    ("abandoned", "deserted", "derelict", "forsaken", "neglected"),
    ("mine", "mining", "coal mine", "abandoned mine", "quarry"),
    ("mountain", "mountains", "mountainside", "alpine", "peak"),
    ("hospital", "clinic", "medical facility", "sanatorium", "asylum"),
    ("forest", "woods", "woodland", "jungle", "wilderness"),
    ("colorado", "denver", "boulder", "rocky mountains"),
    ("ski", "skiing", "ski lift", "snowboarding", "winter sports"),
)


def find_synonym_group(keyword: str) -> tuple[str, ...] | None:
    """
    Return the first synonym group related to `keyword`, or None.

    A group matches when the lowercased, trimmed keyword contains one of its
    terms or one of its terms contains the keyword. Accents and punctuation
    are compared as given.
    """
    normalized_keyword = keyword.lower().strip()
    if not normalized_keyword:
        return None
    for group in KEYWORD_SYNONYM_GROUPS:
        if any(term in normalized_keyword or normalized_keyword in term for term in group):
            return group
    return None


def normalize_keyword(raw_keyword: str) -> str:
    """
    Map a raw keyword to its canonical synonym-group representative.

    Keywords that match no group are returned unchanged, so
    normalize_keyword(normalize_keyword(x)) == normalize_keyword(x).

    Examples:
        >>> normalize_keyword("Alien Invasion")
        'alien'
        >>> normalize_keyword("time travel")
        'time travel'
    """
    group = find_synonym_group(raw_keyword)
    if group is None:
        return raw_keyword
    return group[0]
