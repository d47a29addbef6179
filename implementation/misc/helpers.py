"""
Helper functions shared by the tag and recommendation pipeline.

This module contains string utilities used to match loosely typed enum names
and to build the stable slugs embedded in tag ids.
"""

import unicodedata
import re


def normalize_string(text: str) -> str:
    """
    Normalize a string for case- and accent-insensitive comparisons.

    Applies the following transformations in order:
    1. Unicode NFC normalization
    2. Lowercase (Unicode-aware case folding)
    3. Diacritic/accent removal (é → e, ñ → n, etc.)
    4. Punctuation handling:
       - Hyphens (-) → preserved
       - Apostrophes (') → removed (no space)
       - Periods (.) → removed (no space)
       - All other punctuation → space
    5. Collapse multiple spaces to single space
    6. Trim leading/trailing whitespace

    Args:
        text: The input string to normalize.

    Returns:
        The normalized string. Returns empty string if input is empty or
        whitespace-only.

    Examples:
        >>> normalize_string("Time Travel")
        'time travel'
        >>> normalize_string("Alien Invasion!")
        'alien invasion'
        >>> normalize_string("Café")
        'cafe'
        >>> normalize_string("Post-Apocalyptic")
        'post-apocalyptic'
    """
    if not text:
        return ""

    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.casefold()

    # Decompose, then drop combining marks (Mn) to strip accents
    normalized = unicodedata.normalize("NFD", normalized)
    normalized = "".join(
        char for char in normalized
        if unicodedata.category(char) != "Mn"
    )

    normalized = re.sub(r"[''ʼ`']", "", normalized)
    normalized = re.sub(r"\.", "", normalized)
    normalized = re.sub(r"[^\w\s\-]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized)

    return normalized.strip()


def slugify_keyword(keyword: str) -> str:
    """
    Build the slug used in keyword tag ids.

    Lowercases the keyword and replaces each whitespace run with a single
    hyphen, so "Time Travel" and "time  travel" share the id
    "keyword-time-travel".
    """
    return re.sub(r"\s+", "-", keyword.strip().lower())
