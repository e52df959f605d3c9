"""
Description similarity shared by duplicate detection and category suggestion.
"""

import re

from rapidfuzz import fuzz


def normalize_description(text: str | None) -> str:
    """Lowercase, collapse whitespace and trim."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip().lower()


def similarity(a: str, b: str) -> float:
    """Score two normalized descriptions in [0, 1].

    Uses rapidfuzz's weighted ratio, so a description contained in a longer
    one ("netflix" in "netflix brasil") still scores high.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return max(0.0, min(1.0, fuzz.WRatio(a, b) / 100))
