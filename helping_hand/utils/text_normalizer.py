"""Text normalization and fuzzy matching for place names and search terms.

Two concerns live here:

1. **Place name comparison** -- the deduplicator needs a case-insensitive
   character edit distance ("Joe's Coffee" vs "Joes Coffee" is 1 edit).
   rapidfuzz's Levenshtein implementation does the heavy lifting.

2. **Term matching** -- the local index scores how well a search term
   matches a place name or type tag.  ``token_set_ratio`` tolerates word
   order and extra words ("coffee" vs "Blue Bottle Coffee Roasters").
"""

import re

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein


def normalize_place_name(name: str | None) -> str:
    """Trim and collapse internal whitespace; empty input stays empty."""
    if not name:
        return ""
    return re.sub(r"\s+", " ", name).strip()


def name_edit_distance(a: str, b: str) -> int:
    """Case-insensitive Levenshtein distance between two place names."""
    return Levenshtein.distance(
        normalize_place_name(a).casefold(),
        normalize_place_name(b).casefold(),
    )


def term_match_score(term: str, text: str) -> float:
    """Return a 0.0-1.0 similarity between a search *term* and *text*.

    Exact substring containment short-circuits to 1.0; otherwise the
    rapidfuzz ``token_set_ratio`` (0-100) is rescaled.
    """
    term_norm = normalize_place_name(term).casefold()
    text_norm = normalize_place_name(text).casefold()
    if not term_norm or not text_norm:
        return 0.0
    if term_norm in text_norm:
        return 1.0
    return fuzz.token_set_ratio(term_norm, text_norm) / 100.0
