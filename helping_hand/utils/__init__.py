"""Utility modules for the place search engine.

- **concurrency** -- per-call timeouts and the fan-out join barrier.
- **errors** -- Domain exception hierarchy rooted at HelpingHandError.
- **geo** -- haversine distance, degree tolerance checks, distance display.
- **logging** -- structlog configuration and per-session log context.
- **text_normalizer** -- place-name normalization, edit distance, and
  fuzzy term matching via rapidfuzz.
"""

from helping_hand.utils.concurrency import bounded_call, join_until
from helping_hand.utils.errors import (
    ConfigurationError,
    DirectiveError,
    HelpingHandError,
    PreferenceStoreError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
)
from helping_hand.utils.geo import format_distance, haversine_meters, within_degrees
from helping_hand.utils.logging import configure_logging, get_logger
from helping_hand.utils.text_normalizer import (
    name_edit_distance,
    normalize_place_name,
    term_match_score,
)

__all__ = [
    "ConfigurationError",
    "DirectiveError",
    "HelpingHandError",
    "PreferenceStoreError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "bounded_call",
    "configure_logging",
    "format_distance",
    "get_logger",
    "haversine_meters",
    "join_until",
    "name_edit_distance",
    "normalize_place_name",
    "term_match_score",
    "within_degrees",
]
