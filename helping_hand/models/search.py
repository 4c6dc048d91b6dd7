"""Search request and result models.

- :class:`SearchDirective` -- structured intent produced by the external
  natural-language collaborator.
- :class:`PositionFix` / :class:`Anchor` -- raw positioning input and the
  trusted search centre derived from it by the location policy.
- :class:`SearchOutcome` -- what ``HybridSearchEngine.run_search`` returns.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from helping_hand.models.place import Category, Coordinate, Place, PlaceRecommendation


class SearchDirective(BaseModel):
    """Structured search intent.  Immutable once a session starts.

    ``alternative_terms`` are "OR" expansions searched alongside the
    primary term (e.g. primary "coffee", alternatives ("cafe", "espresso")).
    """

    model_config = ConfigDict(frozen=True)

    primary_term: str = ""
    alternative_terms: tuple[str, ...] = ()
    category_hint: Category | None = None
    is_location_aware: bool = True

    def term_set(self) -> list[str]:
        """Return the ordered, de-duplicated, non-blank search terms.

        Terms are stripped; duplicates are detected case-insensitively and
        the first spelling wins.
        """
        terms: list[str] = []
        seen: set[str] = set()
        for raw in (self.primary_term, *self.alternative_terms):
            term = (raw or "").strip()
            key = term.casefold()
            if not term or key in seen:
                continue
            seen.add(key)
            terms.append(term)
        return terms


class PositionFix(BaseModel):
    """One reading from the positioning collaborator."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    accuracy_meters: float
    fix_age_seconds: float = 0.0


class LocationQuality(str, Enum):  # noqa: UP042 (StrEnum is 3.11+)
    """Qualitative tier of the fix behind an :class:`Anchor`.

    Thresholds:
        HIGH:       accuracy <= 50 m and age <= 30 s
        ACCEPTABLE: accuracy <= 100 m and age <= 60 s
        DEGRADED:   any other fix that was still trusted
        FALLBACK:   no usable fix; configured fallback coordinate
    """

    HIGH = "HIGH"
    ACCEPTABLE = "ACCEPTABLE"
    DEGRADED = "DEGRADED"
    FALLBACK = "FALLBACK"


class Anchor(BaseModel):
    """The search centre of one session.  Immutable per session."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    accuracy_meters: float
    fix_age_seconds: float
    is_fallback: bool = False
    quality: LocationQuality = LocationQuality.DEGRADED

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude


class OutcomeStatus(str, Enum):  # noqa: UP042 (StrEnum is 3.11+)
    """How a search session ended, from the caller's point of view.

    EMPTY is a success: every provider answered (or failed) and nothing
    matched.  Callers render a "no results" state instead of retrying.
    SUPERSEDED means a newer search started before this one finished.
    """

    RESULTS = "RESULTS"
    EMPTY = "EMPTY"
    SUPERSEDED = "SUPERSEDED"


class SearchOutcome(BaseModel):
    """Result of one search session."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    generation: int
    anchor: Anchor
    radius_meters: float
    recommendations: tuple[PlaceRecommendation, ...] = ()
    total_calls: int = 0
    failed_calls: int = Field(default=0, ge=0)

    @property
    def places(self) -> list[Place]:
        """Ranked places, best first."""
        return [rec.place for rec in self.recommendations]

    @property
    def is_empty(self) -> bool:
        return not self.recommendations
