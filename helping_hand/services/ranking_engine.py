"""Preference-aware ranking of deduplicated places.

Each place gets an additive score:

    base
    + affinity(category) x preference weight        (affinity 1-10)
    + max(0, 20 - min(20, distance / 300))          (when distance known)
    + time-of-day fit for the category              (15 / 5 / 0 / 7.5)
    + rating x rating weight                        (when rating known)

and the list is sorted by score descending, then distance ascending
(unknown distances last), then case-folded name, then raw name.  The
last key makes the order total, so equal inputs always rank identically.

The engine is a pure function of its inputs.  It reads a
:class:`PreferenceSnapshot`; it never talks to the preference store.
"""

from __future__ import annotations

import structlog

from helping_hand.models.place import Category, Place, PlaceRecommendation
from helping_hand.models.preference import PreferenceSnapshot
from helping_hand.models.ranking import RankingContext, RankingWeights
from helping_hand.utils.logging import get_logger

# Inclusive hour ranges in which a category is "in season".
_HOUR_WINDOWS: dict[Category, tuple[tuple[int, int], ...]] = {
    Category.FOOD: ((7, 10), (12, 14), (17, 21)),
    Category.COFFEE: ((6, 11), (14, 16)),
    Category.SHOPPING: ((10, 19),),
}

# Score outside the window, per category with a window.
_OFF_WINDOW_SCORE: dict[Category, float] = {
    Category.FOOD: 5.0,
    Category.COFFEE: 5.0,
    Category.SHOPPING: 0.0,
}

_VERY_CLOSE_METERS = 500.0
_WALKING_METERS = 1000.0
_FREQUENT_POINTS = 20.0
_HIGH_RATING = 4.5
_GOOD_RATING = 4.0
_FAMILIAR_AREA = 0.5


def weights_from_config(config: dict) -> RankingWeights:
    """Build weights from the ``ranking`` section of the loaded config."""
    return RankingWeights.model_validate(config.get("ranking") or {})


def part_of_day(hour: int) -> str:
    if 6 <= hour <= 11:
        return "morning"
    if 12 <= hour <= 16:
        return "afternoon"
    if 17 <= hour <= 21:
        return "evening"
    return "late hours"


class RankingEngine:
    """Score and order places for one ranking pass.

    Parameters
    ----------
    weights:
        Scoring constants; defaults match ``config/config.yaml``.
    """

    def __init__(self, weights: RankingWeights | None = None) -> None:
        self._weights = weights or RankingWeights()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def weights(self) -> RankingWeights:
        return self._weights

    # ------------------------------------------------------------------
    # Score components
    # ------------------------------------------------------------------

    def time_of_day_score(self, category: Category, hour: int) -> float:
        windows = _HOUR_WINDOWS.get(category)
        if windows is None:
            return self._weights.time_neutral
        if any(start <= hour <= end for start, end in windows):
            return self._weights.time_in_window
        return _OFF_WINDOW_SCORE[category]

    def distance_score(self, distance_meters: float | None) -> float:
        if distance_meters is None:
            return 0.0
        w = self._weights
        return max(
            0.0,
            w.distance_max_points
            - min(w.distance_max_points, distance_meters / w.distance_meters_per_point),
        )

    def preference_score(self, category: Category, preferences: PreferenceSnapshot) -> float:
        return preferences.affinity(category) * self._weights.preference

    def score(
        self,
        place: Place,
        context: RankingContext,
        preferences: PreferenceSnapshot,
    ) -> float:
        """Total additive score of *place*."""
        total = self._weights.base
        total += self.preference_score(place.category, preferences)
        total += self.distance_score(place.distance_meters)
        total += self.time_of_day_score(place.category, context.hour_of_day)
        if place.rating is not None:
            total += place.rating * self._weights.rating
        return total

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def rank(
        self,
        places: list[Place],
        context: RankingContext,
        preferences: PreferenceSnapshot,
    ) -> list[Place]:
        """Return *places* ordered best first."""
        return [place for place, _ in self._scored(places, context, preferences)]

    def recommend(
        self,
        places: list[Place],
        context: RankingContext,
        preferences: PreferenceSnapshot,
    ) -> list[PlaceRecommendation]:
        """Rank *places* and attach the score and human-readable reasons."""
        recommendations = [
            PlaceRecommendation(
                place=place,
                score=score,
                reasoning_factors=tuple(self.reasoning_factors(place, context, preferences)),
            )
            for place, score in self._scored(places, context, preferences)
        ]
        self._logger.debug(
            "places_ranked",
            count=len(recommendations),
            hour_of_day=context.hour_of_day,
            preferences_default=preferences.is_default,
        )
        return recommendations

    def reasoning_factors(
        self,
        place: Place,
        context: RankingContext,
        preferences: PreferenceSnapshot,
    ) -> list[str]:
        factors: list[str] = []

        record = preferences.get(place.category)
        if (
            record.interaction_count > 0
            and self.preference_score(place.category, preferences) > _FREQUENT_POINTS
        ):
            factors.append(f"You frequently visit {place.category.value} places")

        if context.location_familiarity >= _FAMILIAR_AREA:
            factors.append("Near places you often visit")

        distance = place.distance_meters
        if distance is not None:
            if distance < _VERY_CLOSE_METERS:
                factors.append(f"Very close to your location ({int(distance)}m)")
            elif distance < _WALKING_METERS:
                factors.append(f"Walking distance ({int(distance)}m)")

        if self.time_of_day_score(place.category, context.hour_of_day) > 10:
            factors.append(f"Perfect for {part_of_day(context.hour_of_day)}")

        if place.rating is not None:
            if place.rating >= _HIGH_RATING:
                factors.append(f"Highly rated ({place.rating:.1f})")
            elif place.rating >= _GOOD_RATING:
                factors.append(f"Well rated ({place.rating:.1f})")

        return factors or ["Matches your preferences"]

    def _scored(
        self,
        places: list[Place],
        context: RankingContext,
        preferences: PreferenceSnapshot,
    ) -> list[tuple[Place, float]]:
        scored = [(place, self.score(place, context, preferences)) for place in places]

        def _sort_key(item: tuple[Place, float]) -> tuple:
            place, score = item
            distance = place.distance_meters
            return (
                -score,
                distance is None,
                distance if distance is not None else 0.0,
                place.name.casefold(),
                place.name,
            )

        scored.sort(key=_sort_key)
        return scored
