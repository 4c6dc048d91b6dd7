"""Location quality policy: turn an optional position fix into a search anchor.

Missing GPS is not an error here.  When there is no fix, the fix is
invalid, or it is older than the staleness bound, the policy substitutes
a configured fallback coordinate and widens the search instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import structlog

from helping_hand.models.place import Coordinate
from helping_hand.models.search import Anchor, LocationQuality, PositionFix
from helping_hand.utils.logging import get_logger


@dataclass(frozen=True)
class RadiusStep:
    """Fixes at most ``max_accuracy_meters`` inaccurate search ``radius_meters``."""

    max_accuracy_meters: float
    radius_meters: float


_DEFAULT_STEPS = (
    RadiusStep(max_accuracy_meters=50.0, radius_meters=5000.0),
    RadiusStep(max_accuracy_meters=100.0, radius_meters=8000.0),
)


@dataclass(frozen=True)
class LocationPolicyConfig:
    """Tunables for :class:`LocationQualityPolicy`."""

    fallback: Coordinate = field(
        default_factory=lambda: Coordinate(latitude=37.7749, longitude=-122.4194)
    )
    fallback_accuracy_meters: float = 5000.0
    staleness_seconds: float = 120.0
    radius_steps: tuple[RadiusStep, ...] = _DEFAULT_STEPS
    default_radius_meters: float = 10000.0
    widening_factor: float = 1.5

    @classmethod
    def from_config(cls, config: dict) -> LocationPolicyConfig:
        """Build from the ``location`` section of the loaded configuration."""
        section = config.get("location", {})
        fallback = section.get("fallback", {})
        steps = tuple(
            RadiusStep(
                max_accuracy_meters=float(step["max_accuracy_meters"]),
                radius_meters=float(step["radius_meters"]),
            )
            for step in section.get("radius_steps", [])
        ) or _DEFAULT_STEPS
        return cls(
            fallback=Coordinate(
                latitude=float(fallback.get("latitude", 37.7749)),
                longitude=float(fallback.get("longitude", -122.4194)),
            ),
            fallback_accuracy_meters=float(fallback.get("accuracy_meters", 5000.0)),
            staleness_seconds=float(section.get("staleness_seconds", 120.0)),
            radius_steps=tuple(sorted(steps, key=lambda s: s.max_accuracy_meters)),
            default_radius_meters=float(section.get("default_radius_meters", 10000.0)),
            widening_factor=float(section.get("widening_factor", 1.5)),
        )


class LocationQualityPolicy:
    """Pure decision: trust the fix or fall back, and pick the radius."""

    def __init__(self, config: LocationPolicyConfig | None = None) -> None:
        self._config = config or LocationPolicyConfig()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def config(self) -> LocationPolicyConfig:
        return self._config

    def resolve(self, fix: PositionFix | None, term_count: int = 1) -> tuple[Anchor, float]:
        """Return the session anchor and search radius for *fix*.

        Parameters
        ----------
        fix:
            Latest position fix, or ``None`` when positioning is unavailable.
        term_count:
            Number of search terms; more than one widens the radius.

        Returns
        -------
        tuple[Anchor, float]
            The anchor and the radius in metres.
        """
        if self._is_usable(fix):
            anchor = Anchor(
                coordinate=fix.coordinate,
                accuracy_meters=fix.accuracy_meters,
                fix_age_seconds=fix.fix_age_seconds,
                is_fallback=False,
                quality=self.classify(fix),
            )
        else:
            anchor = Anchor(
                coordinate=self._config.fallback,
                accuracy_meters=self._config.fallback_accuracy_meters,
                fix_age_seconds=0.0,
                is_fallback=True,
                quality=LocationQuality.FALLBACK,
            )

        radius = self.radius_for(anchor, term_count)

        log = self._logger.warning if anchor.is_fallback else self._logger.debug
        log(
            "anchor_resolved",
            quality=anchor.quality.value,
            is_fallback=anchor.is_fallback,
            accuracy_meters=round(anchor.accuracy_meters, 1),
            fix_age_seconds=round(anchor.fix_age_seconds, 1),
            radius_meters=radius,
            term_count=term_count,
        )
        return anchor, radius

    def radius_for(self, anchor: Anchor, term_count: int = 1) -> float:
        """Step function of accuracy, widened for fallback or multi-term searches."""
        if anchor.is_fallback:
            radius = self._config.default_radius_meters
        else:
            radius = self._base_radius(anchor.accuracy_meters)

        if anchor.is_fallback or term_count > 1:
            radius *= self._config.widening_factor
        return radius

    @staticmethod
    def classify(fix: PositionFix) -> LocationQuality:
        """Qualitative tier of a trusted fix."""
        if fix.accuracy_meters <= 50 and fix.fix_age_seconds <= 30:
            return LocationQuality.HIGH
        if fix.accuracy_meters <= 100 and fix.fix_age_seconds <= 60:
            return LocationQuality.ACCEPTABLE
        return LocationQuality.DEGRADED

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _base_radius(self, accuracy_meters: float) -> float:
        for step in self._config.radius_steps:
            if accuracy_meters <= step.max_accuracy_meters:
                return step.radius_meters
        return self._config.default_radius_meters

    def _is_usable(self, fix: PositionFix | None) -> bool:
        if fix is None:
            return False
        # Negative accuracy is how positioning hardware reports "invalid".
        if not math.isfinite(fix.accuracy_meters) or fix.accuracy_meters < 0:
            return False
        if not math.isfinite(fix.fix_age_seconds):
            return False
        return fix.fix_age_seconds <= self._config.staleness_seconds
