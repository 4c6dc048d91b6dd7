"""Ranking inputs: the per-pass context and the tunable score weights."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from helping_hand.models.search import Anchor


class RankingWeights(BaseModel):
    """Additive scoring constants.

    The defaults are empirically chosen; they are exposed through
    ``config/config.yaml`` (``ranking:`` section) so they can be tuned
    without code changes.
    """

    model_config = ConfigDict(frozen=True)

    base: float = 50.0
    preference: float = 30.0                # × affinity score (1–10)
    distance_max_points: float = 20.0
    distance_meters_per_point: float = Field(default=300.0, gt=0.0)
    rating: float = 3.0                     # × rating (0–5)
    time_in_window: float = 15.0
    time_neutral: float = 7.5               # categories without an hours window


class RankingContext(BaseModel):
    """Ephemeral temporal/spatial context for one ranking pass."""

    model_config = ConfigDict(frozen=True)

    hour_of_day: int = Field(ge=0, le=23)
    day_of_week: int = Field(ge=1, le=7)    # ISO weekday, Monday = 1
    anchor: Anchor
    location_familiarity: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def at(
        cls,
        moment: datetime,
        anchor: Anchor,
        location_familiarity: float = 0.0,
    ) -> RankingContext:
        """Build a context from a wall-clock moment."""
        return cls(
            hour_of_day=moment.hour,
            day_of_week=moment.isoweekday(),
            anchor=anchor,
            location_familiarity=location_familiarity,
        )
