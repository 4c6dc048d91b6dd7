"""User preference models: per-category affinity records and interaction events.

Affinity scores live in [1.0, 10.0].  Every category starts at the neutral
5.0; interacting with a place raises its category by a fixed step and
gently decays all the others, so preferences drift toward recently used
categories without ever zeroing the rest.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from helping_hand.models.place import Category, Coordinate

MIN_AFFINITY = 1.0
MAX_AFFINITY = 10.0
NEUTRAL_AFFINITY = 5.0
INTERACTION_BOOST = 0.5
DECAY_FACTOR = 0.98
# Scores are stored rounded so repeated decay does not accumulate float noise.
SCORE_PRECISION = 6


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class InteractionKind(str, Enum):  # noqa: UP042 (StrEnum is 3.11+)
    """What the user did with a place.  All kinds update affinity equally."""

    SELECTED = "SELECTED"
    VIEWED = "VIEWED"
    CALLED = "CALLED"
    DIRECTIONS = "DIRECTIONS"


class PreferenceRecord(BaseModel):
    """Learned affinity for one category.

    Frozen: the store replaces whole records, so a reader can never see a
    score from one update paired with a count from another.
    """

    model_config = ConfigDict(frozen=True)

    category: Category
    affinity_score: float = Field(default=NEUTRAL_AFFINITY, ge=MIN_AFFINITY, le=MAX_AFFINITY)
    last_updated: datetime = Field(default_factory=_utcnow)
    interaction_count: int = Field(default=0, ge=0)

    @classmethod
    def neutral(cls, category: Category, now: datetime | None = None) -> PreferenceRecord:
        return cls(
            category=category,
            affinity_score=NEUTRAL_AFFINITY,
            last_updated=now or _utcnow(),
            interaction_count=0,
        )

    def boosted(self, now: datetime) -> PreferenceRecord:
        """Return the record after a direct interaction with this category."""
        return self.model_copy(
            update={
                "affinity_score": round(
                    min(MAX_AFFINITY, self.affinity_score + INTERACTION_BOOST), SCORE_PRECISION
                ),
                "interaction_count": self.interaction_count + 1,
                "last_updated": now,
            }
        )

    def decayed(self) -> PreferenceRecord:
        """Return the record after an interaction with some other category."""
        return self.model_copy(
            update={
                "affinity_score": round(
                    max(MIN_AFFINITY, self.affinity_score * DECAY_FACTOR), SCORE_PRECISION
                )
            }
        )


class PreferenceSnapshot(BaseModel):
    """A consistent, read-only view of all nine preference records."""

    model_config = ConfigDict(frozen=True)

    records: dict[Category, PreferenceRecord]
    is_default: bool = False    # True when built as a degraded fallback

    @classmethod
    def neutral(cls, is_default: bool = True) -> PreferenceSnapshot:
        now = _utcnow()
        return cls(
            records={category: PreferenceRecord.neutral(category, now) for category in Category},
            is_default=is_default,
        )

    def get(self, category: Category) -> PreferenceRecord:
        record = self.records.get(category)
        if record is None:
            return PreferenceRecord.neutral(category)
        return record

    def affinity(self, category: Category) -> float:
        return self.get(category).affinity_score


class InteractionEvent(BaseModel):
    """One recorded user interaction, kept in the bounded history."""

    model_config = ConfigDict(frozen=True)

    query: str = ""
    place_name: str
    category: Category
    kind: InteractionKind = InteractionKind.SELECTED
    coordinate: Coordinate
    hour_of_day: int = Field(ge=0, le=23)
    day_of_week: int = Field(ge=1, le=7)    # 1 = Monday … 7 = Sunday (ISO)
    duration_seconds: float = Field(default=30.0, ge=0.0)
    timestamp: datetime = Field(default_factory=_utcnow)
