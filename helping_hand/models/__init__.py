"""Domain models -- re-exports all public model classes.

The models are organized by concern:
    - place.py     : Category, Coordinate, ProviderPlace, Place, PlaceRecommendation
    - search.py    : SearchDirective, PositionFix, Anchor, SearchOutcome
    - session.py   : SearchSession and its state machine
    - preference.py: PreferenceRecord, PreferenceSnapshot, interaction events
    - ranking.py   : RankingContext and RankingWeights
"""

from __future__ import annotations

from helping_hand.models.place import (
    Category,
    Coordinate,
    Place,
    PlaceRecommendation,
    ProviderPlace,
)
from helping_hand.models.preference import (
    InteractionEvent,
    InteractionKind,
    PreferenceRecord,
    PreferenceSnapshot,
)
from helping_hand.models.ranking import RankingContext, RankingWeights
from helping_hand.models.search import (
    Anchor,
    LocationQuality,
    OutcomeStatus,
    PositionFix,
    SearchDirective,
    SearchOutcome,
)
from helping_hand.models.session import SearchSession, SessionState

__all__ = [
    "Anchor",
    "Category",
    "Coordinate",
    "InteractionEvent",
    "InteractionKind",
    "LocationQuality",
    "OutcomeStatus",
    "Place",
    "PlaceRecommendation",
    "PositionFix",
    "PreferenceRecord",
    "PreferenceSnapshot",
    "ProviderPlace",
    "RankingContext",
    "RankingWeights",
    "SearchDirective",
    "SearchOutcome",
    "SearchSession",
    "SessionState",
]
