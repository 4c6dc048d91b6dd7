"""Search session state models.

A :class:`SearchSession` ties one user query to its in-flight fan-out.
Sessions are frozen; the session registry
(``helping_hand/pipeline/session_registry.py``) advances them by storing
``model_copy(update={...})`` copies, and refuses to touch a session once
it has been superseded.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from helping_hand.models.search import Anchor, SearchDirective


class SessionState(str, Enum):  # noqa: UP042 (StrEnum is 3.11+)
    """Lifecycle of a search session.

        IDLE → DISPATCHED → AWAITING(k) → MERGED → RANKED → DELIVERED

    SUPERSEDED is reachable from IDLE, DISPATCHED or AWAITING whenever a
    newer session begins; it is terminal.  Once MERGED a session has
    passed the merge boundary and runs to DELIVERED.
    """

    IDLE = "IDLE"
    DISPATCHED = "DISPATCHED"
    AWAITING = "AWAITING"
    MERGED = "MERGED"
    RANKED = "RANKED"
    DELIVERED = "DELIVERED"
    SUPERSEDED = "SUPERSEDED"


# Legal forward transitions.  AWAITING → AWAITING lets the coordinator
# publish a shrinking pending-call count.
ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.DISPATCHED, SessionState.SUPERSEDED}),
    SessionState.DISPATCHED: frozenset(
        {SessionState.AWAITING, SessionState.MERGED, SessionState.SUPERSEDED}
    ),
    SessionState.AWAITING: frozenset(
        {SessionState.AWAITING, SessionState.MERGED, SessionState.SUPERSEDED}
    ),
    SessionState.MERGED: frozenset({SessionState.RANKED}),
    SessionState.RANKED: frozenset({SessionState.DELIVERED}),
    SessionState.DELIVERED: frozenset(),
    SessionState.SUPERSEDED: frozenset(),
}


class SearchSession(BaseModel):
    """One search session.  Immutable -- use ``model_copy`` to advance."""

    model_config = ConfigDict(frozen=True)

    generation: int = Field(ge=1)
    directive: SearchDirective
    anchor: Anchor
    radius_meters: float
    state: SessionState = SessionState.IDLE
    pending_calls: int = Field(default=0, ge=0)
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @property
    def is_live(self) -> bool:
        """``True`` while the session has calls in flight and can be superseded."""
        return SessionState.SUPERSEDED in ALLOWED_TRANSITIONS[self.state]
