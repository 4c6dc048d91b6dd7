"""Search session registry: generations, supersession and state listeners.

Every user query opens a new :class:`SearchSession` with a generation
number strictly greater than any issued before.  Opening one immediately
supersedes the previous session if it is still live, and sets that
session's stop event so its fan-out stops waiting on adapters.

The registry is the single source of truth for "which search is current".
The fan-out coordinator and the search engine compare their generation
against it at the merge boundary, so results of an older query can never
be merged into (or delivered as) a newer one.

Listeners follow the observer pattern: sync or async callables invoked
with ``(session, previous_state)`` on every transition.  A listener that
raises is logged and skipped.

All methods run on the event loop thread.  State changes are applied
before any listener is awaited, so a transition is visible to other tasks
as soon as the call that made it yields.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from helping_hand.models.search import Anchor, SearchDirective
from helping_hand.models.session import ALLOWED_TRANSITIONS, SearchSession, SessionState
from helping_hand.utils.logging import get_logger

# Finished sessions kept for inspection before being pruned.
_HISTORY_LIMIT = 32


class SessionRegistry:
    """Issues generations and tracks the lifecycle of search sessions."""

    def __init__(self, history_limit: int = _HISTORY_LIMIT) -> None:
        self._sessions: dict[int, SearchSession] = {}
        self._stop_events: dict[int, asyncio.Event] = {}
        self._latest_generation = 0
        self._history_limit = max(1, history_limit)
        self._listeners: list[Callable] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current(self) -> SearchSession | None:
        """The most recently begun session, whatever its state."""
        return self._sessions.get(self._latest_generation)

    @property
    def latest_generation(self) -> int:
        return self._latest_generation

    def get(self, generation: int) -> SearchSession | None:
        return self._sessions.get(generation)

    def is_current(self, generation: int) -> bool:
        """``True`` if *generation* is the newest session and not superseded."""
        session = self._sessions.get(generation)
        return (
            session is not None
            and generation == self._latest_generation
            and session.state != SessionState.SUPERSEDED
        )

    def superseded_event(self, generation: int) -> asyncio.Event:
        """Event set once *generation* is superseded.

        Unknown or pruned generations get an already-set event.
        """
        event = self._stop_events.get(generation)
        if event is None:
            event = asyncio.Event()
            event.set()
        return event

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def begin(
        self,
        directive: SearchDirective,
        anchor: Anchor,
        radius_meters: float,
    ) -> SearchSession:
        """Open a new session and supersede the previous live one.

        Returns
        -------
        SearchSession
            The new session in ``IDLE`` state.
        """
        previous = self.current
        superseded: SearchSession | None = None
        if previous is not None and previous.is_live:
            superseded = previous.model_copy(update={"state": SessionState.SUPERSEDED})
            self._sessions[previous.generation] = superseded
            self._stop_events[previous.generation].set()

        self._latest_generation += 1
        session = SearchSession(
            generation=self._latest_generation,
            directive=directive,
            anchor=anchor,
            radius_meters=radius_meters,
        )
        self._sessions[session.generation] = session
        self._stop_events[session.generation] = asyncio.Event()
        self._prune()

        if superseded is not None:
            self._logger.info(
                "session_superseded",
                generation=superseded.generation,
                by_generation=session.generation,
                previous_state=previous.state.value,
            )
            await self._notify_listeners(superseded, previous.state)

        self._logger.info(
            "session_begun",
            generation=session.generation,
            terms=directive.term_set(),
            category_hint=directive.category_hint.value if directive.category_hint else None,
            location_aware=directive.is_location_aware,
            radius_meters=radius_meters,
            anchor_quality=anchor.quality.value,
        )
        await self._notify_listeners(session, None)
        return session

    async def advance(
        self,
        generation: int,
        state: SessionState,
        pending_calls: int | None = None,
    ) -> SearchSession | None:
        """Move *generation* to *state*.

        Returns
        -------
        SearchSession | None
            The updated session, or ``None`` when the session is unknown or
            already superseded (a superseded session is never touched again).

        Raises
        ------
        ValueError
            If the transition is not allowed from the session's current state.
        """
        session = self._sessions.get(generation)
        if session is None or session.state == SessionState.SUPERSEDED:
            self._logger.debug(
                "session_advance_refused",
                generation=generation,
                requested_state=state.value,
            )
            return None

        if state not in ALLOWED_TRANSITIONS[session.state]:
            msg = f"Illegal session transition {session.state.value} -> {state.value}"
            raise ValueError(msg)

        update: dict = {"state": state}
        if pending_calls is not None:
            update["pending_calls"] = max(0, pending_calls)
        updated = session.model_copy(update=update)
        self._sessions[generation] = updated

        self._logger.debug(
            "session_advanced",
            generation=generation,
            state=state.value,
            pending_calls=updated.pending_calls,
        )
        await self._notify_listeners(updated, session.state)
        return updated

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, callback: Callable) -> None:
        """Register a sync or async ``callback(session, previous_state)``."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unregister_listener(self, callback: Callable) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(
        self,
        session: SearchSession,
        previous_state: SessionState | None,
    ) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(session, previous_state)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    generation=session.generation,
                    state=session.state.value,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    def _prune(self) -> None:
        cutoff = self._latest_generation - self._history_limit
        for generation in [g for g in self._sessions if g <= cutoff]:
            del self._sessions[generation]
            self._stop_events.pop(generation, None)
