"""Hybrid search engine: the caller-facing façade over the whole pipeline.

    run_search(directive, fix)
      1. validate      -- empty term set raises DirectiveError
      2. locate        -- LocationQualityPolicy -> (anchor, radius)
      3. begin         -- SessionRegistry opens generation g, supersedes g-1
      4. fan out/join  -- FanOutCoordinator queries every available adapter
      5. merge check   -- drop everything if g is no longer current
      6. normalize     -- ResultNormalizer, then Deduplicator
      7. rank          -- RankingEngine against a preference snapshot
      8. deliver       -- SearchOutcome (RESULTS, EMPTY or SUPERSEDED)

Adapter failures never reach the caller; they shrink the result set and
are counted in the outcome.  A preference store failure degrades ranking
to neutral affinities.  Only a malformed directive is raised.

All collaborators are injected; ``helping_hand.main.build_engine`` wires
the production set.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog

from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.interfaces.preference_store import IPreferenceStore
from helping_hand.models.place import Place
from helping_hand.models.preference import (
    InteractionEvent,
    InteractionKind,
    PreferenceRecord,
    PreferenceSnapshot,
)
from helping_hand.models.ranking import RankingContext
from helping_hand.models.search import (
    Anchor,
    OutcomeStatus,
    PositionFix,
    SearchDirective,
    SearchOutcome,
)
from helping_hand.models.session import SearchSession, SessionState
from helping_hand.pipeline.fan_out import FanOutCoordinator
from helping_hand.pipeline.session_registry import SessionRegistry
from helping_hand.services.deduplicator import Deduplicator
from helping_hand.services.location_policy import LocationQualityPolicy
from helping_hand.services.normalizer import ResultNormalizer
from helping_hand.services.ranking_engine import RankingEngine
from helping_hand.utils.errors import DirectiveError, PreferenceStoreError
from helping_hand.utils.logging import get_logger, session_context


def _local_now() -> datetime:
    return datetime.now().astimezone()


class HybridSearchEngine:
    """Runs search sessions and records user feedback.

    Parameters
    ----------
    providers:
        Place-search adapters, queried in this order for every term.
    preference_store:
        Source of affinity snapshots and sink for interactions.
    location_policy, normalizer, deduplicator, ranking_engine:
        Pipeline services; defaults are constructed when omitted.
    registry:
        Session registry; shared with *coordinator* when both are given.
    coordinator:
        Fan-out coordinator; built over *registry* when omitted.
    clock:
        Returns the local wall-clock time used for ranking when a call
        does not pass ``now``.
    """

    def __init__(
        self,
        providers: list[IPlaceSearchProvider],
        preference_store: IPreferenceStore,
        location_policy: LocationQualityPolicy | None = None,
        normalizer: ResultNormalizer | None = None,
        deduplicator: Deduplicator | None = None,
        ranking_engine: RankingEngine | None = None,
        registry: SessionRegistry | None = None,
        coordinator: FanOutCoordinator | None = None,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._providers = list(providers)
        self._preference_store = preference_store
        self._location_policy = location_policy or LocationQualityPolicy()
        self._normalizer = normalizer or ResultNormalizer()
        self._deduplicator = deduplicator or Deduplicator()
        self._ranking_engine = ranking_engine or RankingEngine()
        self._registry = registry or SessionRegistry()
        self._coordinator = coordinator or FanOutCoordinator(self._registry)
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def providers(self) -> list[IPlaceSearchProvider]:
        return list(self._providers)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def run_search(
        self,
        directive: SearchDirective,
        fix: PositionFix | None = None,
        now: datetime | None = None,
    ) -> SearchOutcome:
        """Run one search session to completion.

        Parameters
        ----------
        directive:
            Structured search intent.
        fix:
            Latest position fix; ``None`` falls back to the configured
            default location.
        now:
            Wall-clock time for time-of-day ranking; defaults to the clock.

        Returns
        -------
        SearchOutcome
            ``RESULTS`` with ranked recommendations, ``EMPTY`` when nothing
            matched, or ``SUPERSEDED`` when a newer search started first.

        Raises
        ------
        DirectiveError
            If the directive has no non-blank search term.
        """
        terms = directive.term_set()
        if not terms:
            self._logger.warning("search_rejected_empty_directive")
            raise DirectiveError(message="Search directive has no search terms")

        anchor, radius = self._location_policy.resolve(fix, term_count=len(terms))
        session = await self._registry.begin(directive, anchor, radius)
        with session_context(session.generation, terms):
            return await self._run_session(session, now)

    async def _run_session(self, session: SearchSession, now: datetime | None) -> SearchOutcome:
        generation = session.generation
        anchor = session.anchor
        radius = session.radius_meters

        fan_out = await self._coordinator.run(session, self._providers)
        if fan_out.superseded:
            return self._superseded(generation, anchor, radius)

        # Store reads happen before the merge boundary.  Once MERGED the
        # session can no longer be superseded.
        preferences = await self._snapshot_preferences()
        familiarity = await self._familiarity(anchor)

        batches = self._coordinator.merge_boundary(generation, list(fan_out.batches))
        if not self._registry.is_current(generation):
            return self._superseded(generation, anchor, radius)
        await self._registry.advance(generation, SessionState.MERGED, pending_calls=0)

        raw = [place for batch in batches for place in batch.places]
        places = self._deduplicator.deduplicate(self._normalizer.normalize_all(raw, anchor))

        context = RankingContext.at(now or self._clock(), anchor, familiarity)
        recommendations = self._ranking_engine.recommend(places, context, preferences)
        await self._registry.advance(generation, SessionState.RANKED)

        status = OutcomeStatus.RESULTS if recommendations else OutcomeStatus.EMPTY
        outcome = SearchOutcome(
            status=status,
            generation=generation,
            anchor=anchor,
            radius_meters=radius,
            recommendations=tuple(recommendations),
            total_calls=fan_out.total_calls,
            failed_calls=fan_out.failed_calls,
        )
        await self._registry.advance(generation, SessionState.DELIVERED)

        self._logger.info(
            "search_delivered",
            generation=generation,
            status=status.value,
            raw_places=len(raw),
            unique_places=len(places),
            total_calls=outcome.total_calls,
            failed_calls=outcome.failed_calls,
            anchor_fallback=anchor.is_fallback,
        )
        return outcome

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def record_interaction(
        self,
        place: Place,
        kind: InteractionKind = InteractionKind.SELECTED,
        query: str = "",
        duration_seconds: float = 30.0,
        now: datetime | None = None,
    ) -> PreferenceRecord:
        """Record that the user interacted with *place*.

        Raises
        ------
        PreferenceStoreError
            If the store cannot persist the interaction.
        """
        moment = now or self._clock()
        event = InteractionEvent(
            query=query,
            place_name=place.name,
            category=place.category,
            kind=kind,
            coordinate=place.coordinate,
            hour_of_day=moment.hour,
            day_of_week=moment.isoweekday(),
            duration_seconds=duration_seconds,
            timestamp=moment.astimezone(timezone.utc),  # noqa: UP017
        )
        record = await self._preference_store.record_event(event)
        self._logger.info(
            "interaction_recorded",
            place=place.name,
            category=place.category.value,
            kind=kind.value,
            affinity_score=record.affinity_score,
        )
        return record

    async def preferences(self) -> PreferenceSnapshot:
        """Current affinities, or neutral defaults if the store is unavailable."""
        return await self._snapshot_preferences()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _snapshot_preferences(self) -> PreferenceSnapshot:
        try:
            return await self._preference_store.snapshot()
        except PreferenceStoreError as exc:
            self._logger.warning(
                "preferences_unavailable_using_neutral",
                store=self._preference_store.get_provider_name(),
                error=str(exc),
            )
            return PreferenceSnapshot.neutral()

    async def _familiarity(self, anchor: Anchor) -> float:
        if anchor.is_fallback:
            return 0.0
        try:
            return await self._preference_store.location_familiarity(anchor.coordinate)
        except PreferenceStoreError as exc:
            self._logger.warning("location_familiarity_unavailable", error=str(exc))
            return 0.0

    def _superseded(self, generation: int, anchor: Anchor, radius: float) -> SearchOutcome:
        self._logger.info("search_superseded", generation=generation)
        return SearchOutcome(
            status=OutcomeStatus.SUPERSEDED,
            generation=generation,
            anchor=anchor,
            radius_meters=radius,
        )
