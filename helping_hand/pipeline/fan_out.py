"""Fan-out coordinator: one concurrent adapter call per (term, adapter).

For a session the coordinator issues ``adapter.search(term, anchor, radius)``
for every search term and every available adapter as asyncio tasks, then
waits for all of them (join barrier).  Each call is independently
fallible: an exception or a per-call timeout is logged and turns into an
empty, failed :class:`ProviderBatch`; siblings keep running.  Calls wait for
the shared concurrency limit shortest adapter timeout first, so within a
session a quick adapter does not wait behind slower ones.

The wait ends early when the session is superseded.  Outstanding calls are
then cancelled and everything collected so far is discarded.  The wait also
ends at the session deadline (the largest per-adapter timeout), after which
late calls are cancelled and counted as failed.

Every batch carries the generation it was issued for.  The merge boundary
accepts only batches of the session's own generation, and only while that
generation is still current.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from helping_hand.interfaces.cache_provider import ICacheProvider
from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.models.place import ProviderPlace
from helping_hand.models.session import SearchSession, SessionState
from helping_hand.pipeline.session_registry import SessionRegistry
from helping_hand.utils.concurrency import bounded_call, join_until
from helping_hand.utils.logging import get_logger

_DEFAULT_TIMEOUT = 8.0
_DEFAULT_MAX_CONCURRENT = 8
# Added to the session deadline for task bookkeeping after the last timeout.
_JOIN_GRACE_SECONDS = 0.25


@dataclass(frozen=True)
class ProviderBatch:
    """The contribution of one (adapter, term) call to one session."""

    generation: int
    provider_name: str
    term: str
    places: tuple[ProviderPlace, ...] = ()
    error: str | None = None
    from_cache: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class FanOutResult:
    """All batches of one session, in (term, adapter) dispatch order."""

    generation: int
    batches: tuple[ProviderBatch, ...] = ()
    superseded: bool = False
    timed_out: bool = False
    skipped_providers: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_calls(self) -> int:
        return len(self.batches)

    @property
    def failed_calls(self) -> int:
        return sum(1 for batch in self.batches if batch.failed)

    @property
    def places(self) -> list[ProviderPlace]:
        """Raw places of every successful batch, in dispatch order."""
        return [place for batch in self.batches for place in batch.places]


def cache_key(provider_name: str, term: str, session: SearchSession) -> str:
    """Cache key for one adapter response; coordinates rounded to 4 dp."""
    anchor = session.anchor
    return (
        f"{provider_name}:{term.strip().casefold()}:"
        f"{anchor.latitude:.4f}:{anchor.longitude:.4f}:{int(round(session.radius_meters))}"
    )


class FanOutCoordinator:
    """Dispatches a session's adapter calls and joins them.

    Parameters
    ----------
    registry:
        Session registry used for state transitions and supersession.
    default_timeout:
        Per-call timeout for adapters that do not declare their own.
    max_concurrent_calls:
        Upper bound on adapter calls in flight across all sessions.
    cache:
        Optional response cache; only successful responses are stored.
    cache_ttl:
        TTL passed to the cache on every write.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        default_timeout: float = _DEFAULT_TIMEOUT,
        max_concurrent_calls: int = _DEFAULT_MAX_CONCURRENT,
        cache: ICacheProvider | None = None,
        cache_ttl: int | None = None,
    ) -> None:
        self._registry = registry
        self._default_timeout = default_timeout
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_calls))
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def timeout_for(self, provider: IPlaceSearchProvider) -> float:
        return provider.timeout_seconds or self._default_timeout

    async def run(
        self,
        session: SearchSession,
        providers: list[IPlaceSearchProvider],
    ) -> FanOutResult:
        """Fan out *session* to *providers* and wait for the join.

        Returns
        -------
        FanOutResult
            ``superseded=True`` with no batches when a newer session began
            before the join completed; otherwise one batch per call.
        """
        generation = session.generation
        available = [p for p in providers if p.is_available()]
        skipped = tuple(p.get_provider_name() for p in providers if p not in available)
        if skipped:
            self._logger.info("providers_unavailable", generation=generation, providers=skipped)

        calls = [
            (term, provider) for term in session.directive.term_set() for provider in available
        ]

        if await self._registry.advance(
            generation, SessionState.DISPATCHED, pending_calls=len(calls)
        ) is None:
            return FanOutResult(generation=generation, superseded=True)

        self._logger.info(
            "fan_out_dispatched",
            generation=generation,
            calls=len(calls),
            providers=[p.get_provider_name() for p in available],
        )
        if not calls:
            return FanOutResult(generation=generation, skipped_providers=skipped)

        remaining = len(calls)

        async def _tracked(term: str, provider: IPlaceSearchProvider) -> ProviderBatch:
            nonlocal remaining
            batch = await self._call(session, provider, term)
            remaining -= 1
            await self._registry.advance(generation, SessionState.AWAITING, pending_calls=remaining)
            return batch

        # Queued on the shared semaphore shortest timeout first; batches keep call order.
        dispatch_order = sorted(range(len(calls)), key=lambda i: self.timeout_for(calls[i][1]))
        started = {i: asyncio.create_task(_tracked(*calls[i])) for i in dispatch_order}
        tasks = [started[i] for i in range(len(calls))]
        await self._registry.advance(generation, SessionState.AWAITING, pending_calls=remaining)

        deadline = max(self.timeout_for(p) for p in available) + _JOIN_GRACE_SECONDS
        completed = await join_until(
            tasks, deadline, stop_event=self._registry.superseded_event(generation)
        )

        if not self._registry.is_current(generation):
            self._logger.info(
                "fan_out_discarded_superseded",
                generation=generation,
                finished_calls=sum(1 for t in tasks if t.done() and not t.cancelled()),
            )
            return FanOutResult(generation=generation, superseded=True)

        batches: list[ProviderBatch] = []
        for task, (term, provider) in zip(tasks, calls):
            if task.done() and not task.cancelled():
                batches.append(task.result())
            else:
                self._logger.warning(
                    "fan_out_call_cancelled_at_deadline",
                    generation=generation,
                    provider=provider.get_provider_name(),
                    term=term,
                )
                batches.append(
                    ProviderBatch(
                        generation=generation,
                        provider_name=provider.get_provider_name(),
                        term=term,
                        error="session deadline exceeded",
                    )
                )

        accepted = self.merge_boundary(generation, batches)
        result = FanOutResult(
            generation=generation,
            batches=tuple(accepted),
            timed_out=not completed,
            skipped_providers=skipped,
        )
        self._logger.info(
            "fan_out_joined",
            generation=generation,
            total_calls=result.total_calls,
            failed_calls=result.failed_calls,
            raw_places=len(result.places),
            timed_out=result.timed_out,
        )
        return result

    def merge_boundary(self, generation: int, batches: list[ProviderBatch]) -> list[ProviderBatch]:
        """Keep only batches of *generation*, and none if it is no longer current."""
        if not self._registry.is_current(generation):
            return []
        accepted = [b for b in batches if b.generation == generation]
        if len(accepted) != len(batches):
            self._logger.warning(
                "stale_batches_dropped",
                generation=generation,
                dropped=len(batches) - len(accepted),
            )
        return accepted

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _call(
        self,
        session: SearchSession,
        provider: IPlaceSearchProvider,
        term: str,
    ) -> ProviderBatch:
        """Run one adapter call; never raises except on cancellation."""
        generation = session.generation
        name = provider.get_provider_name()
        key = cache_key(name, term, session)

        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                return ProviderBatch(
                    generation=generation,
                    provider_name=name,
                    term=term,
                    places=tuple(cached),
                    from_cache=True,
                )

        timeout = self.timeout_for(provider)
        try:
            places = await bounded_call(
                provider.search(term, session.anchor.coordinate, session.radius_meters),
                timeout=timeout,
                semaphore=self._semaphore,
            )
        except asyncio.TimeoutError:
            self._logger.warning(
                "fan_out_call_timeout",
                generation=generation,
                provider=name,
                term=term,
                timeout_seconds=timeout,
            )
            return ProviderBatch(
                generation=generation,
                provider_name=name,
                term=term,
                error=f"timed out after {timeout}s",
            )
        except Exception as exc:
            self._logger.warning(
                "fan_out_call_failed",
                generation=generation,
                provider=name,
                term=term,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ProviderBatch(
                generation=generation,
                provider_name=name,
                term=term,
                error=str(exc) or type(exc).__name__,
            )

        result = tuple(places or ())
        if self._cache is not None:
            await self._cache.set(key, result, ttl=self._cache_ttl)
        self._logger.debug(
            "fan_out_call_complete",
            generation=generation,
            provider=name,
            term=term,
            result_count=len(result),
        )
        return ProviderBatch(generation=generation, provider_name=name, term=term, places=result)
