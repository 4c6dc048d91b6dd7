"""Shared concurrency primitives for the provider fan-out.

Two patterns are exposed:

1. **bounded_call** -- awaits one coroutine under an optional semaphore and
   a hard timeout.  Every adapter call in a search session goes through it,
   so a slow provider degrades to a timeout instead of stalling the join.

2. **join_until** -- the barrier half of fan-out/join: waits for every task
   to finish, but gives up at a deadline or as soon as a stop event fires
   (used when a newer search session supersedes the current one).  Tasks
   still running when it gives up are cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Iterable, TypeVar

import structlog

from helping_hand.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def bounded_call(
    coro: Awaitable[_T],
    timeout: float,
    semaphore: asyncio.Semaphore | None = None,
) -> _T:
    """Await *coro* while holding *semaphore*, failing after *timeout* seconds.

    The timeout covers only the call itself, not the time spent queued on
    the semaphore, so a burst of sessions cannot starve late calls into
    spurious timeouts.

    Raises
    ------
    asyncio.TimeoutError
        If the call does not complete within *timeout* seconds.
    """
    if semaphore is None:
        return await asyncio.wait_for(coro, timeout=timeout)

    async with semaphore:
        return await asyncio.wait_for(coro, timeout=timeout)


async def join_until(
    tasks: Iterable[asyncio.Task],
    deadline: float,
    stop_event: asyncio.Event | None = None,
) -> bool:
    """Wait for all *tasks*, the *deadline* (seconds), or *stop_event*.

    Returns
    -------
    bool
        ``True`` when every task finished on its own, ``False`` when the
        wait was cut short by the deadline or the stop event.  In the
        latter case all unfinished tasks have been cancelled and awaited.
    """
    pending = set(tasks)
    if not pending:
        return True

    stop_waiter: asyncio.Task | None = None
    if stop_event is not None:
        stop_waiter = asyncio.ensure_future(stop_event.wait())

    loop = asyncio.get_running_loop()
    ends_at = loop.time() + deadline
    completed = True

    try:
        while pending:
            remaining = ends_at - loop.time()
            if remaining <= 0:
                completed = False
                break

            waitables = set(pending)
            if stop_waiter is not None:
                waitables.add(stop_waiter)

            done, _ = await asyncio.wait(
                waitables, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            pending -= done
            if stop_waiter is not None and stop_waiter in done:
                completed = False
                break
    finally:
        if stop_waiter is not None and not stop_waiter.done():
            stop_waiter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stop_waiter

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        _logger.debug("join_cancelled_pending", cancelled=len(pending))

    return completed and not pending
