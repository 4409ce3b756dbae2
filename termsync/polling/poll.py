"""
Restartable, cancelable polling with exponential backoff.

A ``Poll`` repeatedly invokes an async factory. Successful ticks are
followed by the base interval; failed ticks grow the interval by the
backoff factor up to a ceiling. ``refresh()`` runs a tick out of cycle
without touching the backoff state, and ``tick`` lets callers await the
completion of the next tick.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from loguru import logger

from termsync.core.errors import PollDisposedError

IMMEDIATE = 0.0
DEFAULT_BACKOFF = 3.0

StandbyPolicy = Literal["never", "when-hidden"]
Standby = StandbyPolicy | bool | Callable[[], StandbyPolicy | bool]


# =============================================================================
# DATA CLASSES
# =============================================================================


class PollPhase(str, Enum):
    """Phase of the most recently scheduled tick."""

    CONSTRUCTED = "constructed"
    STARTED = "started"
    REFRESHED = "refreshed"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    STANDBY = "standby"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class Frequency:
    """Polling frequency parameters, in seconds."""

    interval: float = 10.0
    backoff: bool | float = True
    max: float = 300.0

    @property
    def growth(self) -> float:
        """Backoff multiplier; 1.0 means no backoff."""
        if self.backoff is True:
            return DEFAULT_BACKOFF
        if self.backoff is False:
            return 1.0
        return max(1.0, float(self.backoff))


# =============================================================================
# POLL
# =============================================================================


class Poll:
    """
    Periodically run an async factory.

    Must be created inside a running event loop.

    Example:
        >>> poll = Poll(fetch, Frequency(interval=10, max=300), name="models")
        >>> poll.start()
        >>> await poll.tick  # first tick completed
        >>> poll.refresh()
        >>> await poll.tick  # out-of-cycle tick completed
        >>> poll.dispose()
    """

    def __init__(
        self,
        factory: Callable[[], Awaitable[Any]],
        frequency: Frequency | None = None,
        name: str = "unknown",
        standby: Standby = "when-hidden",
        is_hidden: Callable[[], bool] | None = None,
    ) -> None:
        """
        Initialize the poll.

        Args:
            factory: Coroutine function invoked on every tick.
            frequency: Interval, backoff and ceiling.
            name: Name used in log messages.
            standby: "never", "when-hidden", or a callable deciding whether
                scheduled ticks are skipped right now.
            is_hidden: Predicate consulted by the "when-hidden" policy.
                Defaults to never hidden.
        """
        self._loop = asyncio.get_running_loop()
        self._factory = factory
        self.frequency = frequency or Frequency()
        self.name = name
        self.standby = standby
        self._is_hidden = is_hidden or (lambda: False)

        self._phase = PollPhase.CONSTRUCTED
        self._interval = IMMEDIATE
        self._backoff_interval = 0.0
        self._refresh_pending = False
        self._handle: asyncio.Handle | None = None
        self._task: asyncio.Task[None] | None = None
        self._executing: asyncio.Future[None] | None = None
        self._tick = self._new_tick()

    @property
    def phase(self) -> PollPhase:
        """Phase of the most recently scheduled tick."""
        return self._phase

    @property
    def interval(self) -> float:
        """Delay before the next scheduled tick."""
        return self._interval

    @property
    def is_disposed(self) -> bool:
        return self._phase is PollPhase.DISPOSED

    @property
    def tick(self) -> Awaitable[None]:
        """
        Awaitable that completes with the next tick.

        Raises the factory's exception if that tick fails, or
        PollDisposedError if the poll is disposed first.
        """
        return asyncio.shield(self._tick)

    def start(self) -> None:
        """Start polling. Calling it again has no effect."""
        if self._phase is not PollPhase.CONSTRUCTED:
            return
        self._schedule(PollPhase.STARTED, IMMEDIATE)

    def refresh(self) -> None:
        """
        Run a tick as soon as possible.

        Coalesces with a refresh that has not started yet. If a tick is in
        flight, the refreshed tick runs right after it and ``tick`` refers
        to the refreshed one.
        """
        if self.is_disposed or self._refresh_pending:
            return
        self._refresh_pending = True
        if self._task is not None:
            if self._tick is self._executing:
                self._tick = self._new_tick()
            self._phase = PollPhase.REFRESHED
            logger.debug(f"Poll ({self.name}) refresh queued behind in-flight tick")
            return
        self._schedule(PollPhase.REFRESHED, IMMEDIATE)

    def dispose(self) -> None:
        """Cancel pending work. An in-flight tick finishes but is discarded."""
        if self.is_disposed:
            return
        self._phase = PollPhase.DISPOSED
        self._cancel_handle()
        error = PollDisposedError(f"Poll ({self.name}) is disposed.")
        for future in (self._tick, self._executing):
            if future is not None and not future.done():
                future.set_exception(error)
        logger.debug(f"Poll ({self.name}) disposed")

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def _new_tick(self) -> asyncio.Future[None]:
        future: asyncio.Future[None] = self._loop.create_future()
        future.add_done_callback(_consume_exception)
        return future

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self, phase: PollPhase, interval: float) -> None:
        if self.is_disposed:
            return
        self._phase = phase
        self._interval = interval
        self._cancel_handle()
        logger.debug(f"Poll ({self.name}) {phase.value}, next tick in {interval:.2f}s")
        if interval == IMMEDIATE:
            self._handle = self._loop.call_soon(self._execute)
        else:
            self._handle = self._loop.call_later(interval, self._execute)

    def _in_standby(self) -> bool:
        standby = self.standby() if callable(self.standby) else self.standby
        if standby == "never":
            return False
        if standby == "when-hidden":
            return bool(self._is_hidden())
        return bool(standby)

    def _execute(self) -> None:
        self._handle = None
        if self.is_disposed:
            return

        out_of_cycle = self._refresh_pending or self._phase is PollPhase.STARTED
        if not out_of_cycle and self._in_standby():
            self._schedule(PollPhase.STANDBY, self.frequency.interval)
            return

        self._refresh_pending = False
        self._executing = self._tick
        self._task = self._loop.create_task(self._run(self._tick))

    async def _run(self, tick: asyncio.Future[None]) -> None:
        error: Exception | None = None
        try:
            await self._factory()
        except Exception as e:
            error = e
        finally:
            self._task = None
            self._executing = None

        if self.is_disposed:
            return

        if error is None:
            self._backoff_interval = 0.0
            phase, interval = PollPhase.RESOLVED, self.frequency.interval
            if not tick.done():
                tick.set_result(None)
        else:
            logger.debug(f"Poll ({self.name}) tick failed: {error!r}")
            phase, interval = PollPhase.REJECTED, self._next_backoff()
            if not tick.done():
                tick.set_exception(error)

        if self._tick is tick:
            self._tick = self._new_tick()
        if self._refresh_pending:
            phase, interval = PollPhase.REFRESHED, IMMEDIATE
        self._schedule(phase, interval)

    def _next_backoff(self) -> float:
        growth = self.frequency.growth
        if growth <= 1.0:
            return self.frequency.interval
        self._backoff_interval = min(
            self.frequency.max,
            max(self.frequency.interval, self._backoff_interval * growth),
        )
        return self._backoff_interval

    def __repr__(self) -> str:
        return f"Poll(name={self.name!r}, phase={self._phase.value}, interval={self._interval})"


def _consume_exception(future: asyncio.Future[None]) -> None:
    # Tick failures are reported to awaiters; nobody awaiting is not an error.
    if not future.cancelled():
        future.exception()
