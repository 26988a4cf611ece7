"""
Timer Lifecycle Controller — start / pause / resume / stop per surface.

At most one timer in the store is running at any moment: starting or
resuming a surface pauses every other surface in the same transaction.
Time is folded into the day's totals only when a timer stops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..clock import Clock
from ..enforcement.protocol import EnforcementProtocol
from ..settings import SettingsCache
from ..store import Transaction
from .stats import StatsAggregator, fold_into
from .timers import TimerMap, TimerState, TimerStore, pause_all_in

logger = logging.getLogger(__name__)

_WATCH_URL_MARKER = "youtube.com/watch"


@dataclass
class StartOutcome:
    success: bool
    blocked: bool = False
    reason: str = ""


class TimerController:

    def __init__(
        self,
        timers: TimerStore,
        stats: StatsAggregator,
        settings: SettingsCache,
        enforcement: EnforcementProtocol,
        clock: Clock,
    ):
        self._timers = timers
        self._stats = stats
        self._settings = settings
        self._enforcement = enforcement
        self._clock = clock

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_timer(self, surface: int, bucket: str) -> StartOutcome:
        await self._settings.ensure_loaded()

        if await self._timers.get(surface) is not None:
            logger.info("Timer for surface %s is already running", surface)
            return StartOutcome(success=False, reason="Timer already running.")

        totals = await self._stats.todays_totals()
        if self._settings.is_exhausted(bucket, totals.get(bucket, 0)):
            logger.info("Bucket %r is already over budget, blocking surface %s", bucket, surface)
            await self._timers.mutate(
                lambda timers, txn: timers.setdefault(surface, TimerState(bucket=bucket))
            )
            await self._enforcement.block_surface(surface)
            return StartOutcome(success=True, blocked=True)

        def _start(timers: TimerMap, txn: Transaction) -> bool:
            if surface in timers:
                return False
            now = self._clock.now_ms()
            pause_all_in(timers, now, except_surface=surface)
            timers[surface] = TimerState(bucket=bucket, running_since_ms=now)
            return True

        if not await self._timers.mutate(_start):
            # another event tracked the surface while budgets were being checked
            return StartOutcome(success=False, reason="Timer already running.")
        logger.info("Timer started for surface %s (%s)", surface, bucket)
        return StartOutcome(success=True, blocked=False)

    async def pause(self, surface: int) -> bool:
        return await self._timers.pause(surface, self._clock.now_ms)

    async def pause_all(self, except_surface: Optional[int] = None) -> List[int]:
        return await self._timers.pause_all(self._clock.now_ms, except_surface)

    async def resume(self, surface: int) -> bool:
        """Resume a paused timer unless its bucket has run out of budget meanwhile."""
        await self._settings.ensure_loaded()
        state = await self._timers.get(surface)
        if state is None or state.running:
            return False

        totals = await self._stats.todays_totals()
        if self._settings.is_exhausted(state.bucket, totals.get(state.bucket, 0)):
            logger.info("Resume denied: surface %s bucket %r is over budget", surface, state.bucket)
            await self._enforcement.block_surface(surface)
            return False

        def _resume(timers: TimerMap, txn: Transaction) -> bool:
            current = timers.get(surface)
            if current is None or current.running:
                return False
            now = self._clock.now_ms()
            pause_all_in(timers, now, except_surface=surface)
            current.running_since_ms = now
            return True

        resumed = await self._timers.mutate(_resume)
        if resumed:
            logger.info("Resumed timer for surface %s", surface)
        return resumed

    async def stop(self, surface: int) -> int:
        """
        Pause one last time, fold the accrued time into today's totals and
        forget the timer. Returns the milliseconds folded (0 if none or absent).
        """
        def _stop(timers: TimerMap, txn: Transaction) -> int:
            state = timers.pop(surface, None)
            if state is None:
                return 0
            now = self._clock.now_ms()
            state.pause(now)
            if state.accumulated_ms > 0:
                today = self._clock.today()
                txn.set(today, fold_into(txn.get(today), state.bucket, state.accumulated_ms))
            return state.accumulated_ms

        folded = await self._timers.mutate(_stop)
        if folded:
            logger.info("Stopped timer for surface %s, saved %d ms", surface, folded)
        return folded

    # ------------------------------------------------------------------
    # Surface lifecycle events
    # ------------------------------------------------------------------

    async def surface_activated(self, surface: int) -> bool:
        """The user switched to *surface*: every other surface pauses, this one resumes."""
        await self.pause_all(except_surface=surface)
        return await self.resume(surface)

    async def surface_closed(self, surface: int) -> int:
        return await self.stop(surface)

    async def surface_navigated(self, surface: int, url: str) -> int:
        """A tracked surface that changes URL has finished its item."""
        folded = await self.stop(surface)
        if folded:
            logger.info("Surface %s navigated to %s, timer stopped", surface, url)
        return folded


def is_watch_page(url: str) -> bool:
    return _WATCH_URL_MARKER in (url or "")
