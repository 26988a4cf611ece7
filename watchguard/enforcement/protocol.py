"""
Enforcement Protocol — keeps each page agent's block state consistent with
the engine's budget decisions.

Two independent paths share one decision (todays_totals + budget compare):

    push   block_surface() / unblock_surface() / sweep()
                                      → one-shot command, delivery not guaranteed
    pull   check_status()             → agent asks "am I blocked?"

The pull path is the backstop: if every push is lost, the agent still
converges within one poll interval. A surface without a timer is never
blocked, which is why an over-budget start still writes a tainted timer.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

from ..clock import Clock
from ..settings import SettingsCache
from ..tracking.stats import StatsAggregator
from ..tracking.timers import TimerMap, TimerStore
from .agents import AgentCommand, AgentRegistry

logger = logging.getLogger(__name__)


class EnforcementProtocol:

    def __init__(
        self,
        timers: TimerStore,
        stats: StatsAggregator,
        settings: SettingsCache,
        agents: AgentRegistry,
        clock: Clock,
    ):
        self._timers = timers
        self._stats = stats
        self._settings = settings
        self._agents = agents
        self._clock = clock
        # surfaces told to block since this process started
        self._blocked: Set[int] = set()

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def block_surface(self, surface: int) -> bool:
        """Best-effort block command; engine state is never rolled back on failure."""
        logger.info("Blocking surface %s", surface)
        self._blocked.add(surface)
        return await self._agents.send(surface, AgentCommand.BLOCK)

    async def unblock_surface(self, surface: int) -> bool:
        logger.info("Unblocking surface %s", surface)
        self._blocked.discard(surface)
        return await self._agents.send(surface, AgentCommand.UNBLOCK)

    async def sweep(self) -> List[int]:
        """
        Pause and block every tracked surface whose bucket is at or over budget,
        and unblock surfaces blocked earlier whose bucket is back under budget
        (raised budget, new day) or that no longer have a timer.
        Returns the surfaces that were blocked.
        """
        await self._settings.ensure_loaded()
        totals = await self._stats.todays_totals()
        exhausted = {
            bucket for bucket, spent in totals.items()
            if self._settings.is_exhausted(bucket, spent)
        }
        timers = await self._timers.load()
        await self._release(timers, exhausted)
        if not exhausted:
            return []

        logger.info("Sweep: over-budget buckets %s", sorted(exhausted))
        blocked = []
        for surface, state in timers.items():
            if state.bucket not in exhausted:
                continue
            await self._timers.pause(surface, self._clock.now_ms)
            await self.block_surface(surface)
            blocked.append(surface)
        return blocked

    async def _release(self, timers: TimerMap, exhausted: Set[str]) -> None:
        for surface in sorted(self._blocked):
            state = timers.get(surface)
            if state is None or state.bucket not in exhausted:
                await self.unblock_surface(surface)

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def check_status(self, surface: Optional[int]) -> AgentCommand:
        """Answer an agent's status query. Unknown surfaces fail open."""
        if surface is None:
            return AgentCommand.UNBLOCK

        await self._settings.ensure_loaded()
        state = await self._timers.get(surface)
        if state is None:
            return AgentCommand.UNBLOCK

        totals = await self._stats.todays_totals()
        spent = totals.get(state.bucket, 0)
        if self._settings.is_exhausted(state.bucket, spent):
            logger.info(
                "checkMyStatus: surface %s (%s) is over budget (%d ms)",
                surface, state.bucket, spent,
            )
            await self._timers.pause(surface, self._clock.now_ms)
            self._blocked.add(surface)
            return AgentCommand.BLOCK
        self._blocked.discard(surface)
        return AgentCommand.UNBLOCK
