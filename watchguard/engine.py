"""
WatchGuard engine — wires every component to one durable store.

The engine object itself holds no timer or stats state; it only bundles the
components so that the API layer and the periodic tick can reach them.
"""

from __future__ import annotations

import logging
from typing import Optional

from .classifier.title_classifier import TitleClassifier
from .clock import Clock
from .enforcement.agents import AgentRegistry
from .enforcement.protocol import EnforcementProtocol
from .settings import SettingsCache
from .store import KeyValueStore
from .tracking.controller import TimerController
from .tracking.rollover import DayRolloverManager
from .tracking.stats import StatsAggregator
from .tracking.timers import TimerStore

logger = logging.getLogger(__name__)


class WatchGuardEngine:
    """
    Usage:
        engine = WatchGuardEngine(KeyValueStore(path), AgentRegistry())
        await engine.start()
        await engine.controller.start_timer(surface, "trash")
        await engine.tick()      # every minute
    """

    def __init__(
        self,
        store: KeyValueStore,
        agents: AgentRegistry,
        clock: Optional[Clock] = None,
        classifier: Optional[TitleClassifier] = None,
    ):
        self.store = store
        self.agents = agents
        self.clock = clock or Clock()
        self.classifier = classifier

        self.settings = SettingsCache(store)
        self.timers = TimerStore(store)
        self.stats = StatsAggregator(store, self.clock)
        self.enforcement = EnforcementProtocol(
            self.timers, self.stats, self.settings, agents, self.clock
        )
        self.controller = TimerController(
            self.timers, self.stats, self.settings, self.enforcement, self.clock
        )
        self.rollover = DayRolloverManager(store, self.clock)

        store.add_listener(self.settings.on_store_changed)

    async def start(self) -> None:
        """Process (re)initialisation: reload settings and catch up on a missed day change."""
        await self.settings.reload()
        await self.rollover.check()

    async def tick(self) -> None:
        """Periodic tick: day rollover first, then the proactive sweep."""
        await self.settings.ensure_loaded()
        await self.rollover.check()
        await self.enforcement.sweep()
