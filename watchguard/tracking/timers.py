"""
Timer Store — durable map from surface id to the timer tracking it.

The whole map is persisted under one key and every mutation is a single
read-modify-write of that value inside one store transaction, so racing
operations resolve to a whole-object last-writer-wins outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..store import KeyValueStore, Transaction

logger = logging.getLogger(__name__)

ACTIVE_TIMERS_KEY = "activeTimers"

T = TypeVar("T")
TimerMap = Dict[int, "TimerState"]


@dataclass
class TimerState:
    bucket: str
    accumulated_ms: int = 0
    running_since_ms: Optional[int] = None    # None → paused

    @property
    def running(self) -> bool:
        return self.running_since_ms is not None

    def live_ms(self, now_ms: int) -> int:
        """Accumulated time plus the in-flight interval, if running."""
        if self.running_since_ms is None:
            return self.accumulated_ms
        return self.accumulated_ms + max(0, now_ms - self.running_since_ms)

    def pause(self, now_ms: int) -> bool:
        """Fold the running interval into accumulated_ms. Returns True if it was running."""
        if self.running_since_ms is None:
            return False
        self.accumulated_ms += max(0, now_ms - self.running_since_ms)
        self.running_since_ms = None
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket,
            "accumulated_ms": self.accumulated_ms,
            "running_since_ms": self.running_since_ms,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TimerState":
        running = raw.get("running_since_ms")
        return cls(
            bucket=raw["bucket"],
            accumulated_ms=max(0, int(raw.get("accumulated_ms", 0))),
            running_since_ms=int(running) if running is not None else None,
        )


def decode_timers(raw: Any) -> TimerMap:
    timers: TimerMap = {}
    if not isinstance(raw, dict):
        return timers
    for surface, entry in raw.items():
        try:
            timers[int(surface)] = TimerState.from_dict(entry)
        except (KeyError, TypeError, ValueError):
            logger.warning("Dropping malformed timer for surface %s: %r", surface, entry)
    return timers


def encode_timers(timers: TimerMap) -> Dict[str, Any]:
    # JSON object keys are strings
    return {str(surface): state.to_dict() for surface, state in timers.items()}


def pause_all_in(timers: TimerMap, now_ms: int, except_surface: Optional[int] = None) -> List[int]:
    """Pause every running timer except *except_surface*; return the surfaces paused."""
    paused = []
    for surface, state in timers.items():
        if surface == except_surface:
            continue
        if state.pause(now_ms):
            paused.append(surface)
    return paused


class TimerStore:

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def load(self) -> TimerMap:
        data = await self._store.get(ACTIVE_TIMERS_KEY)
        return decode_timers(data.get(ACTIVE_TIMERS_KEY))

    async def get(self, surface: int) -> Optional[TimerState]:
        return (await self.load()).get(surface)

    async def mutate(self, fn: Callable[[TimerMap, Transaction], T]) -> T:
        """
        Atomically load the timer map, apply *fn(timers, txn)* and write the
        map back. *fn* may touch other keys through *txn* in the same
        transaction. It runs off the event loop and must be synchronous.
        """
        def _apply(txn: Transaction) -> T:
            timers = decode_timers(txn.get(ACTIVE_TIMERS_KEY))
            result = fn(timers, txn)
            txn.set(ACTIVE_TIMERS_KEY, encode_timers(timers))
            return result

        return await self._store.transact(_apply)

    async def pause(self, surface: int, now_fn: Callable[[], int]) -> bool:
        def _pause(timers: TimerMap, txn: Transaction) -> bool:
            state = timers.get(surface)
            return state is not None and state.pause(now_fn())

        paused = await self.mutate(_pause)
        if paused:
            logger.info("Paused timer for surface %s", surface)
        return paused

    async def pause_all(self, now_fn: Callable[[], int], except_surface: Optional[int] = None) -> List[int]:
        paused = await self.mutate(lambda timers, txn: pause_all_in(timers, now_fn(), except_surface))
        if paused:
            logger.info("Paused timers for surfaces %s", paused)
        return paused
