"""
Stats Aggregator — today's per-bucket totals.

todays_totals() is the single source of truth consulted before any
block/unblock decision. It is recomputed on every call: saved totals for the
day plus the live contribution of every tracked timer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..clock import Clock
from ..settings import BUCKETS
from ..store import KeyValueStore
from .timers import ACTIVE_TIMERS_KEY, TimerMap, decode_timers

_DATE_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class DailyTotals:
    date: str                       # "YYYY-MM-DD"
    totals: Dict[str, int]          # bucket → ms folded in from stopped timers
    total_ms: int


def empty_totals() -> Dict[str, int]:
    return {b: 0 for b in BUCKETS}


def coerce_totals(raw: Any) -> Dict[str, int]:
    """Saved day record → full bucket map; missing or malformed entries count as 0."""
    totals = empty_totals()
    if not isinstance(raw, dict):
        return totals
    for bucket, ms in raw.items():
        try:
            totals[bucket] = int(ms)
        except (TypeError, ValueError):
            continue
    return totals


def fold_into(raw: Any, bucket: str, ms: int) -> Dict[str, int]:
    """Return the day record *raw* with *ms* added to *bucket*."""
    totals = coerce_totals(raw)
    totals[bucket] = totals.get(bucket, 0) + ms
    return totals


def combine(saved: Dict[str, int], timers: TimerMap, now_ms: int) -> Dict[str, int]:
    totals = dict(saved)
    for state in timers.values():
        totals[state.bucket] = totals.get(state.bucket, 0) + state.live_ms(now_ms)
    return totals


class StatsAggregator:

    def __init__(self, store: KeyValueStore, clock: Clock):
        self._store = store
        self._clock = clock

    async def todays_totals(self) -> Dict[str, int]:
        today = self._clock.today()
        data = await self._store.get(today, ACTIVE_TIMERS_KEY)
        saved = coerce_totals(data.get(today))
        timers = decode_timers(data.get(ACTIVE_TIMERS_KEY))
        return combine(saved, timers, self._clock.now_ms())

    async def saved_totals(self, date: str) -> Dict[str, int]:
        data = await self._store.get(date)
        return coerce_totals(data.get(date))

    async def history(self, days: Optional[int] = 7) -> List[DailyTotals]:
        """Saved totals per day, oldest → newest, limited to the last *days* records."""
        date_keys = [k for k in await self._store.keys() if _DATE_KEY.match(k)]
        if days is not None:
            date_keys = date_keys[-days:] if days > 0 else []
        data = await self._store.get(*date_keys)
        result = []
        for date in date_keys:
            totals = coerce_totals(data.get(date))
            result.append(DailyTotals(date=date, totals=totals, total_ms=sum(totals.values())))
        return result
