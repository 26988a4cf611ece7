"""
Day-Rollover Manager — detects the calendar day changing from the periodic
tick and migrates in-flight timers across the boundary.

Time accrued before midnight goes to the previous day's totals (keyed by
the last-seen date, not today); surviving timers restart from zero under
today. The read of the last-seen date, the migration and the write of the
new date happen in one store transaction, so a restart mid-way can neither
double-count nor drop time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..clock import Clock
from ..store import KeyValueStore, Transaction
from .stats import fold_into
from .timers import ACTIVE_TIMERS_KEY, decode_timers, encode_timers

logger = logging.getLogger(__name__)

LAST_RUN_DATE_KEY = "lastRunDate"


@dataclass
class RolloverReport:
    previous_date: Optional[str]
    new_date: str
    migrated_ms: Dict[str, int] = field(default_factory=dict)   # bucket → ms


class DayRolloverManager:

    def __init__(self, store: KeyValueStore, clock: Clock):
        self._store = store
        self._clock = clock

    async def check(self) -> Optional[RolloverReport]:
        """Roll over if the day changed since the last check. Returns None on the same day."""
        report = await self._store.transact(self._rollover)
        if report is not None:
            if report.previous_date is None:
                logger.info("First run, recording date %s", report.new_date)
            else:
                logger.info(
                    "New day %s: migrated %s to %s",
                    report.new_date, report.migrated_ms, report.previous_date,
                )
        return report

    def _rollover(self, txn: Transaction) -> Optional[RolloverReport]:
        today = self._clock.today()
        last = txn.get(LAST_RUN_DATE_KEY)
        if last == today:
            return None

        now = self._clock.now_ms()
        timers = decode_timers(txn.get(ACTIVE_TIMERS_KEY))
        report = RolloverReport(previous_date=last, new_date=today)
        yesterday = txn.get(last) if last else None

        for state in timers.values():
            was_running = state.pause(now)
            if last and state.accumulated_ms > 0:
                yesterday = fold_into(yesterday, state.bucket, state.accumulated_ms)
                report.migrated_ms[state.bucket] = (
                    report.migrated_ms.get(state.bucket, 0) + state.accumulated_ms
                )
            state.accumulated_ms = 0
            if was_running:
                state.running_since_ms = now

        if report.migrated_ms:
            txn.set(last, yesterday)
        txn.set(ACTIVE_TIMERS_KEY, encode_timers(timers))
        txn.set(LAST_RUN_DATE_KEY, today)
        return report
