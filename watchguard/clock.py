"""
Wall-clock source shared by every component.

All timestamps are integer milliseconds since the epoch; calendar days are
UTC ISO dates ("YYYY-MM-DD"), which is also the storage key of a day's totals.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def date_key(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).strftime("%Y-%m-%d")


class Clock:

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def today(self) -> str:
        return date_key(self.now_ms())
