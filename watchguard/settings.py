"""
User settings cache — per-bucket daily budgets and classifier keyword lists.

The settings editor owns the record in the durable store; the engine only
mirrors it. The cache may be empty at any point (fresh process), so every
operation that reads budgets calls ensure_loaded() first. reload() is wired
to the store's change listener for hot-reloading.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from .store import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "userSettings"
MIN_TO_MS = 60 * 1000


class Bucket(str, Enum):
    TRASH = "trash"
    INTERESTING = "interesting"
    CURRICULUM = "curriculum"
    PHD = "phd"


BUCKETS: List[str] = [b.value for b in Bucket]

# budgets in minutes
DEFAULT_LIMITS: Dict[str, float] = {
    "trash": 0.5,
    "interesting": 30,
    "curriculum": 60,
    "phd": 9999,
}

DEFAULT_KEYWORDS: Dict[str, List[str]] = {
    "curriculum": [],
    "phd": [],
}


class SettingsCache:
    """In-memory snapshot of the settings record, rehydrated from the store."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self.limits: Dict[str, float] = {}
        self.limits_ms: Dict[str, float] = {}
        self.keywords: Dict[str, List[str]] = {}

    async def ensure_loaded(self) -> None:
        # an empty budget map means this process has not loaded settings yet
        if not self.limits_ms:
            logger.debug("Settings cache empty, reloading from store")
            await self.reload()

    async def reload(self) -> None:
        """Re-read settings from the store and normalise budgets to milliseconds."""
        data = await self._store.get(SETTINGS_KEY)
        saved = data.get(SETTINGS_KEY)
        if saved is not None and not isinstance(saved, dict):
            logger.warning("Malformed settings record %r, using defaults", saved)
            saved = None
        saved = saved or {}

        self.limits = _normalise_limits(saved.get("limits"))
        self.keywords = _normalise_keywords(saved.get("keywords"))
        self.limits_ms = {b: minutes * MIN_TO_MS for b, minutes in self.limits.items()}
        logger.info("Settings loaded: limits=%s", self.limits)

    async def on_store_changed(self, keys: set) -> None:
        if SETTINGS_KEY in keys:
            logger.info("Settings changed in store, reloading cache")
            await self.reload()

    async def save(
        self,
        limits: Optional[Dict[str, float]] = None,
        keywords: Optional[Dict[str, List[str]]] = None,
    ) -> Dict[str, Any]:
        """Apply a partial update (unknown buckets ignored) and persist it."""
        await self.ensure_loaded()
        new_limits = dict(self.limits)
        for bucket, value in (limits or {}).items():
            bucket = _bucket_name(bucket)
            if bucket not in DEFAULT_LIMITS:
                continue
            minutes = _valid_minutes(value)
            if minutes is None:
                raise ValueError(
                    f"Budget for {bucket} must be a finite number of minutes >= 0, got {value!r}"
                )
            new_limits[bucket] = minutes
        new_keywords = {b: list(words) for b, words in self.keywords.items()}
        for bucket, words in (keywords or {}).items():
            bucket = _bucket_name(bucket)
            if bucket in DEFAULT_KEYWORDS:
                new_keywords[bucket] = [w.strip() for w in words if w.strip()]

        await self._store.set({SETTINGS_KEY: {"limits": new_limits, "keywords": new_keywords}})
        # the store listener reloads as well; this keeps a listener-less store consistent
        await self.reload()
        return self.snapshot()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "limits": dict(self.limits),
            "keywords": {b: list(words) for b, words in self.keywords.items()},
        }

    def limit_ms(self, bucket: str) -> float:
        """Budget for *bucket* in ms; a bucket without a budget is unenforced."""
        return self.limits_ms.get(bucket, math.inf)

    def is_exhausted(self, bucket: str, spent_ms: float) -> bool:
        return spent_ms >= self.limit_ms(bucket)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _bucket_name(bucket: Any) -> str:
    return bucket.value if isinstance(bucket, Bucket) else str(bucket)


def _valid_minutes(value: Any) -> Optional[float]:
    """A budget in minutes, or None unless it is a finite non-negative number."""
    if isinstance(value, bool):
        return None
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(minutes) or minutes < 0:
        return None
    return minutes


def _normalise_limits(raw: Any) -> Dict[str, float]:
    limits = dict(DEFAULT_LIMITS)
    if raw is None:
        return limits
    if not isinstance(raw, dict):
        logger.warning("Malformed limits %r, using defaults", raw)
        return limits
    for bucket, value in raw.items():
        if bucket not in DEFAULT_LIMITS:
            continue
        minutes = _valid_minutes(value)
        if minutes is None:
            logger.warning("Ignoring invalid budget %r for %s", value, bucket)
            continue
        limits[bucket] = minutes
    return limits


def _normalise_keywords(raw: Any) -> Dict[str, List[str]]:
    keywords = {b: list(words) for b, words in DEFAULT_KEYWORDS.items()}
    if not isinstance(raw, dict):
        return keywords
    for bucket, words in raw.items():
        if bucket in keywords and isinstance(words, list):
            keywords[bucket] = [str(w) for w in words]
    return keywords
