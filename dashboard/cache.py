"""
In-memory cache with per-entry TTL.
Keeps the dashboard from re-fetching the same Strava data on every page load.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class TTLCache:
    def __init__(self, default_ttl: float = 300, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None when missing or expired (expired entries are dropped)."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            return None
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(data=data, created_at=self._clock(), ttl=self.default_ttl if ttl is None else ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def clear_pattern(self, pattern: str) -> List[str]:
        """Drop every key matching the regex `pattern` (re.search); returns the removed keys."""
        regex = re.compile(pattern)
        removed = [key for key in self._entries if regex.search(key)]
        for key in removed:
            del self._entries[key]
        logger.info(f"Cleared {len(removed)} cache entries matching '{pattern}'")
        return removed

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}


cache = TTLCache()
