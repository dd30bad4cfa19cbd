"""In-process query cache keyed by tuples such as ``("students", school_id, year_id)``."""

import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

import structlog

from schooldata.client.result import QueryResult

logger = structlog.get_logger()

CacheKey = Tuple[Hashable, ...]


class QueryCache:
    def __init__(
        self,
        stale_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_seconds = stale_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, QueryResult]] = {}

    def get(self, key: CacheKey) -> Optional[QueryResult]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self._clock() - stored_at > self.stale_seconds:
            del self._entries[key]
            return None
        return result

    def set(self, key: CacheKey, result: QueryResult) -> None:
        self._entries[key] = (self._clock(), result)

    async def get_or_fetch(
        self, key: CacheKey, fetch: Callable[[], Awaitable[QueryResult]]
    ) -> QueryResult:
        """Return a fresh cached result or fetch one; only successes are stored."""
        cached = self.get(key)
        if cached is not None:
            return cached
        result = await fetch()
        if result.ok:
            self.set(key, result)
        return result

    def invalidate(self, *prefix: Any) -> int:
        """Drop every entry whose key starts with ``prefix``; returns how many."""
        keys = [k for k in self._entries if k[: len(prefix)] == prefix]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug("Invalidated cached queries", prefix=prefix, count=len(keys))
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
