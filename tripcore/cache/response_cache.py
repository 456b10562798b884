"""In-memory TTL cache that shields rate-limited upstream calls.

One instance is created by the service root and injected into every consumer.
Entries are visible only while ``now < expires_at``; expired entries are
dropped lazily on lookup and by a background sweep task.

Concurrent misses on the same key are not de-duplicated: both callers run
``compute`` and the last writer wins.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import asyncio
import inspect
import re
import time

from tripcore.config import settings
from tripcore.obs.logger import log_event
from tripcore.obs.metrics import inc_counter
from tripcore.types import CacheEntry

_MISSING = object()


def generate_cache_key(prefix: str, *parts: Any) -> str:
    return ":".join([prefix] + [str(p) for p in parts])


def _prefix_of(key: str) -> str:
    return key.split(":", 1)[0]


class ResponseCache:
    def __init__(self, sweep_interval_seconds: Optional[int] = None,
                 clock: Callable[[], float] = time.time):
        self.sweep_interval_seconds = sweep_interval_seconds or settings.CACHE_SWEEP_INTERVAL_SECONDS
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self.cache_stats = {"hits": 0, "misses": 0}

    # Plain key-value access

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl_seconds)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if self._clock() >= entry.expires_at:
            # Only drop the entry we looked at; a concurrent writer may have replaced it
            if self._entries.get(key) is entry:
                del self._entries[key]
            return _MISSING
        return entry.value

    # Read-through

    async def get_or_compute(self, key: str, ttl_seconds: int,
                             compute: Callable[[], Union[Any, Awaitable[Any]]]) -> Any:
        cached = self._lookup(key)
        if cached is not _MISSING:
            self.cache_stats["hits"] += 1
            inc_counter("cache_requests_total", {"prefix": _prefix_of(key), "result": "hit"})
            log_event("cache_hit", key=key)
            return cached

        self.cache_stats["misses"] += 1
        inc_counter("cache_requests_total", {"prefix": _prefix_of(key), "result": "miss"})
        log_event("cache_miss", key=key)

        try:
            result = compute()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            log_event("cache_compute_failed", level="WARNING", key=key, error=str(e),
                      error_type=type(e).__name__)
            raise

        self.set(key, result, ttl_seconds)
        return result

    # Maintenance

    def invalidate_pattern(self, pattern: Union[str, "re.Pattern[str]"]) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        doomed = [k for k in list(self._entries) if regex.search(k)]
        for k in doomed:
            self._entries.pop(k, None)
        log_event("cache_invalidated", pattern=regex.pattern, removed=len(doomed))
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in list(self._entries.items()) if now >= e.expires_at]
        for k in expired:
            self._entries.pop(k, None)
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        self.purge_expired()
        keys: List[str] = list(self._entries.keys())
        total = self.cache_stats["hits"] + self.cache_stats["misses"]
        hit_rate = self.cache_stats["hits"] / total * 100 if total else 0
        return {
            "size": len(keys),
            "keys": keys,
            "hits": self.cache_stats["hits"],
            "misses": self.cache_stats["misses"],
            "hit_rate": f"{hit_rate:.1f}%",
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "type": "in-memory",
            "size": len(self._entries),
            "sweeper_running": self.sweeper_running,
        }

    # Background sweep

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.sweeper_running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.purge_expired()
            if removed:
                log_event("cache_sweep", removed=removed, size=len(self._entries))
