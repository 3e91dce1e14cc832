"""In-process TTL cache fronting extracted catalogue data."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from hookah_harvester import metrics
from hookah_harvester.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float

    def expired(self, now: float) -> bool:
        # ttl 0 means the entry never expires
        return self.ttl > 0 and now - self.timestamp >= self.ttl


class InMemoryCache:
    """
    Key/value cache with per-entry TTL.

    Expiry is enforced by ``sweep()`` only: an expired entry is still returned
    by ``get()`` until the next sweep removes it. Values are stored and
    returned as-is, without copying.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = None,
        check_period: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl if default_ttl is not None else settings.cache_default_ttl_seconds
        self.check_period = check_period if check_period is not None else settings.cache_check_period_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._sweeper: Optional[asyncio.Task] = None

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            metrics.cache_lookups_total.labels(result="miss").inc()
            return None
        self._hits += 1
        metrics.cache_lookups_total.labels(result="hit").inc()
        return entry.data

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(
            data=value,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def sweep(self) -> int:
        """Remove expired entries; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def get_stats(self) -> dict[str, int]:
        return {"keys": len(self._entries), "hits": self._hits, "misses": self._misses}

    def start_sweeper(self) -> asyncio.Task:
        """Sweep every ``check_period`` seconds on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.check_period)
            self.sweep()

    # Entity helpers

    def get_brand(self, slug: str) -> Any:
        return self.get(brand_key(slug))

    def set_brand(self, slug: str, brand: Any, ttl: Optional[float] = None) -> None:
        self.set(brand_key(slug), brand, ttl)

    def get_brands(self) -> Any:
        return self.get(ALL_BRANDS_KEY)

    def set_brands(self, brands: Any, ttl: Optional[float] = None) -> None:
        self.set(ALL_BRANDS_KEY, brands, ttl)

    def get_flavor(self, slug: str) -> Any:
        return self.get(flavor_key(slug))

    def set_flavor(self, slug: str, flavor: Any, ttl: Optional[float] = None) -> None:
        self.set(flavor_key(slug), flavor, ttl)

    def get_flavors(self) -> Any:
        return self.get(ALL_FLAVORS_KEY)

    def set_flavors(self, flavors: Any, ttl: Optional[float] = None) -> None:
        self.set(ALL_FLAVORS_KEY, flavors, ttl)

    def get_brand_flavors(self, brand_slug: str) -> Any:
        return self.get(brand_flavors_key(brand_slug))

    def set_brand_flavors(self, brand_slug: str, flavors: Any, ttl: Optional[float] = None) -> None:
        self.set(brand_flavors_key(brand_slug), flavors, ttl)

    def get_line(self, slug: str) -> Any:
        return self.get(line_key(slug))

    def set_line(self, slug: str, line: Any, ttl: Optional[float] = None) -> None:
        self.set(line_key(slug), line, ttl)


ALL_BRANDS_KEY = "brands:all"
ALL_FLAVORS_KEY = "flavors:all"


def brand_key(slug: str) -> str:
    return f"brand:{slug}"


def flavor_key(slug: str) -> str:
    return f"flavor:{slug}"


def brand_flavors_key(brand_slug: str) -> str:
    return f"flavors:brand:{brand_slug}"


def line_key(slug: str) -> str:
    return f"line:{slug}"
