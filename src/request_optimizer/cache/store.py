# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
In-memory response cache with TTL and LRU bounds.

Validity is checked lazily on read. Nothing sweeps entries in the background;
only an explicit clear or a memory-pressure eviction removes unexpired entries.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from ..observability.constants import (
    CACHE_EVICTIONS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CACHE_REVALIDATIONS_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from .models import CacheEntry, CacheMetrics, CacheValidator

logger = logging.getLogger(__name__)  # request_optimizer.cache.store

DEFAULT_TTL = 300.0


class CacheStore:
    """
    Key/value response cache owned by a single engine instance.

    All operations are synchronous. The engine runs on one event loop and
    never awaits between a read and the matching write, so every call is
    atomic from the point of view of other coroutines.

    Example:
        >>> cache = CacheStore(default_ttl=60.0)
        >>> cache.set("GET_https://api.example.com/items_{}", {"items": []})
        >>> cache.get("GET_https://api.example.com/items_{}")
        {'items': []}
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_entries: int | None = 1000,
        clock: Callable[[], float] = time.monotonic,
        metrics_collector: MetricsCollectorProtocol | None = None,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        # OrderedDict gives O(1) LRU eviction of the least recently used entry
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self.metrics = CacheMetrics()
        self._metrics_collector = metrics_collector

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Membership test that neither counts nor expires entries."""
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def get(self, key: str) -> Any | None:
        """
        Return cached data if present and unexpired, else None.

        Increments the hit or miss counter. An expired entry is removed and
        counted as a miss.
        """
        entry, _ = self.lookup(key)
        return entry.data if entry is not None else None

    def lookup(self, key: str) -> tuple[CacheEntry | None, CacheEntry | None]:
        """
        Like get(), but return entries and hand back an expired one for
        revalidation.

        Returns:
            (entry, None) on a hit, (None, stale_entry) when the entry expired,
            (None, None) when the key is unknown.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._record_miss()
            return None, None

        if not entry.is_valid(self._clock()):
            del self._entries[key]
            self.metrics.expirations += 1
            self._record_miss()
            logger.debug(f"Cache entry expired: {key}")
            return None, entry

        self._entries.move_to_end(key)
        self.metrics.hits += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_HITS_TOTAL)
        return entry, None

    def peek(self, key: str) -> CacheEntry | None:
        """Return the raw entry without counting or expiring it."""
        return self._entries.get(key)

    def set(
        self,
        key: str,
        data: Any,
        ttl: float | None = None,
        validator: CacheValidator | None = None,
    ) -> CacheEntry:
        """Store data under key with stored_at = now."""
        entry = CacheEntry(
            key=key,
            data=data,
            stored_at=self._clock(),
            ttl=ttl if ttl is not None else self.default_ttl,
            validator=validator,
        )
        self._entries[key] = entry
        self._entries.move_to_end(key)

        while self.max_entries is not None and len(self._entries) > self.max_entries:
            oldest_key, _ = self._entries.popitem(last=False)
            self._record_eviction()
            logger.debug(f"LRU evicted cache entry: {oldest_key}")

        return entry

    def refresh(self, entry: CacheEntry) -> CacheEntry:
        """Re-store an entry confirmed fresh by the server (HTTP 304)."""
        self.metrics.revalidations += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_REVALIDATIONS_TOTAL)
        return self.set(entry.key, entry.data, ttl=entry.ttl, validator=entry.validator)

    def clear(self, key: str | None = None) -> int:
        """
        Remove one entry, or every entry when key is None.

        Returns:
            Number of entries removed
        """
        if key is not None:
            return 1 if self._entries.pop(key, None) is not None else 0

        removed = len(self._entries)
        self._entries.clear()
        if removed:
            logger.info(f"Cache cleared ({removed} entries)")
        return removed

    def purge_expired(self) -> int:
        """Drop every expired entry. Only called on explicit request."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_valid(now)]
        for key in expired:
            del self._entries[key]
        self.metrics.expirations += len(expired)
        return len(expired)

    def evict(self, keep_fraction: float = 0.5) -> int:
        """
        Evict least recently used entries until keep_fraction remain.

        Intended for an external memory-pressure signal.

        Returns:
            Number of entries evicted
        """
        if not 0.0 <= keep_fraction <= 1.0:
            raise ValueError("keep_fraction must be between 0 and 1")

        target = int(len(self._entries) * keep_fraction)
        evicted = 0
        while len(self._entries) > target:
            self._entries.popitem(last=False)
            self._record_eviction()
            evicted += 1
        return evicted

    def reset(self) -> None:
        """Drop all entries and zero the counters."""
        self._entries.clear()
        self.metrics.reset()

    def _record_miss(self) -> None:
        self.metrics.misses += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_MISSES_TOTAL)

    def _record_eviction(self) -> None:
        self.metrics.evictions += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_EVICTIONS_TOTAL)


__all__ = ["CacheStore"]
