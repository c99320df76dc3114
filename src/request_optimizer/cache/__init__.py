# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Response cache for the network engine.

This module provides:
- CacheStore: TTL + LRU bounded in-memory cache with lazy expiry
- CacheEntry, CacheValidator: Entry model and revalidation metadata
- CacheMetrics: Hit/miss/eviction counters
- make_cache_key, should_cache: Key derivation and cacheability rules
"""

from .keys import make_cache_key, normalize_url, serialize_payload, should_cache
from .models import CacheEntry, CacheMetrics, CacheValidator
from .store import CacheStore

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "CacheStore",
    "CacheValidator",
    "make_cache_key",
    "normalize_url",
    "serialize_payload",
    "should_cache",
]
