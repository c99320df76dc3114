# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Cache models for the response cache.

Contains the entry model, its revalidation metadata and the cache counters.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, model_validator


@dataclass
class CacheMetrics:
    """Response cache counters."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    revalidations: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
        self.revalidations = 0


class CacheValidator(BaseModel):
    """
    HTTP validators captured from a cached response.

    Used to issue conditional requests (If-None-Match / If-Modified-Since)
    once the entry expires.
    """

    etag: str | None = None
    last_modified: str | None = None

    @model_validator(mode="after")
    def _require_one(self) -> "CacheValidator":
        if self.etag is None and self.last_modified is None:
            raise ValueError("CacheValidator needs an etag or last_modified")
        return self

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "CacheValidator | None":
        """Extract validators from response headers, None when absent."""
        lowered = {k.lower(): v for k, v in headers.items()}
        etag = lowered.get("etag")
        last_modified = lowered.get("last-modified")
        if etag is None and last_modified is None:
            return None
        return cls(etag=etag, last_modified=last_modified)

    def conditional_headers(self) -> dict[str, str]:
        headers = {}
        if self.etag is not None:
            headers["If-None-Match"] = self.etag
        if self.last_modified is not None:
            headers["If-Modified-Since"] = self.last_modified
        return headers


class CacheEntry(BaseModel):
    """
    A cached response.

    Times are readings of the owning store's clock, in seconds.
    """

    key: str
    data: Any
    stored_at: float
    ttl: float = Field(gt=0)
    validator: CacheValidator | None = None

    def is_valid(self, now: float) -> bool:
        """An entry is valid while now - stored_at < ttl."""
        return now - self.stored_at < self.ttl

    def age(self, now: float) -> float:
        return now - self.stored_at

    def expires_at(self) -> float:
        return self.stored_at + self.ttl


__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "CacheValidator",
]
