# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Network statistics: raw counters and the derived read-side snapshot.

Every network attempt counts once, so a request that fails twice and then
succeeds contributes two failures and one success.
"""

import time
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field, computed_field


class NetworkStats(BaseModel):
    """Immutable snapshot of engine statistics."""

    model_config = ConfigDict(frozen=True)

    total_requests: int = Field(default=0, ge=0)
    successful_requests: int = Field(default=0, ge=0)
    failed_requests: int = Field(default=0, ge=0)
    retried_requests: int = Field(default=0, ge=0)
    cancelled_requests: int = Field(default=0, ge=0)
    cache_hits: int = Field(default=0, ge=0)
    cache_misses: int = Field(default=0, ge=0)
    total_latency: float = Field(default=0.0, ge=0.0)
    bandwidth_bytes: int = Field(default=0, ge=0)
    last_request_time: float | None = None
    connection_start: float
    captured_at: float

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return self.cache_hits / lookups if lookups > 0 else 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_latency(self) -> float:
        if self.successful_requests == 0:
            return 0.0
        return self.total_latency / self.successful_requests

    @computed_field  # type: ignore[prop-decorator]
    @property
    def uptime(self) -> float:
        return self.captured_at - self.connection_start

    @property
    def bandwidth_mb(self) -> float:
        return self.bandwidth_bytes / (1024 * 1024)


class StatsAggregator:
    """
    Monotonic request counters owned by one engine.

    Cache hits and misses live on the CacheStore; they are passed into
    snapshot() so the two never drift apart.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        """Zero all counters and restart the connection clock."""
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.retried_requests = 0
        self.cancelled_requests = 0
        self.total_latency = 0.0
        self.bandwidth_bytes = 0
        self.last_request_time: float | None = None
        self.connection_start = self._clock()

    def record_success(self, latency: float, size: int = 0) -> None:
        self.total_requests += 1
        self.successful_requests += 1
        self.total_latency += max(latency, 0.0)
        self.bandwidth_bytes += max(size, 0)
        self.last_request_time = self._clock()

    def record_failure(self) -> None:
        self.total_requests += 1
        self.failed_requests += 1
        self.last_request_time = self._clock()

    def record_retry(self) -> None:
        self.retried_requests += 1

    def record_cancelled(self) -> None:
        self.cancelled_requests += 1

    def snapshot(self, cache_hits: int = 0, cache_misses: int = 0) -> NetworkStats:
        return NetworkStats(
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
            failed_requests=self.failed_requests,
            retried_requests=self.retried_requests,
            cancelled_requests=self.cancelled_requests,
            cache_hits=cache_hits,
            cache_misses=cache_misses,
            total_latency=self.total_latency,
            bandwidth_bytes=self.bandwidth_bytes,
            last_request_time=self.last_request_time,
            connection_start=self.connection_start,
            captured_at=self._clock(),
        )


__all__ = ["NetworkStats", "StatsAggregator"]
