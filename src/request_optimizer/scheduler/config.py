# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Engine Configuration for the Request Optimizer

This module provides the configuration dataclass for the network engine,
covering admission, retry/backoff, caching, quality monitoring and metrics.
All durations are in seconds.
"""

from dataclasses import dataclass, field


@dataclass
class EngineConfig:
    """
    Configuration for a NetworkEngine instance.

    Every engine owns its own copy; nothing here is shared between engines.
    """

    # === Admission ===

    max_concurrent_requests: int = 6
    """Maximum number of requests in flight at once."""

    max_queue_size: int = 1000
    """Maximum number of requests waiting for a slot."""

    overflow_policy: str = "reject"
    """Policy when the queue is full: 'reject' or 'drop_oldest'."""

    # === Request Processing ===

    request_timeout: float = 30.0
    """Default per-attempt timeout."""

    default_headers: dict[str, str] = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )
    """Headers sent with every request; descriptor headers override them."""

    # === Retry / Backoff ===

    enable_retry: bool = True
    """Retry retryable failures (timeouts, 5xx, 429)."""

    max_retries: int = 3
    """Default maximum retries per request."""

    retry_base_delay: float = 1.0
    """Delay before the first retry."""

    backoff_multiplier: float = 2.0
    """Growth factor of the delay per retry."""

    max_backoff: float = 60.0
    """Upper bound for a single retry delay."""

    retry_jitter: float = 0.0
    """Maximum random seconds added to each delay (0 disables jitter)."""

    # === Caching ===

    enable_caching: bool = True
    """Serve and store cacheable responses."""

    cache_ttl: float = 300.0
    """Default cache entry lifetime."""

    max_cache_entries: int | None = 1000
    """Maximum number of cache entries before LRU eviction."""

    enable_conditional_revalidation: bool = True
    """Revalidate expired entries with If-None-Match / If-Modified-Since."""

    # === Connection Quality ===

    enable_quality_monitor: bool = True
    """Run the background quality monitor while the engine is started."""

    quality_window_size: int = 10
    """Number of recent outcomes used to classify the connection."""

    quality_check_interval: float = 5.0
    """Interval between quality evaluations."""

    idle_probe_after: float = 30.0
    """Probe connectivity when no request finished for this long."""

    probe_url: str | None = None
    """Connectivity probe target. None disables probing."""

    probe_timeout: float = 5.0
    """Timeout of the connectivity probe."""

    # === Bookkeeping ===

    history_size: int = 100
    """Number of finished requests kept in the request history."""

    max_batches_retained: int = 100
    """Number of batches kept for get_batch()."""

    # === Metrics and Monitoring ===

    metrics_enabled: bool = True
    """Enable metrics collection."""

    prometheus_enabled: bool = False
    """Mirror metrics to prometheus_client (requires the prometheus extra)."""

    start_prometheus_server: bool = False
    """Serve the Prometheus scrape endpoint while the engine is started."""

    prometheus_host: str = "127.0.0.1"
    """Prometheus metrics host."""

    prometheus_port: int = 9090
    """Prometheus metrics port."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        if self.max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")
        if self.overflow_policy not in ("reject", "drop_oldest"):
            raise ValueError("overflow_policy must be 'reject' or 'drop_oldest'")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay must be non-negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be at least 1.0")
        if self.max_backoff < self.retry_base_delay:
            raise ValueError("max_backoff must be >= retry_base_delay")
        if self.retry_jitter < 0:
            raise ValueError("retry_jitter must be non-negative")
        if self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
        if self.max_cache_entries is not None and self.max_cache_entries < 1:
            raise ValueError("max_cache_entries must be at least 1")
        if self.quality_window_size < 1:
            raise ValueError("quality_window_size must be at least 1")
        if self.quality_check_interval <= 0:
            raise ValueError("quality_check_interval must be positive")
        if self.idle_probe_after <= 0:
            raise ValueError("idle_probe_after must be positive")
        if self.probe_timeout <= 0:
            raise ValueError("probe_timeout must be positive")
        if self.history_size < 0:
            raise ValueError("history_size must be non-negative")
        if self.max_batches_retained < 1:
            raise ValueError("max_batches_retained must be at least 1")
        if not 0 < self.prometheus_port < 65536:
            raise ValueError("prometheus_port must be between 1 and 65535")


__all__ = ["EngineConfig"]
