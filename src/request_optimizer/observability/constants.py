# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `netopt_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    Use only categorical labels:
    - `method` - HTTP method (GET, POST, ...)
    - `priority` - Priority name (critical, high, normal, low)
    - `reason` - Failure reason (timeout, http_error, network, cancelled, ...)

    NEVER use `request_id`, `url` or anything else unbounded.

Usage:
    >>> from request_optimizer.observability.constants import REQUESTS_DISPATCHED_TOTAL
    >>> print(REQUESTS_DISPATCHED_TOTAL)
    'netopt_requests_dispatched_total'
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "netopt"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Request Metrics (engine.py)
# =============================================================================

REQUESTS_SUBMITTED_TOTAL = f"{METRIC_PREFIX}_requests_submitted_total"
"""Total requests accepted by the engine."""

REQUESTS_DISPATCHED_TOTAL = f"{METRIC_PREFIX}_requests_dispatched_total"
"""Total network attempts handed to the transport."""

REQUESTS_COMPLETED_TOTAL = f"{METRIC_PREFIX}_requests_completed_total"
"""Total requests completed successfully."""

REQUESTS_FAILED_TOTAL = f"{METRIC_PREFIX}_requests_failed_total"
"""Total requests that ended in a terminal failure."""

REQUESTS_RETRIED_TOTAL = f"{METRIC_PREFIX}_requests_retried_total"
"""Total retry attempts scheduled."""

REQUESTS_CANCELLED_TOTAL = f"{METRIC_PREFIX}_requests_cancelled_total"
"""Total requests cancelled before completion."""

REQUEST_TIMEOUTS_TOTAL = f"{METRIC_PREFIX}_request_timeouts_total"
"""Total network attempts that timed out."""

QUEUE_OVERFLOWS_TOTAL = f"{METRIC_PREFIX}_queue_overflows_total"
"""Total requests rejected or dropped because the queue was full."""

REQUEST_LATENCY_SECONDS = f"{METRIC_PREFIX}_request_latency_seconds"
"""Latency of successful network attempts (histogram)."""


# =============================================================================
# Active State Gauges
# =============================================================================

ACTIVE_REQUESTS = f"{METRIC_PREFIX}_active_requests"
"""Number of currently in-flight requests."""

QUEUE_DEPTH = f"{METRIC_PREFIX}_queue_depth"
"""Requests waiting for a concurrency slot."""


# =============================================================================
# Cache Metrics (cache/store.py)
# =============================================================================

CACHE_HITS_TOTAL = f"{METRIC_PREFIX}_cache_hits_total"
"""Total cache hits."""

CACHE_MISSES_TOTAL = f"{METRIC_PREFIX}_cache_misses_total"
"""Total cache misses (absent or expired)."""

CACHE_EVICTIONS_TOTAL = f"{METRIC_PREFIX}_cache_evictions_total"
"""Total cache evictions (size limit or memory pressure)."""

CACHE_REVALIDATIONS_TOTAL = f"{METRIC_PREFIX}_cache_revalidations_total"
"""Total expired entries confirmed fresh by a 304 response."""


# =============================================================================
# Histogram Buckets
# =============================================================================

LATENCY_BUCKETS: list[float] = [
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
]
"""Default latency buckets for request duration histograms (in seconds)."""


__all__ = [
    "ACTIVE_REQUESTS",
    "CACHE_EVICTIONS_TOTAL",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "CACHE_REVALIDATIONS_TOTAL",
    "LATENCY_BUCKETS",
    "METRIC_PREFIX",
    "QUEUE_DEPTH",
    "QUEUE_OVERFLOWS_TOTAL",
    "REQUESTS_CANCELLED_TOTAL",
    "REQUESTS_COMPLETED_TOTAL",
    "REQUESTS_DISPATCHED_TOTAL",
    "REQUESTS_FAILED_TOTAL",
    "REQUESTS_RETRIED_TOTAL",
    "REQUESTS_SUBMITTED_TOTAL",
    "REQUEST_LATENCY_SECONDS",
    "REQUEST_TIMEOUTS_TOTAL",
]
