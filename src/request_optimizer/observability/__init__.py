# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability for the network engine.

Classes:
    UnifiedMetricsCollector: Dict metrics mirrored to Prometheus when enabled.
    StatsAggregator: Request counters owned by an engine.
    NetworkStats: Snapshot with derived success/cache-hit rates and latency.
    EventEmitter: Fan-out of TelemetryEvents to registered sinks.

Protocols:
    MetricsCollectorProtocol: Protocol for metrics collection backends.
    TelemetrySinkProtocol: Callable receiving telemetry events.

Constants:
    PROMETHEUS_AVAILABLE: Whether prometheus_client is available.
    All metric name constants from the constants module.
"""

from .collector import (
    METRIC_DEFINITIONS,
    PROMETHEUS_AVAILABLE,
    MetricDefinition,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from .constants import (
    ACTIVE_REQUESTS,
    CACHE_EVICTIONS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CACHE_REVALIDATIONS_TOTAL,
    LATENCY_BUCKETS,
    METRIC_PREFIX,
    QUEUE_DEPTH,
    QUEUE_OVERFLOWS_TOTAL,
    REQUEST_LATENCY_SECONDS,
    REQUEST_TIMEOUTS_TOTAL,
    REQUESTS_CANCELLED_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_DISPATCHED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_RETRIED_TOTAL,
    REQUESTS_SUBMITTED_TOTAL,
)
from .events import EventEmitter, TelemetryEvent, TelemetryEventType
from .protocols import MetricsCollectorProtocol, TelemetrySinkProtocol
from .stats import NetworkStats, StatsAggregator

__all__ = [
    "ACTIVE_REQUESTS",
    "CACHE_EVICTIONS_TOTAL",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "CACHE_REVALIDATIONS_TOTAL",
    "LATENCY_BUCKETS",
    "METRIC_DEFINITIONS",
    "METRIC_PREFIX",
    "PROMETHEUS_AVAILABLE",
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
    "EventEmitter",
    "MetricDefinition",
    "MetricsCollectorProtocol",
    "NetworkStats",
    "StatsAggregator",
    "TelemetryEvent",
    "TelemetryEventType",
    "TelemetrySinkProtocol",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
