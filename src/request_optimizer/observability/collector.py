# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Unified metrics collector supporting both dict-based and Prometheus metrics.

Features:
    1. Thread-safe counter/gauge/histogram operations
    2. Prometheus metric registration when prometheus_client is installed
    3. Dict snapshot for JSON export (NetworkEngine.get_metrics)
    4. Label cardinality protection (max 1000 combinations per metric)
    5. Optional HTTP server for Prometheus scraping

Usage:
    >>> from request_optimizer.observability.collector import get_metrics_collector
    >>> collector = get_metrics_collector()
    >>> collector.inc_counter('netopt_requests_completed_total',
    ...                       labels={'method': 'GET'})
    >>> metrics = collector.get_metrics()
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from .constants import (
    ACTIVE_REQUESTS,
    CACHE_EVICTIONS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CACHE_REVALIDATIONS_TOTAL,
    LATENCY_BUCKETS,
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

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from prometheus_client import (
        CollectorRegistry as CollectorRegistryType,
        Counter as CounterType,
        Gauge as GaugeType,
        Histogram as HistogramType,
    )
else:
    CounterType = object
    GaugeType = object
    HistogramType = object
    CollectorRegistryType = object

try:
    from prometheus_client import (
        REGISTRY as _REGISTRY,
        Counter as _Counter,
        Gauge as _Gauge,
        Histogram as _Histogram,
        start_http_server as _start_http_server,
    )

    Counter: type[CounterType] | None = _Counter
    Gauge: type[GaugeType] | None = _Gauge
    Histogram: type[HistogramType] | None = _Histogram
    REGISTRY: CollectorRegistryType | None = _REGISTRY
    start_http_server: Callable[..., Any] | None = _start_http_server
    PROMETHEUS_AVAILABLE = True
except ImportError:
    Counter = None
    Gauge = None
    Histogram = None
    REGISTRY = None
    start_http_server = None
    PROMETHEUS_AVAILABLE = False


@dataclass
class MetricDefinition:
    """Schema for a metric: type, help text, labels and histogram buckets."""

    name: str
    metric_type: str  # 'counter', 'gauge', 'histogram'
    description: str
    label_names: tuple[str, ...] = ()
    buckets: list[float] | None = None


def _counter(name: str, description: str, *labels: str) -> MetricDefinition:
    return MetricDefinition(name, "counter", description, labels)


METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    d.name: d
    for d in (
        _counter(REQUESTS_SUBMITTED_TOTAL, "Total requests submitted", "priority"),
        _counter(REQUESTS_DISPATCHED_TOTAL, "Total network attempts", "method"),
        _counter(REQUESTS_COMPLETED_TOTAL, "Total successful requests", "method"),
        _counter(
            REQUESTS_FAILED_TOTAL, "Total terminally failed requests", "method", "reason"
        ),
        _counter(REQUESTS_RETRIED_TOTAL, "Total retries scheduled", "method"),
        _counter(REQUESTS_CANCELLED_TOTAL, "Total cancelled requests"),
        _counter(REQUEST_TIMEOUTS_TOTAL, "Total timed out attempts"),
        _counter(QUEUE_OVERFLOWS_TOTAL, "Total queue overflow events", "policy"),
        _counter(CACHE_HITS_TOTAL, "Total cache hits"),
        _counter(CACHE_MISSES_TOTAL, "Total cache misses"),
        _counter(CACHE_EVICTIONS_TOTAL, "Total cache evictions"),
        _counter(CACHE_REVALIDATIONS_TOTAL, "Total 304 revalidations"),
        MetricDefinition(ACTIVE_REQUESTS, "gauge", "Currently in-flight requests"),
        MetricDefinition(QUEUE_DEPTH, "gauge", "Requests waiting for a slot"),
        MetricDefinition(
            REQUEST_LATENCY_SECONDS,
            "histogram",
            "Latency of successful attempts",
            ("method",),
            buckets=LATENCY_BUCKETS,
        ),
    )
}


class UnifiedMetricsCollector:
    """
    Metrics collector keeping a dict copy of every metric and mirroring it to
    Prometheus when enabled.

    Thread Safety:
        All dict updates happen under an RLock.

    Cardinality Protection:
        At most MAX_LABEL_COMBINATIONS label sets are tracked per metric;
        further combinations are dropped with a warning.

    Example:
        >>> collector = UnifiedMetricsCollector(enable_prometheus=False)
        >>> collector.inc_counter('netopt_requests_completed_total')
        >>> collector.get_metrics()["counters"]
        {'netopt_requests_completed_total': {'': 1}}
    """

    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000
    MAX_HISTOGRAM_OBSERVATIONS: ClassVar[int] = 10000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: Any | None = None,
    ) -> None:
        """
        Args:
            enable_prometheus: Mirror metrics to Prometheus (if installed)
            registry: Optional Prometheus CollectorRegistry, mainly for tests
        """
        self._enable_prometheus = enable_prometheus and PROMETHEUS_AVAILABLE
        self._registry = registry if registry is not None else REGISTRY

        self._counters: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._gauges: dict[str, dict[str, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._histograms: dict[str, dict[str, list[float]]] = defaultdict(
            lambda: defaultdict(list)
        )
        self._lock = threading.RLock()

        # Prometheus instances keyed by metric name, created on first use
        self._prom_metrics: dict[str, Any] = {}
        self._label_combinations: dict[str, set[str]] = defaultdict(set)
        self._server_running = False

        logger.debug(
            f"UnifiedMetricsCollector initialized "
            f"(prometheus={'enabled' if self._enable_prometheus else 'disabled'})"
        )

    @staticmethod
    def _labels_to_key(labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    def _check_cardinality(self, name: str, label_key: str) -> bool:
        """Return False when this label set would exceed the per-metric limit."""
        seen = self._label_combinations[name]
        if label_key in seen:
            return True
        if len(seen) >= self.MAX_LABEL_COMBINATIONS:
            logger.warning(
                f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached "
                f"for metric {name}. Dropping label combination: {label_key}"
            )
            return False
        seen.add(label_key)
        return True

    def _prom_metric(self, name: str, metric_type: str) -> Any | None:
        """Get or lazily register the Prometheus object backing a metric."""
        if not self._enable_prometheus:
            return None
        if name in self._prom_metrics:
            return self._prom_metrics[name]

        factory = {"counter": Counter, "gauge": Gauge, "histogram": Histogram}[
            metric_type
        ]
        if factory is None:
            return None

        defn = METRIC_DEFINITIONS.get(name)
        if defn is None or defn.metric_type != metric_type:
            defn = MetricDefinition(name, metric_type, f"Dynamic {metric_type}: {name}")

        kwargs: dict[str, Any] = {"registry": self._registry}
        if metric_type == "histogram":
            kwargs["buckets"] = defn.buckets or LATENCY_BUCKETS
        try:
            metric = factory(name, defn.description, list(defn.label_names), **kwargs)
        except Exception as e:
            logger.warning(f"Failed to create Prometheus {metric_type} {name}: {e}")
            return None

        self._prom_metrics[name] = metric
        return metric

    def _mirror(
        self,
        name: str,
        metric_type: str,
        op: str,
        value: float,
        labels: dict[str, str] | None,
    ) -> None:
        metric = self._prom_metric(name, metric_type)
        if metric is None:
            return
        try:
            target = metric.labels(**labels) if labels else metric
            getattr(target, op)(value)
        except Exception as e:
            logger.debug(f"Prometheus {op} failed for {name}: {e}")

    # === Counter Operations ===

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")

        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._counters[name][label_key] += value

        self._mirror(name, "counter", "inc", value, labels)

    # === Gauge Operations ===

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._gauges[name][label_key] = value

        self._mirror(name, "gauge", "set", value, labels)

    # === Histogram Operations ===

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            observations = self._histograms[name][label_key]
            observations.append(value)
            if len(observations) > self.MAX_HISTOGRAM_OBSERVATIONS:
                del observations[: len(observations) // 2]

        self._mirror(name, "histogram", "observe", value, labels)

    # === Snapshot Operations ===

    def get_metrics(self) -> dict[str, Any]:
        """
        Snapshot of all metrics, suitable for JSON serialization.

        Histograms are summarized as count/sum/avg/min/max per label set.
        """
        with self._lock:
            counters = {name: dict(values) for name, values in self._counters.items()}
            gauges = {name: dict(values) for name, values in self._gauges.items()}
            histograms: dict[str, dict[str, dict[str, Any]]] = {}
            for name, label_values in self._histograms.items():
                histograms[name] = {
                    label_key: {
                        "count": len(obs),
                        "sum": sum(obs),
                        "avg": sum(obs) / len(obs),
                        "min": min(obs),
                        "max": max(obs),
                    }
                    for label_key, obs in label_values.items()
                    if obs
                }

        return {"counters": counters, "gauges": gauges, "histograms": histograms}

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Current value of one counter label set (0 if never incremented)."""
        with self._lock:
            return self._counters.get(name, {}).get(self._labels_to_key(labels), 0)

    def get_counter_total(self, name: str) -> int:
        """Sum of a counter across all label sets."""
        with self._lock:
            return sum(self._counters.get(name, {}).values())

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._gauges.get(name, {}).get(self._labels_to_key(labels), 0.0)

    # === Lifecycle ===

    def reset(self) -> None:
        """Reset the dict metrics. Registered Prometheus objects are kept."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._label_combinations.clear()

        logger.debug("Metrics collector reset")

    # === Prometheus HTTP Server ===

    def start_http_server(self, host: str = "127.0.0.1", port: int = 9090) -> bool:
        """
        Start the Prometheus HTTP server for metrics scraping.

        Binds to localhost by default. Pass host="0.0.0.0" only when
        network-level access controls are in place.

        Returns:
            True if the server is running after the call
        """
        if not PROMETHEUS_AVAILABLE or start_http_server is None:
            logger.warning(
                "Cannot start Prometheus server: prometheus_client not installed"
            )
            return False

        if self._server_running:
            logger.warning("Prometheus server already running")
            return True

        try:
            if self._registry is not None:
                start_http_server(port, addr=host, registry=self._registry)
            else:
                start_http_server(port, addr=host)
        except Exception as e:
            logger.error(f"Failed to start Prometheus server: {e}")
            return False

        self._server_running = True
        logger.info(f"Prometheus metrics server started on {host}:{port}")
        return True

    @property
    def prometheus_enabled(self) -> bool:
        return self._enable_prometheus

    @property
    def server_running(self) -> bool:
        return self._server_running


# =============================================================================
# Singleton
# =============================================================================

_global_collector: UnifiedMetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector(
    enable_prometheus: bool = True,
) -> UnifiedMetricsCollector:
    """
    Get or create the process-wide collector.

    Only needed for the Prometheus bridge: Prometheus registries reject
    duplicate metric names, so engines exporting to the default registry
    share this instance. enable_prometheus only applies on the first call.
    """
    global _global_collector

    if _global_collector is None:
        with _collector_lock:
            if _global_collector is None:
                _global_collector = UnifiedMetricsCollector(
                    enable_prometheus=enable_prometheus
                )

    return _global_collector


def reset_metrics_collector() -> None:
    """Drop the shared collector (mainly for testing)."""
    global _global_collector
    with _collector_lock:
        if _global_collector:
            _global_collector.reset()
        _global_collector = None


__all__ = [
    "METRIC_DEFINITIONS",
    "PROMETHEUS_AVAILABLE",
    "MetricDefinition",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
