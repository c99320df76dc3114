# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Request Optimizer - Client-side network request engine.

This library schedules outbound requests under a concurrency limit, serves
repeatable reads from a TTL cache, retries transient failures with
exponential backoff and classifies link health from recent outcomes.

Key Features:
    - Priority admission (critical > high > normal > low, FIFO within a class)
    - In-memory response cache with TTL, LRU bound and conditional revalidation
    - Retry with exponential backoff, jitter and Retry-After support
    - Batch submission with per-item results
    - Cooperative cancellation of queued and in-flight requests
    - Connection quality estimation with change notifications
    - Counters and histograms with an optional Prometheus bridge

Quick Start:
    >>> from request_optimizer import BatchSpec, create_engine
    >>>
    >>> async with create_engine(max_concurrent_requests=4) as engine:
    ...     user = await engine.request("https://api.example.com/me")
    ...     results = await engine.submit_batch([
    ...         BatchSpec(url="https://api.example.com/a"),
    ...         BatchSpec(url="https://api.example.com/b", priority="high"),
    ...     ])

Main Exports:
    - NetworkEngine, create_engine: Engine facade
    - EngineConfig: Configuration options
    - TransportProtocol, TransportResponse: Pluggable transport seam
    - HttpxTransport: Default transport

Note: HttpxTransport requires the 'httpx' extra. Install with:
    pip install request-optimizer[httpx]

Version: 1.0.0
"""

__version__ = "1.0.0"

from typing import TYPE_CHECKING

from .cache import CacheStore
from .engine import NetworkEngine, create_engine
from .exceptions import (
    BatchError,
    EngineNotRunningError,
    HttpError,
    InvalidRequestError,
    MaxRetriesExceededError,
    NetworkUnavailableError,
    QueueOverflowError,
    RequestCancelledError,
    RequestOptimizerError,
    RequestTimeoutError,
)
from .observability import NetworkStats, TelemetryEvent, TelemetryEventType
from .protocols import TransportProtocol, TransportResponse
from .quality import ConnectionQualityEstimator
from .scheduler import EngineConfig
from .types import (
    Batch,
    BatchResult,
    BatchSpec,
    BatchStatus,
    CancellationToken,
    ConnectionQuality,
    Priority,
    RequestDescriptor,
    RequestHandle,
    RequestOutcome,
    RequestRecord,
    create_request_descriptor,
)

# Lazy import for optional httpx transport
if TYPE_CHECKING:
    from .transport import HttpxTransport

__all__ = [
    # Types
    "Batch",
    "BatchError",
    "BatchResult",
    "BatchSpec",
    "BatchStatus",
    "CacheStore",
    "CancellationToken",
    "ConnectionQuality",
    "ConnectionQualityEstimator",
    "EngineConfig",
    "EngineNotRunningError",
    "HttpError",
    "HttpxTransport",  # Lazy loaded - requires httpx extra
    "InvalidRequestError",
    "MaxRetriesExceededError",
    # Engine
    "NetworkEngine",
    "NetworkStats",
    "NetworkUnavailableError",
    "Priority",
    "QueueOverflowError",
    "RequestCancelledError",
    "RequestDescriptor",
    "RequestHandle",
    # Exceptions
    "RequestOptimizerError",
    "RequestOutcome",
    "RequestRecord",
    "RequestTimeoutError",
    "TelemetryEvent",
    "TelemetryEventType",
    # Protocols
    "TransportProtocol",
    "TransportResponse",
    "create_engine",
    "create_request_descriptor",
]


def __getattr__(name: str) -> type:
    """Lazy import for optional httpx transport."""
    if name == "HttpxTransport":
        from .transport import HttpxTransport

        return HttpxTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
