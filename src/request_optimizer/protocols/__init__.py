# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for pluggable engine components.

Available protocols:
- TransportProtocol: Performs a single network attempt for the engine
- MetricsCollectorProtocol: Metrics backend (re-exported from observability)
- TelemetrySinkProtocol: Receiver for telemetry events

Supporting types:
- TransportResponse: Status, body, headers and size of one attempt
"""

from ..observability.protocols import MetricsCollectorProtocol, TelemetrySinkProtocol
from .transport import TransportProtocol, TransportResponse

__all__ = [
    "MetricsCollectorProtocol",
    "TelemetrySinkProtocol",
    "TransportProtocol",
    "TransportResponse",
]
