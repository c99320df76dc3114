# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Telemetry events for the external telemetry collaborator.

The engine emits one event per scheduled retry and one per terminal failure.
Sinks are plain callables registered on an EventEmitter.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .protocols import TelemetrySinkProtocol

logger = logging.getLogger(__name__)


class TelemetryEventType(Enum):
    """Kinds of telemetry the engine reports."""

    RETRY_SCHEDULED = "retry_scheduled"
    REQUEST_FAILED = "request_failed"
    REQUEST_CANCELLED = "request_cancelled"
    BATCH_FAILED = "batch_failed"
    QUALITY_CHANGED = "quality_changed"


@dataclass(frozen=True)
class TelemetryEvent:
    """A single telemetry record."""

    event_type: TelemetryEventType
    request_id: str | None = None
    attempt: int = 0
    error: BaseException | None = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def error_type(self) -> str | None:
        return type(self.error).__name__ if self.error is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "request_id": self.request_id,
            "attempt": self.attempt,
            "error_type": self.error_type,
            "error": str(self.error) if self.error is not None else None,
            "details": dict(self.details),
            "timestamp": self.timestamp,
        }


class EventEmitter:
    """
    Fan-out of telemetry events to registered sinks.

    A failing sink never affects the engine or the other sinks.
    """

    def __init__(self) -> None:
        self._sinks: list[TelemetrySinkProtocol] = []

    def add_sink(self, sink: TelemetrySinkProtocol) -> Callable[[], None]:
        """Register a sink. Returns a function that removes it again."""
        self._sinks.append(sink)

        def remove() -> None:
            if sink in self._sinks:
                self._sinks.remove(sink)

        return remove

    def remove_sink(self, sink: TelemetrySinkProtocol) -> bool:
        if sink in self._sinks:
            self._sinks.remove(sink)
            return True
        return False

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    def emit(self, event: TelemetryEvent) -> None:
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception as e:
                logger.warning(
                    f"Telemetry sink {sink!r} failed on {event.event_type.value}: {e}"
                )


__all__ = [
    "EventEmitter",
    "TelemetryEvent",
    "TelemetryEventType",
]
