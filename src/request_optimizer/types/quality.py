# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Connection quality types."""

import time
from dataclasses import dataclass, field
from enum import Enum


class ConnectionQuality(Enum):
    """Coarse classification of current network health."""

    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"
    OFFLINE = "offline"

    @property
    def nominal_speed_mbps(self) -> float:
        """Nominal link speed associated with the class."""
        return _NOMINAL_SPEEDS[self]


_NOMINAL_SPEEDS = {
    ConnectionQuality.EXCELLENT: 50.0,
    ConnectionQuality.GOOD: 20.0,
    ConnectionQuality.POOR: 5.0,
    ConnectionQuality.OFFLINE: 0.0,
}


@dataclass(frozen=True)
class QualitySample:
    """
    One observed request outcome.

    Attributes:
        latency: Round-trip time in seconds
        success: Whether the attempt succeeded
        timestamp: Monotonic time of the observation
    """

    latency: float
    success: bool
    timestamp: float = field(default_factory=time.monotonic)


__all__ = [
    "ConnectionQuality",
    "QualitySample",
]
