# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Connection quality estimation from recent request outcomes.

Classification thresholds, evaluated against the rolling window:

| avg latency | success rate | class     |
|-------------|--------------|-----------|
| < 0.3s      | > 95%        | EXCELLENT |
| < 1.0s      | > 90%        | GOOD      |
| < 3.0s      | > 80%        | POOR      |
| otherwise   |              | OFFLINE   |

An explicit offline signal from the platform overrides the table.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

from ..types.quality import ConnectionQuality, QualitySample

logger = logging.getLogger(__name__)

QualityCallback = Callable[[ConnectionQuality, ConnectionQuality], None]
"""Called with (previous, current) whenever the classification changes."""

# (max average latency in seconds, min success rate, class), checked in order
QUALITY_THRESHOLDS: tuple[tuple[float, float, ConnectionQuality], ...] = (
    (0.3, 0.95, ConnectionQuality.EXCELLENT),
    (1.0, 0.90, ConnectionQuality.GOOD),
    (3.0, 0.80, ConnectionQuality.POOR),
)


def classify_window(average_latency: float, success_rate: float) -> ConnectionQuality:
    """Apply the threshold table to window statistics."""
    for max_latency, min_success, quality in QUALITY_THRESHOLDS:
        if average_latency < max_latency and success_rate > min_success:
            return quality
    return ConnectionQuality.OFFLINE


class ConnectionQualityEstimator:
    """
    Rolling-window link health classifier.

    Samples are recorded by the engine after each network attempt. The
    stored classification only changes in evaluate(), which also notifies
    subscribers; classify() is a side-effect free preview.

    Example:
        >>> estimator = ConnectionQualityEstimator(window_size=10)
        >>> _ = estimator.record(0.05, success=True)
        >>> estimator.evaluate()
        <ConnectionQuality.EXCELLENT: 'excellent'>
    """

    def __init__(
        self,
        window_size: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.window_size = window_size
        self._clock = clock
        self._samples: deque[QualitySample] = deque(maxlen=window_size)
        self._online = True
        self._current = ConnectionQuality.GOOD
        self._subscribers: list[QualityCallback] = []
        self._created_at = clock()

        self._monitor_task: asyncio.Task[None] | None = None
        self._monitor_running = False

    # === Samples ===

    def record(self, latency: float, success: bool) -> QualitySample:
        sample = QualitySample(
            latency=max(latency, 0.0), success=success, timestamp=self._clock()
        )
        self._samples.append(sample)
        return sample

    @property
    def samples(self) -> list[QualitySample]:
        return list(self._samples)

    @property
    def average_latency(self) -> float:
        if not self._samples:
            return 0.0
        return sum(s.latency for s in self._samples) / len(self._samples)

    @property
    def success_rate(self) -> float:
        if not self._samples:
            return 1.0
        return sum(1 for s in self._samples if s.success) / len(self._samples)

    @property
    def last_sample_at(self) -> float | None:
        return self._samples[-1].timestamp if self._samples else None

    def idle_for(self) -> float:
        """Seconds since the last sample (or since creation when none)."""
        last = self.last_sample_at
        return self._clock() - (last if last is not None else self._created_at)

    # === Classification ===

    def classify(self) -> ConnectionQuality:
        if not self._online:
            return ConnectionQuality.OFFLINE
        if not self._samples:
            return ConnectionQuality.GOOD
        return classify_window(self.average_latency, self.success_rate)

    @property
    def current(self) -> ConnectionQuality:
        """Classification as of the last evaluate()."""
        return self._current

    @property
    def estimated_speed_mbps(self) -> float:
        return self._current.nominal_speed_mbps

    def evaluate(self) -> ConnectionQuality:
        """Recompute the classification and notify subscribers on change."""
        previous = self._current
        current = self.classify()
        self._current = current
        if current is not previous:
            logger.info(
                f"Connection quality changed: {previous.value} -> {current.value}"
            )
            self._notify(previous, current)
        return current

    # === Online signal ===

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> ConnectionQuality:
        """Apply the platform online/offline signal and re-evaluate."""
        if online != self._online:
            logger.info(f"Platform reports {'online' if online else 'offline'}")
        self._online = online
        return self.evaluate()

    # === Subscriptions ===

    def subscribe(self, callback: QualityCallback) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, previous: ConnectionQuality, current: ConnectionQuality) -> None:
        for callback in list(self._subscribers):
            try:
                callback(previous, current)
            except Exception as e:
                logger.warning(f"Quality subscriber {callback!r} failed: {e}")

    def reset(self) -> None:
        """Drop all samples. Subscribers and the online signal are kept."""
        self._samples.clear()
        self._created_at = self._clock()
        self.evaluate()

    # === Background monitor ===

    @property
    def monitor_running(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    def start_monitor(
        self,
        interval: float = 5.0,
        idle_after: float = 30.0,
        probe: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        """
        Start periodic re-evaluation on the running event loop.

        When no sample arrived for idle_after seconds and a probe is given,
        the probe runs before the evaluation so the window reflects the
        current link instead of stale history.
        """
        if self.monitor_running:
            return
        self._monitor_running = True
        self._monitor_task = asyncio.create_task(
            self._monitor_loop(interval, idle_after, probe)
        )

    async def stop_monitor(self) -> None:
        self._monitor_running = False
        task, self._monitor_task = self._monitor_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _monitor_loop(
        self,
        interval: float,
        idle_after: float,
        probe: Callable[[], Awaitable[object]] | None,
    ) -> None:
        while self._monitor_running:
            try:
                await asyncio.sleep(interval)
                if probe is not None and self._online and self.idle_for() >= idle_after:
                    logger.debug("No recent traffic, probing connectivity")
                    await probe()
                self.evaluate()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in quality monitor: {e}", exc_info=True)


__all__ = [
    "QUALITY_THRESHOLDS",
    "ConnectionQualityEstimator",
    "QualityCallback",
    "classify_window",
]
