# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Priority admission with a hard concurrency limit.

Pending requests sit in a binary heap keyed by (priority, arrival sequence).
Whenever a request is enqueued or a slot is released, admit() dispatches the
best waiting requests until every slot is busy. Slots are released one per
completion, so a finished request immediately makes room for the next one.
"""

import heapq
import itertools
import logging
import time
from collections.abc import Callable

from ..exceptions import QueueOverflowError
from ..observability.constants import ACTIVE_REQUESTS, QUEUE_DEPTH, QUEUE_OVERFLOWS_TOTAL
from ..observability.protocols import MetricsCollectorProtocol
from ..types.queue import QueuedRequest

logger = logging.getLogger(__name__)

# Rebuild the heap once removed entries outnumber live ones by this factor
_COMPACT_RATIO = 2
_COMPACT_MIN_SIZE = 64


class AdmissionScheduler:
    """
    Priority queue plus concurrency limiter.

    The scheduler never touches request futures. It hands admitted requests
    to ``dispatch`` and requests found cancelled while queued to
    ``on_cancelled``; both callbacks are synchronous and must not block.

    Example:
        >>> scheduler = AdmissionScheduler(dispatch=start_task, max_concurrency=2)
        >>> scheduler.enqueue(queued)   # dispatched at once if a slot is free
        >>> scheduler.release(queued.request_id)  # on completion
    """

    def __init__(
        self,
        dispatch: Callable[[QueuedRequest], None],
        on_cancelled: Callable[[QueuedRequest], None] | None = None,
        max_concurrency: int = 6,
        max_queue_size: int = 1000,
        overflow_policy: str = "reject",
        clock: Callable[[], float] = time.monotonic,
        metrics_collector: MetricsCollectorProtocol | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")
        if overflow_policy not in ("reject", "drop_oldest"):
            raise ValueError("overflow_policy must be 'reject' or 'drop_oldest'")

        self._dispatch = dispatch
        self._on_cancelled = on_cancelled
        self.max_concurrency = max_concurrency
        self.max_queue_size = max_queue_size
        self.overflow_policy = overflow_policy
        self._clock = clock
        self._metrics_collector = metrics_collector

        self._heap: list[tuple[int, int, QueuedRequest]] = []
        self._pending: dict[str, QueuedRequest] = {}
        self._in_flight: dict[str, QueuedRequest] = {}
        self._sequence = itertools.count()
        self._paused = False

    # === Introspection ===

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def available_slots(self) -> int:
        return max(self.max_concurrency - len(self._in_flight), 0)

    def pending_ids(self) -> list[str]:
        """Queued request ids in dispatch order."""
        ordered = sorted(self._pending.values(), key=lambda q: q.sort_key)
        return [q.request_id for q in ordered]

    def is_in_flight(self, request_id: str) -> bool:
        return request_id in self._in_flight

    def get(self, request_id: str) -> QueuedRequest | None:
        return self._pending.get(request_id) or self._in_flight.get(request_id)

    # === Queue operations ===

    def enqueue(self, queued: QueuedRequest) -> QueuedRequest | None:
        """
        Queue a request and run admission.

        Every call assigns a fresh arrival sequence, so a retried request
        queues behind requests of its class that arrived in the meantime.

        Returns:
            The request evicted under the drop_oldest policy, if any. The
            caller is responsible for failing it.

        Raises:
            QueueOverflowError: The queue is full and the newcomer is rejected
        """
        evicted = None
        if len(self._pending) >= self.max_queue_size:
            evicted = self._make_room(queued)

        queued.sequence = next(self._sequence)
        queued.enqueued_at = self._clock()
        queued.dispatched_at = None
        queued.removed = False
        self._pending[queued.request_id] = queued
        heapq.heappush(self._heap, (int(queued.priority), queued.sequence, queued))
        logger.debug(
            f"Queued {queued.request_id} (priority={queued.priority.name}, "
            f"seq={queued.sequence}, depth={len(self._pending)})"
        )

        self.admit()
        return evicted

    def remove(self, request_id: str) -> QueuedRequest | None:
        """Drop a queued request. In-flight requests are not affected."""
        queued = self._pending.pop(request_id, None)
        if queued is None:
            return None
        queued.removed = True
        self._maybe_compact()
        self._update_gauges()
        return queued

    def release(self, request_id: str) -> bool:
        """Free the slot held by an in-flight request and admit the next one."""
        queued = self._in_flight.pop(request_id, None)
        if queued is None:
            return False
        self.admit()
        return True

    def admit(self) -> int:
        """
        Dispatch waiting requests while slots are free.

        Returns:
            Number of requests dispatched
        """
        dispatched = 0
        while not self._paused and len(self._in_flight) < self.max_concurrency:
            queued = self._pop_next()
            if queued is None:
                break
            if queued.descriptor.cancellation_token.cancelled:
                logger.debug(f"Skipping cancelled request {queued.request_id}")
                if self._on_cancelled is not None:
                    self._on_cancelled(queued)
                continue

            queued.dispatched_at = self._clock()
            queued.attempts += 1
            self._in_flight[queued.request_id] = queued
            dispatched += 1
            self._dispatch(queued)

        self._update_gauges()
        return dispatched

    def pause(self) -> None:
        """Stop admitting. Queued requests stay queued."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self.admit()

    def drain(self) -> list[QueuedRequest]:
        """Remove and return every queued request, in dispatch order."""
        drained = sorted(self._pending.values(), key=lambda q: q.sort_key)
        for queued in drained:
            queued.removed = True
        self._pending.clear()
        self._heap.clear()
        self._update_gauges()
        return drained

    # === Internals ===

    def _pop_next(self) -> QueuedRequest | None:
        while self._heap:
            _, sequence, queued = heapq.heappop(self._heap)
            if not self._is_live(sequence, queued):
                continue
            del self._pending[queued.request_id]
            return queued
        return None

    def _is_live(self, sequence: int, queued: QueuedRequest) -> bool:
        # Removed or re-enqueued requests leave stale heap entries behind
        return (
            not queued.removed
            and queued.sequence == sequence
            and self._pending.get(queued.request_id) is queued
        )

    def _make_room(self, newcomer: QueuedRequest) -> QueuedRequest:
        if self.overflow_policy == "drop_oldest":
            victim = max(
                self._pending.values(),
                key=lambda q: (int(q.priority), -q.sequence),
            )
            if int(victim.priority) >= int(newcomer.priority):
                self.remove(victim.request_id)
                self._record_overflow()
                logger.warning(
                    f"Queue full ({self.max_queue_size}); dropped "
                    f"{victim.request_id} (priority={victim.priority.name})"
                )
                return victim

        self._record_overflow()
        logger.warning(
            f"Queue full ({self.max_queue_size}); rejected {newcomer.request_id}"
        )
        raise QueueOverflowError(
            f"Queue is full ({self.max_queue_size} pending requests)",
            request_id=newcomer.request_id,
        )

    def _maybe_compact(self) -> None:
        if (
            len(self._heap) > _COMPACT_MIN_SIZE
            and len(self._heap) > _COMPACT_RATIO * len(self._pending)
        ):
            self._heap = [e for e in self._heap if self._is_live(e[1], e[2])]
            heapq.heapify(self._heap)

    def _record_overflow(self) -> None:
        if self._metrics_collector:
            self._metrics_collector.inc_counter(
                QUEUE_OVERFLOWS_TOTAL, labels={"policy": self.overflow_policy}
            )

    def _update_gauges(self) -> None:
        if self._metrics_collector:
            self._metrics_collector.set_gauge(QUEUE_DEPTH, len(self._pending))
            self._metrics_collector.set_gauge(ACTIVE_REQUESTS, len(self._in_flight))


__all__ = ["AdmissionScheduler"]
