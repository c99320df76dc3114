# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Queue types for admission and dispatch.

This module defines the bookkeeping wrapper that carries a descriptor through
the pending queue, and the handle returned to callers on submission.
"""

import asyncio
from collections.abc import Generator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .request import Priority, RequestDescriptor

if TYPE_CHECKING:
    from ..cache.models import CacheEntry


class RequestOutcome(Enum):
    """Terminal state of a request. Each request reaches exactly one."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class QueuedRequest:
    """
    A request tracked by the engine, queued or in flight.

    The descriptor is swapped for a fresh copy on every retry, while the
    future stays the same so the caller sees exactly one terminal outcome.

    Attributes:
        descriptor: Descriptor for the current attempt
        future: Resolved once with the result or the terminal error
        sequence: Arrival sequence number, assigned on every enqueue
        enqueued_at: Monotonic time of the last enqueue
        dispatched_at: Monotonic time of the last dispatch, None while queued
        cache_key: Cache key when the response is cacheable
        stale_entry: Expired cache entry kept for conditional revalidation
        attempts: Number of dispatches performed so far
        submitted_at: Monotonic time of the original submission
        outcome: Terminal state, None while the request is active
    """

    descriptor: RequestDescriptor[Any]
    future: "asyncio.Future[Any]"
    sequence: int = 0
    enqueued_at: float = 0.0
    dispatched_at: float | None = None
    cache_key: str | None = None
    stale_entry: "CacheEntry | None" = None
    attempts: int = 0
    submitted_at: float = 0.0
    outcome: RequestOutcome | None = None
    removed: bool = field(default=False, repr=False)

    @property
    def request_id(self) -> str:
        return self.descriptor.id

    @property
    def priority(self) -> Priority:
        return self.descriptor.priority

    @property
    def sort_key(self) -> tuple[int, int]:
        """Heap ordering: priority class first, then arrival order."""
        return (int(self.descriptor.priority), self.sequence)

    @property
    def is_finished(self) -> bool:
        return self.outcome is not None


@dataclass(frozen=True)
class RequestRecord:
    """
    History entry for a finished request.

    Attributes:
        request_id: Request identifier
        method: HTTP method
        url: Target address
        priority: Priority class
        outcome: Terminal state
        attempts: Network attempts made (0 for cache hits)
        duration: Seconds from submission to the terminal state
        finished_at: Monotonic time of the terminal state
        from_cache: Whether the data came from the cache without a request
        error_type: Class name of the terminal error, if any
    """

    request_id: str
    method: str
    url: str
    priority: Priority
    outcome: RequestOutcome
    attempts: int
    duration: float
    finished_at: float
    from_cache: bool = False
    error_type: str | None = None


class RequestHandle:
    """
    Awaitable handle returned by NetworkEngine.submit().

    Submission returns immediately; the caller suspends only when awaiting
    the handle.

    Example:
        >>> handle = engine.submit(descriptor)
        >>> ...  # do other work
        >>> data = await handle
    """

    def __init__(
        self,
        request_id: str,
        future: "asyncio.Future[Any]",
        canceller: Any = None,
    ) -> None:
        self.request_id = request_id
        self.future = future
        self._canceller = canceller

    def done(self) -> bool:
        return self.future.done()

    def cancel(self, reason: str | None = None) -> bool:
        """Cancel the request. Returns False if it already finished."""
        if self.future.done() or self._canceller is None:
            return False
        return bool(self._canceller(self.request_id, reason))

    def result(self) -> Any:
        return self.future.result()

    def __await__(self) -> Generator[Any, None, Any]:
        return self.future.__await__()

    def __repr__(self) -> str:
        state = "done" if self.future.done() else "pending"
        return f"RequestHandle({self.request_id!r}, {state})"


__all__ = [
    "QueuedRequest",
    "RequestHandle",
    "RequestOutcome",
    "RequestRecord",
]
