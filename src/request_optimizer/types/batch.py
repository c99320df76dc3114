# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Batch types for grouped submissions.
"""

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .request import DEFAULT_MAX_RETRIES, Priority


class BatchStatus(Enum):
    """Lifecycle of a batch. COMPLETED and FAILED are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)


@dataclass(frozen=True)
class BatchSpec:
    """
    Caller supplied specification of one batch item.

    Attributes:
        url: Target address
        method: HTTP method
        payload: JSON-serializable body
        headers: Extra request headers
        priority: Priority class for this item
        timeout: Per-attempt timeout override in seconds
        max_retries: Retry budget override
    """

    url: str
    method: str = "GET"
    payload: Any = None
    headers: Mapping[str, str] | None = None
    priority: Priority | str = Priority.NORMAL
    timeout: float | None = None
    max_retries: int | None = None


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one batch item, aligned with the submitted spec by index.

    Attributes:
        request_id: Identifier of the item's request
        success: Whether the item produced data
        data: Response data on success
        error: Terminal error on failure
        latency: Seconds from submission to the item's terminal outcome
    """

    request_id: str
    success: bool
    data: Any = None
    error: BaseException | None = None
    latency: float = 0.0


def generate_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex}"


@dataclass
class Batch:
    """
    A group of requests tracked as one logical unit.

    Once the status is terminal, results and errors together hold every
    request id exactly once.
    """

    id: str
    request_ids: list[str] = field(default_factory=list)
    status: BatchStatus = BatchStatus.PENDING
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None
    results: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def duration(self) -> float | None:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    @property
    def unresolved_ids(self) -> list[str]:
        return [
            rid
            for rid in self.request_ids
            if rid not in self.results and rid not in self.errors
        ]

    def record_success(self, request_id: str, data: Any) -> None:
        if self.status.is_terminal:
            return
        self.errors.pop(request_id, None)
        self.results[request_id] = data

    def record_error(self, request_id: str, error: BaseException) -> None:
        if self.status.is_terminal:
            return
        self.results.pop(request_id, None)
        self.errors[request_id] = error

    def finish(self, status: BatchStatus) -> None:
        if self.status.is_terminal:
            return
        self.status = status
        self.ended_at = time.time()


__all__ = [
    "Batch",
    "BatchResult",
    "BatchSpec",
    "BatchStatus",
    "generate_batch_id",
]
