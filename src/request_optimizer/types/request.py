# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Request descriptor types for the network engine.

This module defines the immutable request specification that flows through
admission, dispatch, retry and batching, plus the factory that builds and
validates it from loose caller input.
"""

import asyncio
import json
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Generic, TypeVar
from urllib.parse import urlsplit

from ..exceptions import InvalidRequestError, RequestCancelledError

PayloadT = TypeVar("PayloadT")

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3


class Priority(IntEnum):
    """
    Request priority class.

    Lower values are served first. Within one class requests are served in
    arrival order.
    """

    CRITICAL = 0
    HIGH = 1
    NORMAL = 2
    LOW = 3

    @classmethod
    def parse(cls, value: "Priority | str | int") -> "Priority":
        """Coerce a priority name or value into a Priority."""
        if isinstance(value, Priority):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError as e:
                raise InvalidRequestError(f"Unknown priority: {value!r}") from e
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidRequestError(f"Unknown priority: {value!r}") from e


@dataclass(frozen=True)
class RequestTarget:
    """Address and method of a request."""

    url: str
    method: str = "GET"

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise InvalidRequestError("Request url must be a non-empty string")
        try:
            # Port parsing is lazy and raises on non-numeric or out of range ports
            urlsplit(self.url.strip()).port
        except ValueError as e:
            raise InvalidRequestError(f"Invalid request url {self.url!r}: {e}") from e
        method = self.method.strip().upper() if isinstance(self.method, str) else ""
        if not method.isalpha():
            raise InvalidRequestError(f"Invalid HTTP method: {self.method!r}")
        object.__setattr__(self, "method", method)


class CancellationToken:
    """
    Cooperative cancellation signal shared between the caller and the engine.

    The scheduler checks the token before dispatch, and the dispatcher races
    it against the in-flight transport call so the connection can be aborted.
    Callbacks registered with add_callback run synchronously on cancel().
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._callbacks: list[Callable[[str | None], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Fire the token. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(reason)

    def add_callback(self, callback: Callable[[str | None], None]) -> None:
        """Run callback(reason) on cancel, immediately if already cancelled."""
        if self._event.is_set():
            callback(self._reason)
        else:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[str | None], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, request_id: str | None = None) -> None:
        if self._event.is_set():
            raise RequestCancelledError(request_id=request_id, reason=self._reason)

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken({state})"


def generate_request_id() -> str:
    """Generate a unique request identifier."""
    return f"req_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class RequestDescriptor(Generic[PayloadT]):
    """
    Immutable specification of one outbound request.

    A descriptor is created once per submission. Retries never mutate it;
    they derive a copy through next_attempt() so the retry count of any
    descriptor observed by a collaborator never changes under its feet.

    Attributes:
        id: Unique identifier, never reused while the request is tracked
        target: Address and method
        payload: JSON-serializable request body, or None
        headers: Extra request headers
        priority: Scheduling priority class
        created_at: UTC timestamp of the submission
        retry_count: Number of retries already performed (0 on first attempt)
        max_retries: Maximum retries allowed for retryable failures
        timeout: Per-attempt timeout in seconds
        cancellation_token: Cooperative cancellation signal
        cache: Whether the response may be served from and stored in the cache.
            None means "cache GET requests only".
        cache_ttl: Per-request cache TTL override in seconds
    """

    id: str
    target: RequestTarget
    payload: PayloadT | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    priority: Priority = Priority.NORMAL
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = DEFAULT_TIMEOUT
    cancellation_token: CancellationToken = field(
        default_factory=CancellationToken, compare=False, repr=False
    )
    cache: bool | None = None
    cache_ttl: float | None = None

    def __post_init__(self) -> None:
        """Validate descriptor invariants."""
        if not self.id:
            raise InvalidRequestError("Request id must be non-empty")
        if self.max_retries < 0:
            raise InvalidRequestError("max_retries must be non-negative")
        if not 0 <= self.retry_count <= self.max_retries:
            raise InvalidRequestError(
                f"retry_count must be between 0 and max_retries "
                f"({self.retry_count} not in 0..{self.max_retries})"
            )
        if self.timeout <= 0:
            raise InvalidRequestError("timeout must be positive")
        if self.cache_ttl is not None and self.cache_ttl <= 0:
            raise InvalidRequestError("cache_ttl must be positive")

    @property
    def method(self) -> str:
        return self.target.method

    @property
    def url(self) -> str:
        return self.target.url

    @property
    def attempt(self) -> int:
        """1-based number of the attempt this descriptor represents."""
        return self.retry_count + 1

    @property
    def is_cacheable(self) -> bool:
        if self.cache is None:
            return self.target.method == "GET"
        return self.cache

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    def next_attempt(self) -> "RequestDescriptor[PayloadT]":
        """Return a copy for the next retry attempt."""
        return replace(self, retry_count=self.retry_count + 1)


def create_request_descriptor(
    url: str,
    method: str = "GET",
    payload: Any = None,
    headers: Mapping[str, str] | None = None,
    priority: Priority | str | int = Priority.NORMAL,
    timeout: float = DEFAULT_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
    request_id: str | None = None,
    cancellation_token: CancellationToken | None = None,
    cache: bool | None = None,
    cache_ttl: float | None = None,
) -> RequestDescriptor[Any]:
    """
    Build and validate a request descriptor from caller input.

    Args:
        url: Target address
        method: HTTP method, case-insensitive
        payload: JSON-serializable body
        headers: Extra request headers
        priority: Priority class, name ("high") or value
        timeout: Per-attempt timeout in seconds
        max_retries: Maximum retries for retryable failures
        request_id: Explicit id; a fresh one is generated when omitted
        cancellation_token: Token to share with the caller
        cache: Cache override, None caches GET requests only
        cache_ttl: Cache TTL override in seconds

    Returns:
        A validated RequestDescriptor

    Raises:
        InvalidRequestError: If any field is malformed
    """
    if payload is not None:
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise InvalidRequestError(f"Payload is not JSON-serializable: {e}") from e

    return RequestDescriptor(
        id=request_id or generate_request_id(),
        target=RequestTarget(url=url, method=method),
        payload=payload,
        headers=dict(headers or {}),
        priority=Priority.parse(priority),
        timeout=timeout,
        max_retries=max_retries,
        cancellation_token=cancellation_token or CancellationToken(),
        cache=cache,
        cache_ttl=cache_ttl,
    )


__all__ = [
    "CancellationToken",
    "Priority",
    "RequestDescriptor",
    "RequestTarget",
    "create_request_descriptor",
    "generate_request_id",
]
