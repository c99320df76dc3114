# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the request optimizer library.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from RequestOptimizerError, making it easy to catch
every engine-related failure with a single except clause.

Retryable kinds (RequestTimeoutError, HttpError with a 5xx or 429 status)
are recovered locally by the retry controller. Everything else surfaces to
the caller through the request handle.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types.batch import Batch


class RequestOptimizerError(Exception):
    """Base exception for all request optimizer errors.

    Example:
        try:
            data = await engine.request("https://api.example.com/items")
        except RequestOptimizerError as e:
            logger.error(f"Request failed: {e}")
    """

    pass


class RequestTimeoutError(RequestOptimizerError):
    """Raised when a request does not complete within its timeout.

    The underlying transport call is always cancelled before this error is
    raised, so no connection outlives the timeout.

    Attributes:
        request_id: Identifier of the request that timed out.
        timeout: The timeout that elapsed, in seconds.
    """

    def __init__(
        self,
        message: str = "Request timed out",
        request_id: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(message)
        self.request_id = request_id
        self.timeout = timeout


class HttpError(RequestOptimizerError):
    """Raised when the server answers with a non-success HTTP status.

    Attributes:
        status: The HTTP status code.
        retry_after: Server supplied ``Retry-After`` hint in seconds, if any.

    Example:
        try:
            await engine.request(url)
        except HttpError as e:
            if e.status == 404:
                return None
            raise
    """

    def __init__(
        self,
        status: int,
        message: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message or f"HTTP {status}")
        self.status = status
        self.retry_after = retry_after

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status < 600

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429


class NetworkUnavailableError(RequestOptimizerError):
    """Raised when the network cannot be reached at all.

    Covers DNS failures, refused connections and an explicit offline signal
    from the platform.
    """

    pass


class RequestCancelledError(RequestOptimizerError):
    """Raised when a request is cancelled before it reached a result.

    This is distinct from ``asyncio.CancelledError``: it is delivered to the
    awaiting caller as a normal failure and never tears down the caller's task.

    Attributes:
        request_id: Identifier of the cancelled request.
        reason: Optional human readable reason passed to the token.
    """

    def __init__(
        self,
        message: str = "Request cancelled",
        request_id: str | None = None,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.request_id = request_id
        self.reason = reason


class MaxRetriesExceededError(RequestOptimizerError):
    """Raised when a retryable failure persists after every allowed retry.

    Attributes:
        request_id: Identifier of the request.
        attempts: Total number of attempts made (max_retries + 1).
        last_error: The error raised by the final attempt.

    Example:
        try:
            await engine.submit_request(descriptor)
        except MaxRetriesExceededError as e:
            logger.warning(f"{e.request_id} gave up after {e.attempts} attempts")
    """

    def __init__(
        self,
        request_id: str,
        attempts: int,
        last_error: BaseException | None = None,
    ):
        super().__init__(
            f"Request {request_id} failed after {attempts} attempts: {last_error}"
        )
        self.request_id = request_id
        self.attempts = attempts
        self.last_error = last_error


class InvalidRequestError(RequestOptimizerError, ValueError):
    """Raised when a request descriptor is malformed.

    Common causes include an empty URL, a negative timeout, a retry count
    outside ``0..max_retries`` or a payload that cannot be serialized to JSON.
    Never retried.
    """

    pass


class QueueOverflowError(RequestOptimizerError):
    """Raised when the pending queue is full and cannot accept more requests.

    With the ``drop_oldest`` overflow policy the evicted request receives this
    error instead of the newcomer.

    Attributes:
        request_id: Identifier of the rejected or evicted request.
    """

    def __init__(self, message: str, request_id: str | None = None):
        super().__init__(message)
        self.request_id = request_id


class EngineNotRunningError(RequestOptimizerError):
    """Raised when work is submitted to an engine that is not started."""

    def __init__(self, message: str = "Engine is not running"):
        super().__init__(message)


class BatchError(RequestOptimizerError):
    """Raised when a batch fails at the coordinator level.

    Individual item failures never raise this; they are reported in the
    item's result. Only a fault that prevents the batch from being processed
    marks the batch as failed.

    Attributes:
        batch: The failed batch, with every unresolved item's error recorded.
    """

    def __init__(self, message: str, batch: "Batch | None" = None):
        super().__init__(message)
        self.batch = batch


__all__ = [
    "BatchError",
    "EngineNotRunningError",
    "HttpError",
    "InvalidRequestError",
    "MaxRetriesExceededError",
    "NetworkUnavailableError",
    "QueueOverflowError",
    "RequestCancelledError",
    "RequestOptimizerError",
    "RequestTimeoutError",
]
