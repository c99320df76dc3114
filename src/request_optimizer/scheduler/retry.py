# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Retry eligibility and backoff computation.

The controller is pure: it never sleeps or schedules anything. The engine
asks it for a decision after each failed attempt and arranges the delay.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..exceptions import HttpError, MaxRetriesExceededError, RequestTimeoutError
from ..types.request import RequestDescriptor
from .config import EngineConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    """
    Outcome of a retry evaluation.

    When retry is True the request should be re-enqueued after delay seconds.
    Otherwise error is the terminal error to deliver to the caller.
    """

    retry: bool
    delay: float = 0.0
    error: BaseException | None = None

    @classmethod
    def retry_after(cls, delay: float) -> "RetryDecision":
        return cls(retry=True, delay=delay)

    @classmethod
    def give_up(cls, error: BaseException) -> "RetryDecision":
        return cls(retry=False, error=error)


def is_retryable(error: BaseException) -> bool:
    """Timeouts, 5xx and 429 are transient. Everything else is terminal."""
    if isinstance(error, RequestTimeoutError):
        return True
    if isinstance(error, HttpError):
        return error.is_server_error or error.is_rate_limited
    return False


class RetryController:
    """
    Decides whether a failed attempt is retried and after how long.

    The delay before retry k (0-based) is
    ``base_delay * multiplier ** k``, capped at max_backoff, plus up to
    ``jitter`` random seconds. A server Retry-After hint raises the delay to
    at least the hinted value, under the same cap.
    """

    def __init__(
        self,
        enabled: bool = True,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        max_backoff: float = 60.0,
        jitter: float = 0.0,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.enabled = enabled
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_backoff = max_backoff
        self.jitter = jitter
        self._rng = rng

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RetryController":
        return cls(
            enabled=config.enable_retry,
            base_delay=config.retry_base_delay,
            multiplier=config.backoff_multiplier,
            max_backoff=config.max_backoff,
            jitter=config.retry_jitter,
        )

    def calculate_backoff(self, retry_count: int, retry_after: float | None = None) -> float:
        """
        Delay before the retry that follows attempt number retry_count + 1.

        Args:
            retry_count: Retries already performed (0-based)
            retry_after: Optional server hint in seconds
        """
        delay = min(self.base_delay * (self.multiplier**retry_count), self.max_backoff)
        if retry_after is not None and retry_after > delay:
            delay = min(retry_after, self.max_backoff)
        if self.jitter > 0:
            delay += self._rng(0.0, self.jitter)
        return delay

    def decide(
        self, descriptor: RequestDescriptor[Any], error: BaseException
    ) -> RetryDecision:
        """
        Evaluate a failed attempt.

        Returns:
            RetryDecision with retry=True and a delay, or retry=False with the
            error to surface: the original error when not retryable (or
            retries are disabled), MaxRetriesExceededError when exhausted.
        """
        if not self.enabled or not is_retryable(error):
            return RetryDecision.give_up(error)

        if not descriptor.can_retry:
            logger.debug(
                f"Request {descriptor.id} exhausted retries "
                f"after {descriptor.attempt} attempts"
            )
            return RetryDecision.give_up(
                MaxRetriesExceededError(descriptor.id, descriptor.attempt, error)
            )

        retry_after = error.retry_after if isinstance(error, HttpError) else None
        delay = self.calculate_backoff(descriptor.retry_count, retry_after)
        logger.debug(
            f"Request {descriptor.id} attempt {descriptor.attempt} failed "
            f"({type(error).__name__}); retrying in {delay:.3f}s"
        )
        return RetryDecision.retry_after(delay)


__all__ = ["RetryController", "RetryDecision", "is_retryable"]
