# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Scheduling components of the network engine.

This module provides:
- EngineConfig: Engine configuration
- AdmissionScheduler: Priority queue with a hard concurrency limit
- RetryController, RetryDecision: Retry eligibility and exponential backoff
- BatchCoordinator: Fan-out/fan-in of grouped submissions
"""

from .admission import AdmissionScheduler
from .batch import BatchCoordinator, coerce_spec
from .config import EngineConfig
from .retry import RetryController, RetryDecision, is_retryable

__all__ = [
    "AdmissionScheduler",
    "BatchCoordinator",
    "EngineConfig",
    "RetryController",
    "RetryDecision",
    "coerce_spec",
    "is_retryable",
]
