# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions and constants."""

from .batch import Batch, BatchResult, BatchSpec, BatchStatus, generate_batch_id
from .quality import ConnectionQuality, QualitySample
from .queue import QueuedRequest, RequestHandle, RequestOutcome, RequestRecord
from .request import (
    CancellationToken,
    Priority,
    RequestDescriptor,
    RequestTarget,
    create_request_descriptor,
    generate_request_id,
)

__all__ = [
    # Batch types
    "Batch",
    "BatchResult",
    "BatchSpec",
    "BatchStatus",
    # Request types
    "CancellationToken",
    # Quality types
    "ConnectionQuality",
    "Priority",
    "QualitySample",
    # Queue types
    "QueuedRequest",
    "RequestDescriptor",
    "RequestHandle",
    "RequestOutcome",
    "RequestRecord",
    "RequestTarget",
    "create_request_descriptor",
    "generate_batch_id",
    "generate_request_id",
]
