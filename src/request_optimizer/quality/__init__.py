# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Connection quality estimation."""

from .estimator import (
    QUALITY_THRESHOLDS,
    ConnectionQualityEstimator,
    QualityCallback,
    classify_window,
)

__all__ = [
    "QUALITY_THRESHOLDS",
    "ConnectionQualityEstimator",
    "QualityCallback",
    "classify_window",
]
