# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Header helpers shared by transports and the engine."""

import math
import time
from collections.abc import Mapping
from email.utils import parsedate_to_datetime


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup on a plain mapping."""
    target = name.lower()
    for key, value in headers.items():
        if key.lower() == target:
            return value
    return None


def merge_headers(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """
    Merge header mappings left to right.

    Later layers win; names compare case-insensitively and keep the casing of
    the layer that set them last.
    """
    merged: dict[str, str] = {}
    index: dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            previous = index.get(key.lower())
            if previous is not None:
                del merged[previous]
            merged[key] = value
            index[key.lower()] = key
    return merged


def parse_retry_after(value: str | None, now: float | None = None) -> float | None:
    """
    Parse a Retry-After value into seconds.

    Accepts delta-seconds or an HTTP-date. Returns None when absent, invalid
    or not in the future.

    Examples:
        >>> parse_retry_after("5")
        5.0
        >>> parse_retry_after("soon") is None
        True
    """
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if seconds > 0.0 and math.isfinite(seconds):
            return seconds
        return None

    try:
        target = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if target is None:
        return None

    delta = target.timestamp() - (time.time() if now is None else now)
    return delta if delta > 0 else None


__all__ = ["get_header", "merge_headers", "parse_retry_after"]
