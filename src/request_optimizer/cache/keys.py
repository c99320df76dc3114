# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Cache key derivation and cacheability rules."""

import json
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """
    Normalize a URL for use in cache keys.

    Lower-cases scheme and host, drops default ports and fragments, and sorts
    query parameters so equivalent addresses produce the same key.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port is not None and _DEFAULT_PORTS.get(scheme) != parts.port:
        netloc = f"{host}:{parts.port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    path = parts.path or ("/" if netloc else "")
    return urlunsplit((scheme, netloc, path, query, ""))


def serialize_payload(payload: Any) -> str:
    """Stable JSON serialization: sorted keys, compact separators."""
    return json.dumps(
        payload if payload is not None else {},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def make_cache_key(method: str, url: str, payload: Any = None) -> str:
    """Derive a deterministic cache key from method, address and payload."""
    return f"{method.upper()}_{normalize_url(url)}_{serialize_payload(payload)}"


def should_cache(method: str, status: int) -> bool:
    """Only successful GET responses are stored."""
    return method.upper() == "GET" and status == 200


__all__ = [
    "make_cache_key",
    "normalize_url",
    "serialize_payload",
    "should_cache",
]
