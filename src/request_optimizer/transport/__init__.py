# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Transport implementations for the network engine.

Available transports:
- HttpxTransport: httpx.AsyncClient based transport (requires httpx extra)

Supporting helpers:
- get_header, merge_headers, parse_retry_after: Header utilities

Note: HttpxTransport is lazily imported so the engine can be used with a
custom transport without installing httpx.
"""

from typing import TYPE_CHECKING, cast

from .headers import get_header, merge_headers, parse_retry_after

if TYPE_CHECKING:
    from .httpx_transport import HttpxTransport

__all__ = [
    "HttpxTransport",
    "get_header",
    "merge_headers",
    "parse_retry_after",
]


def __getattr__(name: str) -> type:
    """Lazy import for the optional httpx transport."""
    if name == "HttpxTransport":
        try:
            from . import httpx_transport
        except ImportError as e:  # pragma: no cover
            raise ImportError(  # pragma: no cover
                f"'{name}' requires the 'httpx' extra. "
                "Install with: pip install request-optimizer[httpx]"
            ) from e
        return cast(type, httpx_transport.HttpxTransport)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
