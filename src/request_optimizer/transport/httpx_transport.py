# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Default transport built on httpx.AsyncClient.

Requires the ``httpx`` extra: pip install request-optimizer[httpx]
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from typing_extensions import Self

from ..exceptions import (
    InvalidRequestError,
    NetworkUnavailableError,
    RequestTimeoutError,
)
from ..protocols.transport import TransportResponse
from ..types.request import RequestDescriptor

logger = logging.getLogger(__name__)

_BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "DELETE"})


def decode_body(body: bytes) -> Any:
    """Decode a response body as JSON, falling back to text. Empty gives None."""
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")


class HttpxTransport:
    """
    TransportProtocol implementation over an httpx.AsyncClient.

    Each attempt runs inside the client's streaming context manager, so the
    connection goes back to the pool (or is closed) on every exit path,
    including cancellation by the engine's timeout race.

    Example:
        >>> async with HttpxTransport(base_url="https://api.example.com") as t:
        ...     engine = create_engine(transport=t)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str = "",
        limits: httpx.Limits | None = None,
        follow_redirects: bool = True,
    ) -> None:
        """
        Args:
            client: Existing client to use; the caller keeps ownership
            base_url: Base URL for a client created here
            limits: Connection pool limits for a client created here
            follow_redirects: Redirect policy for a client created here
        """
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url,
                limits=limits or httpx.Limits(),
                follow_redirects=follow_redirects,
            )
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(
        self,
        descriptor: RequestDescriptor[Any],
        headers: Mapping[str, str],
    ) -> TransportResponse:
        json_body = None
        if descriptor.payload is not None and descriptor.method not in _BODYLESS_METHODS:
            json_body = descriptor.payload

        try:
            async with self._client.stream(
                descriptor.method,
                descriptor.url,
                headers=dict(headers),
                json=json_body,
                timeout=descriptor.timeout,
            ) as response:
                body = await response.aread()
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"Request {descriptor.id} timed out in transport: {e}",
                request_id=descriptor.id,
                timeout=descriptor.timeout,
            ) from e
        except httpx.RequestError as e:
            # Connection failures, redirect loops and undecodable bodies
            raise NetworkUnavailableError(
                f"Network error for {descriptor.method} {descriptor.url}: {e}"
            ) from e
        except httpx.InvalidURL as e:
            raise InvalidRequestError(
                f"Transport rejected url {descriptor.url!r}: {e}"
            ) from e

        logger.debug(
            f"{descriptor.method} {descriptor.url} -> {response.status_code} "
            f"({len(body)} bytes)"
        )
        return TransportResponse(
            status=response.status_code,
            data=decode_body(body),
            headers=dict(response.headers),
            size=len(body),
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


__all__ = ["HttpxTransport", "decode_body"]
