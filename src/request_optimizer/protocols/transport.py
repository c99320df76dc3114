# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for the network transport used by the engine."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..transport.headers import get_header, parse_retry_after
from ..types.request import RequestDescriptor


@dataclass(frozen=True)
class TransportResponse:
    """
    Raw outcome of one network attempt.

    The transport reports every HTTP status as a response; the engine decides
    what counts as an error.
    """

    status: int
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    size: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def not_modified(self) -> bool:
        return self.status == 304

    @property
    def retry_after(self) -> float | None:
        return parse_retry_after(get_header(self.headers, "Retry-After"))


@runtime_checkable
class TransportProtocol(Protocol):
    """
    Minimal transport interface.

    The engine owns scheduling, timeouts, retries and caching; a transport
    only performs one attempt. It must release its connection when the
    awaiting task is cancelled, which happens when the attempt loses a race
    against the timeout or the cancellation token.

    Failures below HTTP should raise RequestTimeoutError or
    NetworkUnavailableError so the retry controller can classify them.
    """

    async def send(
        self,
        descriptor: RequestDescriptor[Any],
        headers: Mapping[str, str],
    ) -> TransportResponse:
        """
        Perform one attempt.

        Args:
            descriptor: The request; payload is sent as a JSON body
            headers: Final headers (defaults, descriptor headers and any
                conditional revalidation headers already merged)
        """
        ...
