# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for the unit suite: a manual clock and a scriptable transport."""

import asyncio
import time
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from request_optimizer.engine import NetworkEngine
from request_optimizer.protocols.transport import TransportResponse
from request_optimizer.scheduler.config import EngineConfig
from request_optimizer.types.request import RequestDescriptor


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Responder = Callable[[RequestDescriptor[Any], Mapping[str, str]], Any]


class FakeTransport:
    """
    TransportProtocol stand-in.

    The responder returns a TransportResponse or an exception instance to
    raise. URLs registered with gate() block until their event is set.
    """

    def __init__(self) -> None:
        self.responder: Responder = lambda d, h: TransportResponse(
            status=200, data={"url": d.url}, size=16
        )
        self.delay = 0.0
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[RequestDescriptor[Any], dict[str, str]]] = []
        self.call_times: list[float] = []
        self.cancelled: list[str] = []
        self.closed = False

    @property
    def urls(self) -> list[str]:
        return [d.url for d, _ in self.calls]

    def gate(self, url: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[url] = event
        return event

    def respond_with_statuses(self, statuses: dict[str, int], data: Any = "ok") -> None:
        """Answer with a fixed status per URL (200 for other URLs)."""
        self.responder = lambda d, h: TransportResponse(
            status=statuses.get(d.url, 200), data=data
        )

    def respond_with_sequence(self, *results: Any) -> None:
        """Answer with each result in turn, repeating the last one."""
        remaining = list(results)

        def respond(descriptor: RequestDescriptor[Any], headers: Mapping[str, str]) -> Any:
            if len(remaining) > 1:
                return remaining.pop(0)
            return remaining[0]

        self.responder = respond

    async def send(
        self, descriptor: RequestDescriptor[Any], headers: Mapping[str, str]
    ) -> TransportResponse:
        self.calls.append((descriptor, dict(headers)))
        self.call_times.append(time.monotonic())
        try:
            gate = self.gates.get(descriptor.url)
            if gate is not None:
                await gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled.append(descriptor.id)
            raise

        result = self.responder(descriptor, headers)
        if isinstance(result, BaseException):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_config():
    """Config factory: fast retries and no background monitor by default."""

    def factory(**overrides: Any) -> EngineConfig:
        values: dict[str, Any] = {
            "enable_quality_monitor": False,
            "retry_base_delay": 0.01,
            "max_backoff": 1.0,
        }
        values.update(overrides)
        return EngineConfig(**values)

    return factory


@pytest.fixture
def make_engine(transport, make_config):
    """Engine factory bound to the fake transport. Use as an async context manager."""

    def factory(clock: Callable[[], float] | None = None, **overrides: Any) -> NetworkEngine:
        kwargs: dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        return NetworkEngine(transport=transport, config=make_config(**overrides), **kwargs)

    return factory
