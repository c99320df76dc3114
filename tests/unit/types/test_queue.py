# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for QueuedRequest and RequestHandle."""

import asyncio

import pytest

from request_optimizer.types.queue import QueuedRequest, RequestHandle, RequestOutcome
from request_optimizer.types.request import Priority, create_request_descriptor


class TestQueuedRequest:
    @pytest.mark.asyncio
    async def test_sort_key_orders_by_priority_then_sequence(self):
        loop = asyncio.get_running_loop()
        low = QueuedRequest(
            descriptor=create_request_descriptor("https://a", priority="low"),
            future=loop.create_future(),
            sequence=0,
        )
        high = QueuedRequest(
            descriptor=create_request_descriptor("https://b", priority="high"),
            future=loop.create_future(),
            sequence=5,
        )
        high_later = QueuedRequest(
            descriptor=create_request_descriptor("https://c", priority="high"),
            future=loop.create_future(),
            sequence=6,
        )

        ordered = sorted([low, high_later, high], key=lambda q: q.sort_key)

        assert ordered == [high, high_later, low]
        assert high.priority is Priority.HIGH
        assert high.request_id == high.descriptor.id

    @pytest.mark.asyncio
    async def test_is_finished_follows_outcome(self):
        queued = QueuedRequest(
            descriptor=create_request_descriptor("https://a"),
            future=asyncio.get_running_loop().create_future(),
        )
        assert queued.is_finished is False
        queued.outcome = RequestOutcome.SUCCEEDED
        assert queued.is_finished is True


class TestRequestHandle:
    @pytest.mark.asyncio
    async def test_await_returns_future_result(self):
        future = asyncio.get_running_loop().create_future()
        handle = RequestHandle("req_1", future)
        future.set_result({"ok": True})

        assert handle.done() is True
        assert await handle == {"ok": True}
        assert handle.result() == {"ok": True}

    @pytest.mark.asyncio
    async def test_cancel_delegates_to_canceller(self):
        calls = []

        def canceller(request_id, reason):
            calls.append((request_id, reason))
            return True

        handle = RequestHandle(
            "req_1", asyncio.get_running_loop().create_future(), canceller=canceller
        )

        assert handle.cancel("user") is True
        assert calls == [("req_1", "user")]

    @pytest.mark.asyncio
    async def test_cancel_after_done_returns_false(self):
        future = asyncio.get_running_loop().create_future()
        future.set_result(None)
        calls = []
        handle = RequestHandle("req_1", future, canceller=lambda *a: calls.append(a))

        assert handle.cancel() is False
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_without_canceller(self):
        handle = RequestHandle("req_1", asyncio.get_running_loop().create_future())
        assert handle.cancel() is False

    @pytest.mark.asyncio
    async def test_repr_shows_state(self):
        future = asyncio.get_running_loop().create_future()
        handle = RequestHandle("req_1", future)
        assert "pending" in repr(handle)
        future.set_result(1)
        assert "done" in repr(handle)
