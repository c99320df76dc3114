# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Unit tests for NetworkEngine retry, backoff, timeout and cancellation.

Every request must reach exactly one terminal outcome, whichever of
success, retry exhaustion, timeout or cancellation happens first.
"""

import asyncio

import pytest

from request_optimizer.engine import NetworkEngine
from request_optimizer.exceptions import (
    HttpError,
    MaxRetriesExceededError,
    NetworkUnavailableError,
    RequestCancelledError,
    RequestTimeoutError,
)
from request_optimizer.observability.constants import REQUEST_TIMEOUTS_TOTAL
from request_optimizer.observability.events import TelemetryEventType
from request_optimizer.protocols.transport import TransportResponse
from request_optimizer.types.queue import RequestOutcome
from request_optimizer.types.request import CancellationToken


class TestRetry:
    @pytest.mark.asyncio
    async def test_exhausts_retries_on_server_error(self, make_engine, transport):
        transport.respond_with_statuses({"https://x/broken": 500})
        async with make_engine(max_retries=3) as engine:
            with pytest.raises(MaxRetriesExceededError) as exc_info:
                await engine.request("https://x/broken")

        assert len(transport.calls) == 4
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.last_error, HttpError)
        assert exc_info.value.last_error.status == 500

        stats = engine.get_stats()
        assert stats.total_requests == 4
        assert stats.failed_requests == 4
        assert stats.retried_requests == 3
        assert engine.failed_requests == 1

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, make_engine, transport):
        transport.respond_with_statuses({"https://x/missing": 404})
        async with make_engine(max_retries=3) as engine:
            with pytest.raises(HttpError) as exc_info:
                await engine.request("https://x/missing")

        assert exc_info.value.status == 404
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_network_error_not_retried(self, make_engine, transport):
        transport.respond_with_sequence(NetworkUnavailableError("down"))
        async with make_engine(max_retries=3) as engine:
            with pytest.raises(NetworkUnavailableError):
                await engine.request("https://x/a")

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, make_engine, transport):
        transport.respond_with_sequence(
            TransportResponse(status=500),
            TransportResponse(status=200, data="recovered"),
        )
        async with make_engine(max_retries=3) as engine:
            assert await engine.request("https://x/flaky") == "recovered"

        stats = engine.get_stats()
        assert stats.retried_requests == 1
        assert stats.failed_requests == 1
        assert stats.successful_requests == 1
        assert engine.failed_requests == 0
        history = engine.get_request_history()
        assert len(history) == 1
        assert history[0].attempts == 2
        assert history[0].outcome is RequestOutcome.SUCCEEDED

    @pytest.mark.asyncio
    async def test_retry_headers_preserved(self, make_engine, transport):
        transport.respond_with_sequence(
            TransportResponse(status=503), TransportResponse(status=200)
        )
        async with make_engine() as engine:
            await engine.request("https://x/a", headers={"X-Trace": "t1"})

        assert [h["X-Trace"] for _, h in transport.calls] == ["t1", "t1"]
        assert [d.attempt for d, _ in transport.calls] == [1, 2]

    @pytest.mark.asyncio
    async def test_exponential_backoff(self, make_engine, transport):
        transport.respond_with_statuses({"https://x/broken": 500})
        async with make_engine(max_retries=3, retry_base_delay=0.05) as engine:
            with pytest.raises(MaxRetriesExceededError):
                await engine.request("https://x/broken")

        times = transport.call_times
        gaps = [later - earlier for earlier, later in zip(times, times[1:])]
        tolerance = 0.01
        assert gaps[0] >= 0.05 - tolerance
        assert gaps[1] >= 0.10 - tolerance
        assert gaps[2] >= 0.20 - tolerance

    @pytest.mark.asyncio
    async def test_retry_after_honored(self, make_engine, transport):
        transport.respond_with_sequence(
            TransportResponse(status=429, headers={"Retry-After": "0.2"}),
            TransportResponse(status=200, data="ok"),
        )
        async with make_engine(retry_base_delay=0.01) as engine:
            assert await engine.request("https://x/limited") == "ok"

        gap = transport.call_times[1] - transport.call_times[0]
        assert gap >= 0.19

    @pytest.mark.asyncio
    async def test_retry_disabled(self, make_engine, transport):
        transport.respond_with_statuses({"https://x/broken": 503})
        async with make_engine(enable_retry=False) as engine:
            with pytest.raises(HttpError):
                await engine.request("https://x/broken")

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_per_request_retry_budget(self, make_engine, transport):
        transport.respond_with_statuses({"https://x/broken": 500})
        async with make_engine(max_retries=3) as engine:
            with pytest.raises(MaxRetriesExceededError):
                await engine.request("https://x/broken", max_retries=1)

        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_slot_released_during_backoff(self, make_engine, transport):
        transport.respond_with_sequence(
            TransportResponse(status=500), TransportResponse(status=200, data="ok")
        )
        async with make_engine(
            max_concurrent_requests=1, retry_base_delay=0.2, max_backoff=1.0
        ) as engine:
            flaky = engine.submit(engine.create_descriptor("https://x/flaky"))
            await asyncio.sleep(0.05)
            # The flaky request waits out its backoff without holding the slot
            assert engine.active_requests == 0
            assert await engine.request("https://x/other") == "ok"
            assert await flaky == "ok"

        assert transport.urls == ["https://x/flaky", "https://x/other", "https://x/flaky"]

    @pytest.mark.asyncio
    async def test_retry_telemetry(self, transport, make_config):
        events = []
        transport.respond_with_statuses({"https://x/broken": 500})
        engine = NetworkEngine(
            transport=transport,
            config=make_config(max_retries=2),
            telemetry_sinks=[events.append],
        )
        async with engine:
            with pytest.raises(MaxRetriesExceededError):
                await engine.request("https://x/broken")

        types = [e.event_type for e in events]
        assert types.count(TelemetryEventType.RETRY_SCHEDULED) == 2
        assert types.count(TelemetryEventType.REQUEST_FAILED) == 1
        retries = [e for e in events if e.event_type is TelemetryEventType.RETRY_SCHEDULED]
        assert [e.attempt for e in retries] == [1, 2]
        assert all(e.details["delay"] > 0 for e in retries)


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout_without_retry(self, make_engine, transport):
        transport.delay = 1.0
        async with make_engine(max_retries=0) as engine:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await engine.request("https://x/slow", timeout=0.05)

        assert exc_info.value.timeout == 0.05
        assert len(transport.cancelled) == 1
        assert engine.get_metrics()["counters"][REQUEST_TIMEOUTS_TOTAL] == {"": 1}

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, make_engine, transport):
        transport.delay = 1.0
        async with make_engine(max_retries=1) as engine:
            with pytest.raises(MaxRetriesExceededError) as exc_info:
                await engine.request("https://x/slow", timeout=0.05)

        assert len(transport.calls) == 2
        assert isinstance(exc_info.value.last_error, RequestTimeoutError)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_queued_request_never_dispatched(self, make_engine, transport):
        gate = transport.gate("https://x/blocker")
        async with make_engine(max_concurrent_requests=1) as engine:
            blocker = engine.submit(engine.create_descriptor("https://x/blocker"))
            queued = engine.submit(engine.create_descriptor("https://x/queued"))

            assert queued.cancel("not needed") is True
            with pytest.raises(RequestCancelledError) as exc_info:
                await queued
            assert exc_info.value.reason == "not needed"
            assert engine.pending_requests == 0

            gate.set()
            await blocker

        assert transport.urls == ["https://x/blocker"]
        assert engine.get_stats().cancelled_requests == 1

    @pytest.mark.asyncio
    async def test_in_flight_request_aborted(self, make_engine, transport):
        transport.gate("https://x/slow")
        async with make_engine() as engine:
            handle = engine.submit(engine.create_descriptor("https://x/slow"))
            await asyncio.sleep(0.01)

            assert engine.cancel_request(handle.request_id, "user navigated away")
            with pytest.raises(RequestCancelledError):
                await handle
            await asyncio.sleep(0.01)

            assert transport.cancelled == [handle.request_id]
            assert engine.active_requests == 0

    @pytest.mark.asyncio
    async def test_shared_token(self, make_engine, transport):
        transport.gate("https://x/slow")
        token = CancellationToken()
        async with make_engine() as engine:
            handle = engine.submit(
                engine.create_descriptor("https://x/slow", cancellation_token=token)
            )
            await asyncio.sleep(0.01)
            token.cancel("timeout in caller")

            with pytest.raises(RequestCancelledError) as exc_info:
                await handle

        assert exc_info.value.reason == "timeout in caller"

    @pytest.mark.asyncio
    async def test_pre_cancelled_token(self, make_engine, transport):
        token = CancellationToken()
        token.cancel("already")
        async with make_engine() as engine:
            handle = engine.submit(
                engine.create_descriptor("https://x/a", cancellation_token=token)
            )
            assert handle.done()
            with pytest.raises(RequestCancelledError):
                await handle

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, make_engine, transport):
        transport.respond_with_statuses({"https://x/broken": 500})
        async with make_engine(retry_base_delay=0.5, max_backoff=1.0) as engine:
            handle = engine.submit(engine.create_descriptor("https://x/broken"))
            await asyncio.sleep(0.05)
            assert len(transport.calls) == 1

            assert handle.cancel() is True
            with pytest.raises(RequestCancelledError):
                await handle
            await asyncio.sleep(0.6)

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_unknown_or_finished(self, make_engine):
        async with make_engine() as engine:
            assert engine.cancel_request("req_unknown") is False
            handle = engine.submit(engine.create_descriptor("https://x/a"))
            await handle
            assert handle.cancel() is False
            assert engine.cancel_request(handle.request_id) is False

    @pytest.mark.asyncio
    async def test_cancel_all(self, make_engine, transport):
        transport.gate("https://x/slow")
        async with make_engine(max_concurrent_requests=2) as engine:
            handles = [
                engine.submit(engine.create_descriptor("https://x/slow", cache=False))
                for _ in range(5)
            ]
            assert engine.cancel_all() == 5
            results = await asyncio.gather(*handles, return_exceptions=True)

        assert all(isinstance(r, RequestCancelledError) for r in results)
        assert engine.get_stats().cancelled_requests == 5
        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_cancelling_awaiter_cancels_request(self, make_engine, transport):
        transport.gate("https://x/slow")
        async with make_engine() as engine:
            handle = engine.submit(engine.create_descriptor("https://x/slow"))
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(handle.future, timeout=0.05)
            await asyncio.sleep(0.01)

            assert engine.active_requests == 0
            assert transport.cancelled == [handle.request_id]


class TestSingleTerminalTransition:
    @pytest.mark.asyncio
    async def test_one_record_per_request(self, make_engine, transport):
        transport.respond_with_sequence(
            TransportResponse(status=500),
            TransportResponse(status=500),
            TransportResponse(status=200, data="ok"),
        )
        async with make_engine(max_retries=3) as engine:
            handle = engine.submit(engine.create_descriptor("https://x/a"))
            assert await handle == "ok"
            assert handle.cancel() is False

        history = engine.get_request_history()
        assert [r.request_id for r in history] == [handle.request_id]
        assert history[0].outcome is RequestOutcome.SUCCEEDED

    @pytest.mark.asyncio
    async def test_cancel_racing_completion(self, make_engine, transport):
        gate = transport.gate("https://x/a")
        async with make_engine() as engine:
            handle = engine.submit(engine.create_descriptor("https://x/a"))
            await asyncio.sleep(0.01)
            gate.set()
            handle.cancel("late")
            try:
                await handle
            except RequestCancelledError:
                pass

        history = engine.get_request_history()
        assert len(history) == 1
        assert history[0].outcome in (RequestOutcome.SUCCEEDED, RequestOutcome.CANCELLED)
