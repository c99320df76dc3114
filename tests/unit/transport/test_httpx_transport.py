# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Unit tests for HttpxTransport, using httpx.MockTransport so no socket is opened.

Also runs the engine end to end over httpx for conditional revalidation.
"""

import json

import pytest

httpx = pytest.importorskip("httpx")

from request_optimizer.engine import NetworkEngine  # noqa: E402
from request_optimizer.exceptions import (  # noqa: E402
    InvalidRequestError,
    NetworkUnavailableError,
    RequestTimeoutError,
)
from request_optimizer.scheduler.config import EngineConfig  # noqa: E402
from request_optimizer.transport.httpx_transport import (  # noqa: E402
    HttpxTransport,
    decode_body,
)
from request_optimizer.types.request import create_request_descriptor  # noqa: E402


def mock_client(handler) -> "httpx.AsyncClient":
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def redirect_loop_client() -> "httpx.AsyncClient":
    def handler(request):
        return httpx.Response(302, headers={"Location": str(request.url)})

    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), follow_redirects=True, max_redirects=2
    )


class TestDecodeBody:
    @pytest.mark.parametrize(
        "body,expected",
        [
            (b"", None),
            (b'{"a": 1}', {"a": 1}),
            (b"[1, 2]", [1, 2]),
            (b"plain text", "plain text"),
        ],
    )
    def test_decoding(self, body, expected):
        assert decode_body(body) == expected


class TestSend:
    @pytest.mark.asyncio
    async def test_get_returns_decoded_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"items": [1]}, headers={"ETag": '"v1"'})

        async with HttpxTransport(client=mock_client(handler)) as transport:
            descriptor = create_request_descriptor("https://api.example.com/items")
            response = await transport.send(descriptor, {"X-Trace": "abc"})

        assert response.status == 200
        assert response.data == {"items": [1]}
        assert response.size > 0
        assert response.headers["etag"] == '"v1"'
        assert seen[0].method == "GET"
        assert seen[0].headers["X-Trace"] == "abc"
        assert seen[0].content == b""

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, text="created")

        async with HttpxTransport(client=mock_client(handler)) as transport:
            descriptor = create_request_descriptor(
                "https://api.example.com/items", method="POST", payload={"name": "x"}
            )
            response = await transport.send(descriptor, {})

        assert bodies == [{"name": "x"}]
        assert response.status == 201
        assert response.data == "created"

    @pytest.mark.asyncio
    async def test_error_statuses_are_responses(self):
        def handler(request):
            return httpx.Response(503, headers={"Retry-After": "3"})

        async with HttpxTransport(client=mock_client(handler)) as transport:
            response = await transport.send(
                create_request_descriptor("https://api.example.com"), {}
            )

        assert response.ok is False
        assert response.retry_after == 3.0

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with HttpxTransport(client=mock_client(handler)) as transport:
            descriptor = create_request_descriptor("https://api.example.com", timeout=2.0)
            with pytest.raises(RequestTimeoutError) as exc_info:
                await transport.send(descriptor, {})

        assert exc_info.value.request_id == descriptor.id
        assert exc_info.value.timeout == 2.0

    @pytest.mark.asyncio
    async def test_connection_error_mapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with HttpxTransport(client=mock_client(handler)) as transport:
            with pytest.raises(NetworkUnavailableError, match="refused"):
                await transport.send(create_request_descriptor("https://api.example.com"), {})

    @pytest.mark.asyncio
    async def test_redirect_loop_mapped(self):
        async with HttpxTransport(client=redirect_loop_client()) as transport:
            with pytest.raises(NetworkUnavailableError) as exc_info:
                await transport.send(create_request_descriptor("https://api.example.com"), {})

        assert isinstance(exc_info.value.__cause__, httpx.TooManyRedirects)

    @pytest.mark.asyncio
    async def test_decoding_error_mapped(self):
        def handler(request):
            raise httpx.DecodingError("bad gzip", request=request)

        async with HttpxTransport(client=mock_client(handler)) as transport:
            with pytest.raises(NetworkUnavailableError, match="bad gzip"):
                await transport.send(create_request_descriptor("https://api.example.com"), {})

    @pytest.mark.asyncio
    async def test_invalid_url_mapped(self):
        def handler(request):
            raise httpx.InvalidURL("bad host")

        async with HttpxTransport(client=mock_client(handler)) as transport:
            with pytest.raises(InvalidRequestError, match="bad host"):
                await transport.send(create_request_descriptor("https://api.example.com"), {})


class TestOwnership:
    @pytest.mark.asyncio
    async def test_external_client_left_open(self):
        client = mock_client(lambda request: httpx.Response(200))
        transport = HttpxTransport(client=client)

        await transport.aclose()

        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        transport = HttpxTransport(base_url="https://api.example.com")
        await transport.aclose()
        assert transport.client.is_closed is True


class TestEngineOverHttpx:
    @pytest.mark.asyncio
    async def test_conditional_revalidation(self, clock):
        conditional = []

        def handler(request):
            conditional.append(request.headers.get("If-None-Match"))
            if request.headers.get("If-None-Match") == '"v1"':
                return httpx.Response(304)
            return httpx.Response(200, json={"version": 1}, headers={"ETag": '"v1"'})

        config = EngineConfig(enable_quality_monitor=False, cache_ttl=1.0)
        transport = HttpxTransport(client=mock_client(handler))
        async with NetworkEngine(transport=transport, config=config, clock=clock) as engine:
            first = await engine.request("https://api.example.com/doc")
            second = await engine.request("https://api.example.com/doc")
            clock.advance(1.1)
            third = await engine.request("https://api.example.com/doc")

        await transport.client.aclose()

        assert first == second == third == {"version": 1}
        assert conditional == [None, '"v1"']
        assert engine.cache.metrics.revalidations == 1

    @pytest.mark.asyncio
    async def test_redirect_loop_fails_request(self):
        transport = HttpxTransport(client=redirect_loop_client())
        config = EngineConfig(enable_quality_monitor=False)
        async with NetworkEngine(transport=transport, config=config) as engine:
            with pytest.raises(NetworkUnavailableError):
                await engine.request("https://api.example.com/loop")
            reachable = await engine.test_connectivity("https://api.example.com/loop")

        await transport.client.aclose()

        assert reachable is False
        assert engine.get_stats().failed_requests == 2
        assert engine.get_request_history()[-1].error_type == "NetworkUnavailableError"
