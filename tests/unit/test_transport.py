"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

import httpx
import pytest

from tests.fixtures.mock_xray import BASE_URL
from xraylink.core.logging import correlation_id, correlation_manager
from xraylink.errors import TransportError
from xraylink.transport import (
    XrayTransport,
    extract_remote_message,
    job_status_path,
    mask_sensitive_data,
)

pytestmark = pytest.mark.unit


def transport_for(handler) -> XrayTransport:
    return XrayTransport(BASE_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestHelpers:
    def test_job_status_path(self):
        assert job_status_path("abc") == "/api/v1/import/test/bulk/abc/status"

    def test_error_field_preferred(self):
        response = httpx.Response(400, json={"error": "E", "message": "M"})
        assert extract_remote_message(response, "fallback") == "E"

    def test_message_field(self):
        response = httpx.Response(400, json={"message": "M"})
        assert extract_remote_message(response, "fallback") == "M"

    def test_text_body(self):
        response = httpx.Response(502, text="Bad gateway")
        assert extract_remote_message(response, "fallback") == "Bad gateway"

    def test_fallback(self):
        assert extract_remote_message(httpx.Response(500), "fallback") == "fallback"
        assert extract_remote_message(None, "fallback") == "fallback"

    def test_mask_sensitive_data(self):
        masked = mask_sensitive_data({"client_id": "a", "client_secret": "b", "nested": [{"token": "t"}]})
        assert masked == {"client_id": "a", "client_secret": "********", "nested": [{"token": "********"}]}


class TestRequest:
    @pytest.mark.asyncio
    async def test_json_response(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"jobId": "1"})

        transport = transport_for(handler)
        with correlation_id("req-42"):
            body = await transport.request("POST", "/api/v1/import/test/bulk", token="tok", json_body=[])

        assert body == {"jobId": "1"}
        assert seen["url"] == f"{BASE_URL}/api/v1/import/test/bulk"
        assert seen["headers"]["Authorization"] == "Bearer tok"
        assert seen["headers"]["X-Correlation-ID"] == "req-42"
        assert transport.request_count == 1
        assert transport.error_count == 0

    @pytest.mark.asyncio
    async def test_no_correlation_header_outside_an_operation(self):
        correlation_manager.clear_correlation_id()
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return httpx.Response(204)

        await transport_for(handler).request("GET", "/anything")

        assert "X-Correlation-ID" not in seen["headers"]
        assert correlation_manager.current_correlation_id() is None

    @pytest.mark.asyncio
    async def test_bare_string_body(self):
        transport = transport_for(lambda request: httpx.Response(200, json="token-value"))

        assert await transport.request("POST", "/api/v2/authenticate") == "token-value"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        transport = transport_for(lambda request: httpx.Response(204))

        assert await transport.request("GET", "/anything") is None

    @pytest.mark.asyncio
    async def test_status_error(self):
        transport = transport_for(lambda request: httpx.Response(500, json={"error": "Internal"}))

        with pytest.raises(TransportError) as exc_info:
            await transport.request("GET", "/anything")

        assert exc_info.value.status_code == 500
        assert exc_info.value.remote_message == "Internal"
        assert transport.error_count == 1

    @pytest.mark.asyncio
    async def test_timeout_is_a_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        transport = transport_for(handler)

        with pytest.raises(TransportError) as exc_info:
            await transport.request("GET", "/slow", timeout=1.0)

        assert exc_info.value.status_code is None
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="connection refused"):
            await transport_for(handler).request("GET", "/down")

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204)))

        async with XrayTransport(BASE_URL, client=client):
            pass

        assert not client.is_closed
        await client.aclose()
