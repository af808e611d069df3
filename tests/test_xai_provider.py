"""Tests for the xAI provider adapter against a mocked transport."""

import asyncio
import json

import httpx
import pytest

from postproxy.errors import ProxyError, UpstreamError, UpstreamTimeoutError
from postproxy.providers.xai import XAIProvider

PAYLOAD = {"model": "grok-4", "messages": [{"role": "user", "content": "hello"}]}


async def _complete(handler, timeout=5.0):
    return await XAIProvider.complete(
        api_key="xai-key",
        payload=PAYLOAD,
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_returns_trimmed_content():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Hi there \n"}}]})

    assert await _complete(handler) == "Hi there"
    assert seen["auth"] == "Bearer xai-key"
    assert seen["url"] == XAIProvider.DEFAULT_BASE_URL
    assert seen["body"] == PAYLOAD


@pytest.mark.asyncio
async def test_missing_content_yields_empty_output():
    assert await _complete(lambda request: httpx.Response(200, json={"choices": []})) == ""
    assert await _complete(lambda request: httpx.Response(200, text="not json")) == ""


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"error": {"message": "Incorrect API key"}}, "Incorrect API key"),
        ({"message": "Model not found"}, "Model not found"),
        ({"error": "rate limit"}, "rate limit"),
        (None, "HTTP 429"),
    ],
)
@pytest.mark.asyncio
async def test_error_detail(body, expected):
    def handler(request):
        if body is None:
            return httpx.Response(429, text="")
        return httpx.Response(429, json=body)

    with pytest.raises(UpstreamError) as excinfo:
        await _complete(handler)
    assert excinfo.value.status_code == 502
    assert excinfo.value.to_body() == {"error": "AI request failed", "status": 429, "detail": expected}


@pytest.mark.asyncio
async def test_slow_upstream_times_out():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    with pytest.raises(UpstreamTimeoutError) as excinfo:
        await _complete(handler, timeout=0.05)
    assert excinfo.value.to_body() == {"error": "AI request timed out"}


@pytest.mark.asyncio
async def test_transport_timeout_is_reported_as_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(UpstreamTimeoutError):
        await _complete(handler)


@pytest.mark.asyncio
async def test_network_error_is_generic():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProxyError) as excinfo:
        await _complete(handler)
    assert excinfo.value.status_code == 500
    assert excinfo.value.to_body() == {"error": "AI generation error"}
