import asyncio

import httpx
import pytest

from piscan.core.exceptions import CircuitBreakerOpen, UpstreamBadResponse, UpstreamRateLimited
from piscan.core.request_spec import RequestSpec
from piscan.data.http_client import HttpSettings, JsonHttpClient


def _make_spec() -> RequestSpec:
    return RequestSpec(
        method="GET",
        base_url="https://example.com",
        path="/test",
        query={},
        headers={},
    )


async def _run_error_case(status_code, exc_type, content=b""):
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code, content=content))
    async with httpx.AsyncClient(transport=transport) as async_client:
        client = JsonHttpClient(async_client=async_client, max_retries=0)
        with pytest.raises(exc_type):
            await client.request(_make_spec())


def test_http_client_rate_limited():
    asyncio.run(_run_error_case(429, UpstreamRateLimited))


def test_http_client_upstream_error():
    asyncio.run(_run_error_case(500, UpstreamBadResponse))


def test_http_client_rejected_request():
    asyncio.run(_run_error_case(404, UpstreamBadResponse))


def test_http_client_invalid_json():
    asyncio.run(_run_error_case(200, UpstreamBadResponse, content=b"<html>"))


def test_http_client_retries_then_succeeds():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(503, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"ok": True})

    async def scenario():
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as async_client:
            client = JsonHttpClient(async_client=async_client, max_retries=1, backoff_base=0.1)
            return await client.request(_make_spec())

    assert asyncio.run(scenario()) == {"ok": True}
    assert len(attempts) == 2


def test_circuit_breaker_opens_after_repeated_failures():
    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as async_client:
            client = JsonHttpClient(async_client=async_client, max_retries=0)
            for _ in range(5):
                with pytest.raises(UpstreamBadResponse):
                    await client.request(_make_spec())
            with pytest.raises(CircuitBreakerOpen):
                await client.request(_make_spec())

    asyncio.run(scenario())


def test_settings_from_config():
    settings = HttpSettings.from_config({"http": {"timeout_sec": 3, "max_retries": 2}})
    assert settings.timeout == 3.0
    assert settings.max_retries == 2
    client = settings.build_client("rpc test")
    assert client.name == "rpc test"
    assert client.max_retries == 2
