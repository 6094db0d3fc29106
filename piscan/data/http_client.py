from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from piscan.core.exceptions import CircuitBreakerOpen, UpstreamBadResponse, UpstreamRateLimited
from piscan.core.logging import get_logger
from piscan.core.request_spec import JsonRpcSpec, RequestSpec

logger = get_logger(__name__)


@dataclass(frozen=True)
class HttpSettings:
    timeout: float = 10.0
    max_retries: int = 0
    backoff_base: float = 0.5
    backoff_max: float = 8.0

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "HttpSettings":
        section = (config or {}).get("http") or {}
        return cls(
            timeout=float(section.get("timeout_sec", cls.timeout)),
            max_retries=int(section.get("max_retries", cls.max_retries)),
            backoff_base=float(section.get("backoff_base", cls.backoff_base)),
            backoff_max=float(section.get("backoff_max", cls.backoff_max)),
        )

    def build_client(self, name: str, async_client: Optional[httpx.AsyncClient] = None) -> "JsonHttpClient":
        return JsonHttpClient(
            name=name,
            timeout=self.timeout,
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
            backoff_max=self.backoff_max,
            async_client=async_client,
        )


class CircuitBreaker:
    def __init__(self, failure_threshold: int = 5, cooldown_sec: float = 30.0) -> None:
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_sec = max(1.0, cooldown_sec)
        self.failures = 0
        self.open_until = 0.0

    def allow(self) -> bool:
        if self.open_until and time.monotonic() < self.open_until:
            return False
        return True

    def record_success(self) -> None:
        self.failures = 0
        self.open_until = 0.0

    def record_failure(self) -> None:
        self.failures += 1
        if self.failures >= self.failure_threshold:
            self.open_until = time.monotonic() + self.cooldown_sec
            self.failures = 0


class JsonHttpClient:
    def __init__(
        self,
        name: str = "upstream",
        timeout: float = 10.0,
        max_retries: int = 0,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.name = name
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.backoff_base = max(0.1, backoff_base)
        self.backoff_max = max(backoff_max, self.backoff_base)
        self._client = async_client
        self._owns_client = async_client is None
        self._circuit_breaker = CircuitBreaker()

    async def __aenter__(self) -> "JsonHttpClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(self, spec: RequestSpec | JsonRpcSpec) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        if not self._circuit_breaker.allow():
            raise CircuitBreakerOpen(f"{self.name} circuit breaker is open")

        request_spec = spec.to_request_spec() if isinstance(spec, JsonRpcSpec) else spec
        last_error: Optional[BaseException] = None
        for attempt in range(self.max_retries + 1):
            try:
                resp = await self._client.request(
                    request_spec.method,
                    request_spec.url,
                    params=request_spec.params() or None,
                    headers=request_spec.headers,
                    json=request_spec.json,
                )
                if resp.status_code == 429:
                    self._circuit_breaker.record_failure()
                    last_error = UpstreamRateLimited(f"{self.name} rate limited", status_code=resp.status_code)
                    if attempt >= self.max_retries:
                        break
                    await self._sleep_backoff(attempt, resp.headers.get("Retry-After"))
                    continue
                if resp.status_code >= 500:
                    self._circuit_breaker.record_failure()
                    last_error = UpstreamBadResponse(f"{self.name} upstream error", status_code=resp.status_code)
                    if attempt >= self.max_retries:
                        break
                    await self._sleep_backoff(attempt, resp.headers.get("Retry-After"))
                    continue
                if resp.status_code >= 400:
                    raise UpstreamBadResponse(f"{self.name} request rejected", status_code=resp.status_code)
                try:
                    payload = resp.json()
                except ValueError as exc:
                    raise UpstreamBadResponse(f"{self.name} returned invalid JSON") from exc
                self._circuit_breaker.record_success()
                return payload
            except httpx.HTTPError as exc:
                self._circuit_breaker.record_failure()
                last_error = exc
                if attempt >= self.max_retries:
                    break
                await self._sleep_backoff(attempt)

        if last_error:
            logger.debug(f"{self.name} request failed after {attempt + 1} attempt(s): {last_error}")
            raise last_error
        raise RuntimeError(f"{self.name} request failed without a response")

    async def _sleep_backoff(self, attempt: int, retry_after: Optional[str] = None) -> None:
        if retry_after:
            try:
                delay = float(retry_after)
                await asyncio.sleep(min(delay, self.backoff_max))
                return
            except ValueError:
                pass
        delay = min(self.backoff_max, self.backoff_base * (2**attempt))
        await asyncio.sleep(delay)


__all__ = ["CircuitBreaker", "HttpSettings", "JsonHttpClient"]
