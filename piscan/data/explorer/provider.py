from __future__ import annotations

from typing import Any, Dict, FrozenSet, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from piscan.core.exceptions import JsonRpcError, UnsupportedMethod, UpstreamBadResponse, UpstreamRateLimited
from piscan.core.logging import get_logger
from piscan.data.chain_source import MethodLike, Params, ProviderMethod, coerce_method, exclude_methods
from piscan.data.chain_types import ExplorerConfig
from piscan.data.explorer.request_factory import ExplorerRequestFactory, explorer_query_for
from piscan.data.explorer.schemas import ExplorerResponse
from piscan.data.formatter import format_result
from piscan.data.http_client import JsonHttpClient
from piscan.data.rate_limiter import RateLimiter, default_rate_limiter

logger = get_logger(__name__)

# Unreliable against Etherscan-family APIs even though they are advertised
EXPLORER_CAPABILITIES: FrozenSet[ProviderMethod] = exclude_methods(
    [ProviderMethod.CALL, ProviderMethod.ESTIMATE_GAS, ProviderMethod.SEND_TRANSACTION]
)

_NO_RECORDS_MARKERS = ("no records found", "no logs found")


def _parse_explorer_response(payload: Any, module: str) -> Any:
    if not isinstance(payload, dict):
        raise UpstreamBadResponse("Explorer response is not an object")
    try:
        response = ExplorerResponse.model_validate(payload)
    except ValidationError as exc:
        raise UpstreamBadResponse("Explorer response invalid") from exc
    if response.error is not None:
        raise JsonRpcError(f"Explorer RPC error: {response.error.message}", code=response.error.code)
    if response.is_error_status:
        detail = f"{response.message or ''} {response.result if isinstance(response.result, str) else ''}".strip()
        lowered = detail.lower()
        if module == "logs" and any(marker in lowered for marker in _NO_RECORDS_MARKERS):
            return []
        if "rate limit" in lowered:
            raise UpstreamRateLimited(f"Explorer rate limited: {detail}")
        raise UpstreamBadResponse(f"Explorer request failed: {detail or 'unknown error'}")
    return response.result


class ExplorerSource:
    def __init__(
        self,
        config: ExplorerConfig,
        http_client: Optional[JsonHttpClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.config = config
        self.request_factory = ExplorerRequestFactory(api_url=config.api_url, api_key=config.api_key)
        self._client = http_client or JsonHttpClient(name=f"explorer {self.hostname()}")
        self._rate_limiter = rate_limiter or default_rate_limiter()

    @property
    def capabilities(self) -> FrozenSet[ProviderMethod]:
        return EXPLORER_CAPABILITIES

    @property
    def label(self) -> str:
        return self.request_factory.base_url

    def hostname(self) -> str:
        return urlparse(self.request_factory.base_url).hostname or ""

    def is_community_resource(self) -> bool:
        return not self.request_factory.api_key

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, module: str, params: Dict[str, Any]) -> Any:
        spec = self.request_factory.build_request(module, params)
        if not self.is_community_resource():
            payload = await self._client.request(spec)
        else:
            async with self._rate_limiter.turn(spec.hostname()):
                payload = await self._client.request(spec)
        return _parse_explorer_response(payload, module)

    async def perform(self, method: MethodLike, params: Params = None) -> Any:
        method = coerce_method(method)
        logger.debug(f"ExplorerSource {self.label} performing {method.value}")
        if method not in self.capabilities:
            raise UnsupportedMethod(method, f"explorer {self.label}")
        module, query = explorer_query_for(method, params)
        raw = await self.fetch(module, query)
        return format_result(method, raw)


__all__ = ["EXPLORER_CAPABILITIES", "ExplorerSource"]
