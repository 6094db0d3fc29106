from __future__ import annotations

import asyncio
from typing import Any, FrozenSet, Iterator, List, Optional, Sequence, Tuple, TypeVar
from urllib.parse import urlparse

from pydantic import ValidationError

from piscan.core.encoding import is_numeric_block_tag, parse_quantity, to_quantity
from piscan.core.exceptions import InvalidBlockRange, JsonRpcError, UpstreamBadResponse
from piscan.core.logging import get_logger
from piscan.data.chain_source import ALL_PROVIDER_METHODS, MethodLike, Params, ProviderMethod, coerce_method
from piscan.data.chain_types import Log, LogFilter, RpcConfig
from piscan.data.formatter import filter_from_params, format_result
from piscan.data.http_client import JsonHttpClient
from piscan.data.rpc.request_factory import RpcRequestFactory, rpc_call_for
from piscan.data.rpc.schemas import RpcResponse

logger = get_logger(__name__)

# Assumed retention horizon: a node serves at most this many full range windows
NUM_LOG_BLOCK_RANGES_TO_QUERY = 10
NUM_PARALLEL_LOG_QUERIES = 5

T = TypeVar("T")


def block_range_chunks(start_block: int, end_block: int, max_block_range: Optional[int]) -> List[Tuple[int, int]]:
    """Split the inclusive range [start_block, end_block] into contiguous chunks."""
    chunk_size = max_block_range or (end_block - start_block + 1)
    chunks: List[Tuple[int, int]] = []
    for chunk_start in range(start_block, end_block + 1, chunk_size):
        chunks.append((chunk_start, min(chunk_start + chunk_size - 1, end_block)))
    return chunks


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for index in range(0, len(items), size):
        yield items[index : index + size]


def _parse_rpc_response(payload: Any) -> RpcResponse:
    if not isinstance(payload, dict):
        raise UpstreamBadResponse("JSON-RPC response is not an object")
    try:
        response = RpcResponse.model_validate(payload)
    except ValidationError as exc:
        raise UpstreamBadResponse("JSON-RPC response invalid") from exc
    if response.error is not None:
        raise JsonRpcError(f"RPC error: {response.error.message}", code=response.error.code)
    return response


class JsonRpcSource:
    def __init__(self, config: RpcConfig, http_client: Optional[JsonHttpClient] = None) -> None:
        self.config = config
        self.request_factory = RpcRequestFactory(config.http)
        host = urlparse(config.http).hostname or config.http
        self._client = http_client or JsonHttpClient(name=f"rpc {host}")
        self._request_id = 0

    @property
    def capabilities(self) -> FrozenSet[ProviderMethod]:
        return ALL_PROVIDER_METHODS

    @property
    def label(self) -> str:
        return self.config.http

    async def aclose(self) -> None:
        await self._client.aclose()

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def send(self, rpc_method: str, params: Optional[List[Any]] = None) -> Any:
        spec = self.request_factory.build_rpc_request(rpc_method, params=params, request_id=self._next_request_id())
        payload = await self._client.request(spec)
        return _parse_rpc_response(payload).result

    async def perform(self, method: MethodLike, params: Params = None) -> Any:
        method = coerce_method(method)
        logger.debug(f"JsonRpcSource {self.label} performing {method.value}")
        if method == ProviderMethod.GET_LOGS:
            return await self.perform_get_logs(params)
        return await self._perform_direct(method, params)

    async def _perform_direct(self, method: ProviderMethod, params: Params = None) -> Any:
        rpc_method, rpc_params = rpc_call_for(method, params)
        raw = await self.send(rpc_method, rpc_params)
        return format_result(method, raw)

    async def perform_get_logs(self, params: Params = None) -> Optional[List[Log]]:
        log_filter = filter_from_params(params)
        pagination = self.config.pagination
        if pagination is None or log_filter is None:
            return await self._perform_direct(ProviderMethod.GET_LOGS, params)

        max_block_range = pagination.max_block_range
        min_block_number = pagination.min_block_number
        if not max_block_range and min_block_number is None:
            return await self._perform_direct(ProviderMethod.GET_LOGS, params)

        to_block = log_filter.to_block
        if to_block is None or to_block == "latest":
            end_block = await self._perform_direct(ProviderMethod.GET_BLOCK_NUMBER)
        elif is_numeric_block_tag(to_block):
            end_block = parse_quantity(to_block)
        else:
            return await self._perform_direct(ProviderMethod.GET_LOGS, params)

        min_queryable = end_block - max_block_range * NUM_LOG_BLOCK_RANGES_TO_QUERY + 1 if max_block_range else 0

        from_block = log_filter.from_block
        if from_block == "earliest":
            start_block = 0
        elif from_block is None:
            start_block = max(min_queryable, min_block_number or 0)
        elif is_numeric_block_tag(from_block):
            start_block = parse_quantity(from_block)
        else:
            return await self._perform_direct(ProviderMethod.GET_LOGS, params)

        if start_block >= end_block:
            raise InvalidBlockRange(f"Invalid range {start_block} - {end_block}: start >= end")
        if min_block_number is not None and start_block < min_block_number:
            raise InvalidBlockRange(f"Invalid start {start_block}: below rpc minBlockNumber {min_block_number}")
        if start_block < min_queryable:
            raise InvalidBlockRange(f"Invalid range {start_block} - {end_block}: requires too many queries")

        chunks = block_range_chunks(start_block, end_block, max_block_range)
        logger.debug(f"Splitting getLogs {start_block}-{end_block} into {len(chunks)} chunk(s) for {self.label}")
        combined: List[Log] = []
        for batch in batched(chunks, NUM_PARALLEL_LOG_QUERIES):
            results = await asyncio.gather(*(self._fetch_log_chunk(log_filter, chunk) for chunk in batch))
            for logs in results:
                combined.extend(logs)
        return combined

    async def _fetch_log_chunk(self, log_filter: LogFilter, chunk: Tuple[int, int]) -> List[Log]:
        chunk_filter = log_filter.with_range(to_quantity(chunk[0]), to_quantity(chunk[1]))
        logs = await self._perform_direct(ProviderMethod.GET_LOGS, {"filter": chunk_filter})
        if logs is None:
            raise UpstreamBadResponse(f"Empty getLogs result for blocks {chunk[0]}-{chunk[1]}")
        return logs


__all__ = [
    "JsonRpcSource",
    "NUM_LOG_BLOCK_RANGES_TO_QUERY",
    "NUM_PARALLEL_LOG_QUERIES",
    "batched",
    "block_range_chunks",
]
