"""
Capability-routed provider over several backends for one chain.

Candidates are tried one at a time, explorers first and then RPC nodes, each
in configuration order. A candidate succeeds only when it returns a non-None
result without raising. Individual failures are logged and collected; only
exhaustion of every candidate reaches the caller, as AllProvidersFailed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Union

import httpx

from piscan.core.encoding import BlockTag
from piscan.core.exceptions import AllProvidersFailed, NoSourceConfigured, SourceFailure, UnsupportedMethod
from piscan.core.logging import get_logger
from piscan.data.chain_source import ChainDataSource, MethodLike, Params, ProviderMethod, coerce_method
from piscan.data.chain_types import (
    EXPLORER_FAMILY_ETHERSCAN,
    Block,
    ChainMetadata,
    ChainNetwork,
    Log,
    LogFilter,
    Transaction,
    TransactionReceipt,
)
from piscan.data.explorer.provider import ExplorerSource
from piscan.data.http_client import HttpSettings
from piscan.data.rate_limiter import RateLimiter
from piscan.data.rpc.provider import JsonRpcSource

logger = get_logger(__name__)


class EmptyResult(RuntimeError):
    pass


@dataclass
class SourceStats:
    label: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    last_error: Optional[str] = None


class MultiSourceProvider:
    def __init__(
        self,
        network: ChainNetwork,
        explorer_sources: Sequence[ChainDataSource] = (),
        rpc_sources: Sequence[ChainDataSource] = (),
    ) -> None:
        self.network = network
        self.explorer_sources: List[ChainDataSource] = list(explorer_sources)
        self.rpc_sources: List[ChainDataSource] = list(rpc_sources)
        if not self.explorer_sources and not self.rpc_sources:
            raise NoSourceConfigured(network.name)
        supported: set = set()
        for source in self.sources:
            supported.update(source.capabilities)
        self.supported_methods: FrozenSet[ProviderMethod] = frozenset(supported)
        self.stats: Dict[int, SourceStats] = {id(source): SourceStats(label=source.label) for source in self.sources}

    @classmethod
    def from_chain_metadata(
        cls,
        chain: ChainMetadata,
        http_settings: Optional[HttpSettings] = None,
        async_client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> "MultiSourceProvider":
        settings = http_settings or HttpSettings()
        explorers: List[ChainDataSource] = []
        for explorer_config in chain.block_explorers:
            family = (explorer_config.family or EXPLORER_FAMILY_ETHERSCAN).lower()
            if family != EXPLORER_FAMILY_ETHERSCAN:
                logger.debug(f"Skipping {family} explorer {explorer_config.api_url} for chain {chain.name}")
                continue
            client = settings.build_client(f"explorer {explorer_config.api_url}", async_client)
            explorers.append(ExplorerSource(explorer_config, http_client=client, rate_limiter=rate_limiter))
        rpcs: List[ChainDataSource] = [
            JsonRpcSource(rpc_config, http_client=settings.build_client(f"rpc {rpc_config.http}", async_client))
            for rpc_config in chain.rpc_urls
            if rpc_config.http
        ]
        return cls(ChainNetwork(name=chain.name, chain_id=chain.chain_id), explorers, rpcs)

    @property
    def sources(self) -> List[ChainDataSource]:
        return [*self.explorer_sources, *self.rpc_sources]

    def get_network(self) -> ChainNetwork:
        # Static from configuration, never queried from a backend
        return self.network

    def supports(self, method: MethodLike) -> bool:
        try:
            return coerce_method(method) in self.supported_methods
        except UnsupportedMethod:
            return False

    def failed_request_count(self) -> int:
        return sum(stats.failed_requests for stats in self.stats.values())

    async def perform(self, method: MethodLike, params: Params = None) -> Any:
        method = coerce_method(method)
        if method not in self.supported_methods:
            raise UnsupportedMethod(method, f"no source for chain {self.network.name}")

        candidates = [source for source in self.sources if method in source.capabilities]
        failures: List[SourceFailure] = []
        for source in candidates:
            stats = self.stats[id(source)]
            stats.total_requests += 1
            try:
                result = await source.perform(method, params)
                if result is None:
                    raise EmptyResult(f"Empty result for {method.value}")
            except Exception as exc:
                stats.failed_requests += 1
                stats.last_error = str(exc)
                failures.append(SourceFailure(source=source.label, error=exc))
                logger.warning(
                    f"Provider {source.label} failed {method.value} on {self.network.name}, trying next",
                    extra={"context": {"chain": self.network.name, "method": method.value, "error": repr(exc)}},
                )
                continue
            stats.successful_requests += 1
            return result

        raise AllProvidersFailed(method.value, failures)

    async def aclose(self) -> None:
        for source in self.sources:
            closer = getattr(source, "aclose", None)
            if closer is not None:
                await closer()

    async def get_block_number(self) -> int:
        return await self.perform(ProviderMethod.GET_BLOCK_NUMBER)

    async def get_block(self, block_tag: BlockTag = "latest") -> Block:
        return await self.perform(ProviderMethod.GET_BLOCK, {"block_tag": block_tag})

    async def get_transaction(self, transaction_hash: str) -> Transaction:
        return await self.perform(ProviderMethod.GET_TRANSACTION, {"transaction_hash": transaction_hash})

    async def get_transaction_receipt(self, transaction_hash: str) -> TransactionReceipt:
        return await self.perform(ProviderMethod.GET_TRANSACTION_RECEIPT, {"transaction_hash": transaction_hash})

    async def get_logs(self, log_filter: Union[LogFilter, Dict[str, Any]]) -> List[Log]:
        return await self.perform(ProviderMethod.GET_LOGS, {"filter": log_filter})

    async def call(self, transaction: Dict[str, Any], block_tag: BlockTag = "latest") -> str:
        return await self.perform(ProviderMethod.CALL, {"transaction": transaction, "block_tag": block_tag})


__all__ = ["EmptyResult", "MultiSourceProvider", "SourceStats"]
