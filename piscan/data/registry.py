from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Union

import httpx

from piscan.core.exceptions import NoSourceConfigured, ProviderMisconfigured
from piscan.core.logging import get_logger
from piscan.data.chain_types import ChainMetadata
from piscan.data.http_client import HttpSettings
from piscan.data.multi_provider import MultiSourceProvider
from piscan.data.rate_limiter import RateLimiter, default_rate_limiter

logger = get_logger(__name__)

ChainRef = Union[str, int]


class ProviderRegistry:
    """Chain metadata lookup plus one lazily built, cached provider per chain.

    Providers are never torn down individually; ``aclose`` releases the HTTP
    resources of everything built so far.
    """

    def __init__(
        self,
        chains: Union[Mapping[str, ChainMetadata], Iterable[ChainMetadata]],
        http_settings: Optional[HttpSettings] = None,
        async_client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        values = chains.values() if isinstance(chains, Mapping) else chains
        self._chains: Dict[str, ChainMetadata] = {chain.name: chain for chain in values}
        self.http_settings = http_settings or HttpSettings()
        self.rate_limiter = rate_limiter or default_rate_limiter()
        self._async_client = async_client
        self._owns_client = async_client is None
        self._providers: Dict[str, MultiSourceProvider] = {}

    async def __aenter__(self) -> "ProviderRegistry":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def chains(self) -> List[ChainMetadata]:
        return list(self._chains.values())

    def try_get_chain_metadata(self, ref: ChainRef) -> Optional[ChainMetadata]:
        if isinstance(ref, str) and ref in self._chains:
            return self._chains[ref]
        if isinstance(ref, str) and ref.isdigit():
            ref = int(ref)
        if isinstance(ref, int):
            for chain in self._chains.values():
                if chain.domain_id == ref:
                    return chain
            for chain in self._chains.values():
                if chain.chain_id == ref:
                    return chain
        return None

    def get_chain_metadata(self, ref: ChainRef) -> ChainMetadata:
        chain = self.try_get_chain_metadata(ref)
        if chain is None:
            raise ProviderMisconfigured(f"No chain metadata found for {ref}")
        return chain

    def try_get_chain_id(self, domain_id: int) -> Optional[int]:
        chain = self.try_get_chain_metadata(domain_id)
        return chain.chain_id if chain else None

    def _shared_client(self) -> httpx.AsyncClient:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(timeout=self.http_settings.timeout)
        return self._async_client

    def try_get_provider(self, ref: ChainRef) -> Optional[MultiSourceProvider]:
        chain = self.try_get_chain_metadata(ref)
        if chain is None:
            return None
        provider = self._providers.get(chain.name)
        if provider is not None:
            return provider
        try:
            provider = MultiSourceProvider.from_chain_metadata(
                chain,
                http_settings=self.http_settings,
                async_client=self._shared_client(),
                rate_limiter=self.rate_limiter,
            )
        except NoSourceConfigured:
            logger.debug(f"No usable sources for chain {chain.name}")
            return None
        logger.debug(f"Built provider for chain {chain.name} with {len(provider.sources)} source(s)")
        self._providers[chain.name] = provider
        return provider

    def get_provider(self, ref: ChainRef) -> MultiSourceProvider:
        provider = self.try_get_provider(ref)
        if provider is None:
            chain = self.try_get_chain_metadata(ref)
            raise NoSourceConfigured(chain.name if chain else str(ref))
        return provider

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        if self._owns_client and self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None


__all__ = ["ChainRef", "ProviderRegistry"]
