from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from piscan.core.encoding import parse_quantity
from piscan.core.exceptions import UpstreamBadResponse, UpstreamError
from piscan.core.logging import get_logger
from piscan.data.chain_types import ChainMetadata

logger = get_logger(__name__)

LATEST_NONCE_TIMEOUT_SEC = 3.0
MAINNET_ENVIRONMENT = "mainnet3"
TESTNET_ENVIRONMENT = "testnet4"


def checkpoint_bucket_url(chain: ChainMetadata, environment: Optional[str] = None) -> str:
    env = environment or (TESTNET_ENVIRONMENT if chain.is_testnet else MAINNET_ENVIRONMENT)
    bucket = f"hyperlane-{env}-{chain.name}-validator-0"
    return f"https://{bucket}.s3.us-east-1.amazonaws.com/checkpoint_latest_index.json"


async def fetch_latest_nonce(
    chain: ChainMetadata,
    environment: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = LATEST_NONCE_TIMEOUT_SEC,
    url: Optional[str] = None,
) -> int:
    """Read the latest signed checkpoint index of the chain's first validator."""
    url = url or checkpoint_bucket_url(chain, environment)
    logger.debug(f"Querying bucket: {url}")
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await asyncio.wait_for(http.get(url), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise UpstreamError(f"Timed out after {timeout}s fetching {url}") from exc
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Request to {url} failed: {exc}") from exc
    finally:
        if owns_client:
            await http.aclose()

    if response.status_code != 200:
        raise UpstreamError(f"Checkpoint index unavailable for {chain.name}", status_code=response.status_code)
    text = response.text.strip().strip('"')
    try:
        nonce = parse_quantity(text)
    except ValueError as exc:
        raise UpstreamBadResponse(f"Invalid checkpoint index: {text[:64]!r}") from exc
    logger.debug(f"Found nonce {nonce} for {chain.name}")
    return nonce


__all__ = ["LATEST_NONCE_TIMEOUT_SEC", "checkpoint_bucket_url", "fetch_latest_nonce"]
