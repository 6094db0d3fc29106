from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from piscan.config import load_chain_metadata
from piscan.data.http_client import HttpSettings
from piscan.data.rate_limiter import THROTTLE_WINDOW_SEC, default_rate_limiter
from piscan.data.registry import ProviderRegistry
from piscan.messages.resolver import MessageResolver


def build_registry(config: Dict[str, Any], async_client: Optional[httpx.AsyncClient] = None) -> ProviderRegistry:
    explorer = config.get("explorer") or {}
    window = float(explorer.get("throttle_window_sec", THROTTLE_WINDOW_SEC))
    return ProviderRegistry(
        load_chain_metadata(config),
        http_settings=HttpSettings.from_config(config),
        async_client=async_client,
        rate_limiter=default_rate_limiter(window),
    )


def build_resolver(config: Dict[str, Any], async_client: Optional[httpx.AsyncClient] = None) -> MessageResolver:
    return MessageResolver.from_config(build_registry(config, async_client=async_client), config)


__all__ = ["build_registry", "build_resolver"]
