from piscan.data.chain_source import ALL_PROVIDER_METHODS, ChainDataSource, ProviderMethod
from piscan.data.chain_types import ChainMetadata, ExplorerConfig, Log, LogFilter, RpcConfig, TransactionReceipt
from piscan.data.multi_provider import MultiSourceProvider
from piscan.data.rate_limiter import RateLimiter, default_rate_limiter
from piscan.data.registry import ProviderRegistry

__all__ = [
    "ALL_PROVIDER_METHODS",
    "ChainDataSource",
    "ChainMetadata",
    "ExplorerConfig",
    "Log",
    "LogFilter",
    "MultiSourceProvider",
    "ProviderMethod",
    "ProviderRegistry",
    "RateLimiter",
    "RpcConfig",
    "TransactionReceipt",
    "default_rate_limiter",
]
