from piscan.core.exceptions import (
    AllProvidersFailed,
    CircuitBreakerOpen,
    DecodeError,
    InvalidBlockRange,
    InvalidIdentifier,
    JsonRpcError,
    NoSourceConfigured,
    ProviderMisconfigured,
    SourceFailure,
    UnsupportedMethod,
    UpstreamBadResponse,
    UpstreamError,
    UpstreamRateLimited,
)
from piscan.core.logging import get_logger, setup_logging
from piscan.core.request_spec import JsonRpcSpec, RequestSpec

__all__ = [
    "AllProvidersFailed",
    "CircuitBreakerOpen",
    "DecodeError",
    "InvalidBlockRange",
    "InvalidIdentifier",
    "JsonRpcError",
    "JsonRpcSpec",
    "NoSourceConfigured",
    "ProviderMisconfigured",
    "RequestSpec",
    "SourceFailure",
    "UnsupportedMethod",
    "UpstreamBadResponse",
    "UpstreamError",
    "UpstreamRateLimited",
    "get_logger",
    "setup_logging",
]
