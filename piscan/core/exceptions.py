from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence


class ProviderMisconfigured(RuntimeError):
    pass


class NoSourceConfigured(ProviderMisconfigured):
    def __init__(self, chain: str) -> None:
        super().__init__(f"No RPC or explorer sources configured for chain {chain}")
        self.chain = chain


class UnsupportedMethod(RuntimeError):
    def __init__(self, method: Any, context: str = "") -> None:
        message = f"Unsupported method {method}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)
        self.method = method


@dataclass(frozen=True)
class SourceFailure:
    source: str
    error: BaseException

    def describe(self) -> str:
        return f"{self.source}: {type(self.error).__name__}: {self.error}"


class AllProvidersFailed(RuntimeError):
    def __init__(self, method: Any, failures: Optional[Sequence[SourceFailure]] = None) -> None:
        self.method = method
        self.failures: List[SourceFailure] = list(failures or [])
        super().__init__(f"All providers failed for method {method} ({len(self.failures)} attempted)")


class InvalidBlockRange(ValueError):
    pass


class DecodeError(ValueError):
    pass


class InvalidIdentifier(ValueError):
    pass


class UpstreamError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamRateLimited(UpstreamError):
    pass


class UpstreamBadResponse(UpstreamError):
    pass


class JsonRpcError(UpstreamBadResponse):
    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class CircuitBreakerOpen(UpstreamError):
    pass


__all__ = [
    "AllProvidersFailed",
    "CircuitBreakerOpen",
    "DecodeError",
    "InvalidBlockRange",
    "InvalidIdentifier",
    "JsonRpcError",
    "NoSourceConfigured",
    "ProviderMisconfigured",
    "SourceFailure",
    "UnsupportedMethod",
    "UpstreamBadResponse",
    "UpstreamError",
    "UpstreamRateLimited",
]
