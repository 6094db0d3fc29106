from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Protocol, Union

from piscan.core.exceptions import UnsupportedMethod


class ProviderMethod(str, Enum):
    CALL = "call"
    ESTIMATE_GAS = "estimateGas"
    GET_BALANCE = "getBalance"
    GET_BLOCK = "getBlock"
    GET_BLOCK_NUMBER = "getBlockNumber"
    GET_CODE = "getCode"
    GET_GAS_PRICE = "getGasPrice"
    GET_STORAGE_AT = "getStorageAt"
    GET_TRANSACTION = "getTransaction"
    GET_TRANSACTION_COUNT = "getTransactionCount"
    GET_TRANSACTION_RECEIPT = "getTransactionReceipt"
    GET_LOGS = "getLogs"
    SEND_TRANSACTION = "sendTransaction"


ALL_PROVIDER_METHODS: FrozenSet[ProviderMethod] = frozenset(ProviderMethod)

MethodLike = Union[ProviderMethod, str]
Params = Optional[Dict[str, Any]]


def exclude_methods(exclude: Iterable[ProviderMethod]) -> FrozenSet[ProviderMethod]:
    return ALL_PROVIDER_METHODS - frozenset(exclude)


def coerce_method(method: MethodLike) -> ProviderMethod:
    if isinstance(method, ProviderMethod):
        return method
    try:
        return ProviderMethod(method)
    except ValueError as exc:
        raise UnsupportedMethod(method, "unknown method") from exc


class ChainDataSource(Protocol):
    """A single backend able to serve some subset of provider methods.

    ``perform`` returns the normalized result, or ``None`` when the backend has
    no answer; callers treat ``None`` as a failure of that source.
    """

    @property
    def capabilities(self) -> FrozenSet[ProviderMethod]:
        ...

    @property
    def label(self) -> str:
        ...

    async def perform(self, method: MethodLike, params: Params = None) -> Any:
        ...


__all__ = [
    "ALL_PROVIDER_METHODS",
    "ChainDataSource",
    "MethodLike",
    "Params",
    "ProviderMethod",
    "coerce_method",
    "exclude_methods",
]
