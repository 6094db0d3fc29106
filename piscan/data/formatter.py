"""Normalization of raw backend payloads into the types callers receive.

Param conventions shared by every source (keys of the ``params`` dict):

- ``block_tag``: int, hex quantity or named tag (get-block, balance, code,
  storage, transaction count, call)
- ``block_hash``: 32-byte hash (get-block by hash)
- ``address`` / ``position``: account and storage slot
- ``transaction_hash``: get-transaction, get-transaction-receipt
- ``filter``: ``LogFilter`` or a dict accepted by it (get-logs)
- ``transaction``: call object (call, estimate-gas)
- ``signed_transaction``: raw signed hex (send-transaction)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from piscan.core.encoding import parse_quantity
from piscan.core.exceptions import UpstreamBadResponse
from piscan.data.chain_source import ProviderMethod
from piscan.data.chain_types import Block, Log, LogFilter, Transaction, TransactionReceipt

M = TypeVar("M", bound=BaseModel)

_QUANTITY_METHODS = {
    ProviderMethod.GET_BLOCK_NUMBER,
    ProviderMethod.GET_BALANCE,
    ProviderMethod.GET_GAS_PRICE,
    ProviderMethod.GET_TRANSACTION_COUNT,
    ProviderMethod.ESTIMATE_GAS,
}


def _validate(model: Type[M], payload: Any, context: str) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise UpstreamBadResponse(f"Invalid {context} payload") from exc


def filter_from_params(params: Optional[Dict[str, Any]]) -> Optional[LogFilter]:
    if not params:
        return None
    raw = params.get("filter")
    if raw is None or isinstance(raw, LogFilter):
        return raw
    return LogFilter.model_validate(raw)


def format_logs(payload: Any) -> List[Log]:
    if not isinstance(payload, list):
        raise UpstreamBadResponse("Expected a list of logs")
    return [_validate(Log, item, "log") for item in payload]


def format_result(method: ProviderMethod, payload: Any) -> Any:
    if payload is None:
        return None
    if method in _QUANTITY_METHODS:
        try:
            return parse_quantity(payload)
        except ValueError as exc:
            raise UpstreamBadResponse(f"Invalid quantity for {method.value}") from exc
    if method == ProviderMethod.GET_LOGS:
        return format_logs(payload)
    if method == ProviderMethod.GET_TRANSACTION_RECEIPT:
        return _validate(TransactionReceipt, payload, "receipt")
    if method == ProviderMethod.GET_TRANSACTION:
        return _validate(Transaction, payload, "transaction")
    if method == ProviderMethod.GET_BLOCK:
        return _validate(Block, payload, "block")
    if not isinstance(payload, str):
        raise UpstreamBadResponse(f"Expected hex string for {method.value}")
    return payload


__all__ = ["filter_from_params", "format_logs", "format_result"]
