from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from piscan.core.encoding import is_hex_string, normalize_block_tag
from piscan.core.exceptions import UnsupportedMethod
from piscan.core.request_spec import JsonRpcSpec
from piscan.data.chain_source import ProviderMethod
from piscan.data.formatter import filter_from_params


def _require(params: Dict[str, Any], key: str, method: ProviderMethod) -> Any:
    value = params.get(key)
    if value is None:
        raise ValueError(f"{method.value} requires '{key}'")
    return value


def rpc_call_for(method: ProviderMethod, params: Optional[Dict[str, Any]] = None) -> Tuple[str, List[Any]]:
    """Translate a provider method and its params into a JSON-RPC method and params list."""
    params = params or {}
    tag = normalize_block_tag(params.get("block_tag"))
    if method == ProviderMethod.GET_BLOCK_NUMBER:
        return "eth_blockNumber", []
    if method == ProviderMethod.GET_GAS_PRICE:
        return "eth_gasPrice", []
    if method == ProviderMethod.GET_BALANCE:
        return "eth_getBalance", [_require(params, "address", method), tag]
    if method == ProviderMethod.GET_CODE:
        return "eth_getCode", [_require(params, "address", method), tag]
    if method == ProviderMethod.GET_TRANSACTION_COUNT:
        return "eth_getTransactionCount", [_require(params, "address", method), tag]
    if method == ProviderMethod.GET_STORAGE_AT:
        position = _require(params, "position", method)
        if isinstance(position, int):
            position = hex(position)
        return "eth_getStorageAt", [_require(params, "address", method), position, tag]
    if method == ProviderMethod.GET_BLOCK:
        include_txs = bool(params.get("include_transactions", False))
        block_hash = params.get("block_hash")
        if block_hash is not None:
            return "eth_getBlockByHash", [block_hash, include_txs]
        return "eth_getBlockByNumber", [tag, include_txs]
    if method == ProviderMethod.GET_TRANSACTION:
        return "eth_getTransactionByHash", [_require(params, "transaction_hash", method)]
    if method == ProviderMethod.GET_TRANSACTION_RECEIPT:
        return "eth_getTransactionReceipt", [_require(params, "transaction_hash", method)]
    if method == ProviderMethod.GET_LOGS:
        log_filter = filter_from_params(params)
        return "eth_getLogs", [log_filter.to_rpc() if log_filter else {}]
    if method == ProviderMethod.CALL:
        return "eth_call", [_require(params, "transaction", method), tag]
    if method == ProviderMethod.ESTIMATE_GAS:
        return "eth_estimateGas", [_require(params, "transaction", method)]
    if method == ProviderMethod.SEND_TRANSACTION:
        signed = _require(params, "signed_transaction", method)
        if not is_hex_string(signed):
            raise ValueError("signed_transaction must be a hex string")
        return "eth_sendRawTransaction", [signed]
    raise UnsupportedMethod(method)


class RpcRequestFactory:
    def __init__(self, rpc_url: str, headers: Optional[Dict[str, str]] = None) -> None:
        self.rpc_url = rpc_url.strip()
        self.headers = dict(headers or {})

    def build_rpc_request(self, method: str, params: Optional[list] = None, request_id: int = 1) -> JsonRpcSpec:
        body = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params or [],
        }
        return JsonRpcSpec(
            base_url=self.rpc_url,
            path="",
            headers={"Content-Type": "application/json", **self.headers},
            body=body,
        )

    def build_method_request(
        self, method: ProviderMethod, params: Optional[Dict[str, Any]] = None, request_id: int = 1
    ) -> JsonRpcSpec:
        rpc_method, rpc_params = rpc_call_for(method, params)
        return self.build_rpc_request(rpc_method, rpc_params, request_id=request_id)


__all__ = ["RpcRequestFactory", "rpc_call_for"]
