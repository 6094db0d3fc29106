from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from piscan.core.encoding import is_numeric_block_tag, normalize_block_tag, parse_quantity
from piscan.core.exceptions import UnsupportedMethod
from piscan.core.request_spec import RequestSpec
from piscan.data.chain_source import ProviderMethod
from piscan.data.chain_types import BlockTag, LogFilter
from piscan.data.formatter import filter_from_params


class ExplorerRequestError(ValueError):
    pass


def normalize_explorer_base(api_url: str) -> str:
    base = (api_url or "").strip().rstrip("/")
    if not base:
        raise ExplorerRequestError("Explorer config missing apiUrl")
    if base.endswith("/api"):
        base = base[: -len("/api")]
    return base


def _log_block_tag(tag: Optional[BlockTag]) -> Optional[str]:
    if tag is None:
        return None
    if tag == "latest":
        return "latest"
    if tag == "earliest":
        return "0"
    if is_numeric_block_tag(tag):
        return str(parse_quantity(tag))
    raise ExplorerRequestError(f"Unsupported log block tag for explorer: {tag!r}")


def _log_query(log_filter: Optional[LogFilter]) -> Dict[str, Any]:
    query: Dict[str, Any] = {"action": "getLogs"}
    if log_filter is None:
        return query
    query["fromBlock"] = _log_block_tag(log_filter.from_block)
    query["toBlock"] = _log_block_tag(log_filter.to_block)
    if log_filter.address:
        query["address"] = log_filter.address
    present: List[int] = []
    for index, topic in enumerate(log_filter.topics):
        if topic is None:
            continue
        if isinstance(topic, list):
            if len(topic) != 1:
                raise ExplorerRequestError("Explorer log queries do not support OR topics")
            topic = topic[0]
        query[f"topic{index}"] = topic.lower()
        present.append(index)
    for position, first in enumerate(present):
        for second in present[position + 1 :]:
            query[f"topic{first}_{second}_opr"] = "and"
    return query


def _require(params: Dict[str, Any], key: str, method: ProviderMethod) -> Any:
    value = params.get(key)
    if value is None:
        raise ExplorerRequestError(f"{method.value} requires '{key}'")
    return value


def explorer_query_for(method: ProviderMethod, params: Optional[Dict[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
    """Translate a provider method into an explorer module and query parameters."""
    params = params or {}
    tag = normalize_block_tag(params.get("block_tag"))
    if method == ProviderMethod.GET_BLOCK_NUMBER:
        return "proxy", {"action": "eth_blockNumber"}
    if method == ProviderMethod.GET_GAS_PRICE:
        return "proxy", {"action": "eth_gasPrice"}
    if method == ProviderMethod.GET_BALANCE:
        return "account", {"action": "balance", "address": _require(params, "address", method), "tag": tag}
    if method == ProviderMethod.GET_TRANSACTION_COUNT:
        return "proxy", {
            "action": "eth_getTransactionCount",
            "address": _require(params, "address", method),
            "tag": tag,
        }
    if method == ProviderMethod.GET_CODE:
        return "proxy", {"action": "eth_getCode", "address": _require(params, "address", method), "tag": tag}
    if method == ProviderMethod.GET_STORAGE_AT:
        position = _require(params, "position", method)
        if isinstance(position, int):
            position = hex(position)
        return "proxy", {
            "action": "eth_getStorageAt",
            "address": _require(params, "address", method),
            "position": position,
            "tag": tag,
        }
    if method == ProviderMethod.GET_BLOCK:
        if params.get("block_hash") is not None:
            raise ExplorerRequestError("Explorer cannot fetch blocks by hash")
        boolean = "true" if params.get("include_transactions") else "false"
        return "proxy", {"action": "eth_getBlockByNumber", "tag": tag, "boolean": boolean}
    if method == ProviderMethod.GET_TRANSACTION:
        return "proxy", {"action": "eth_getTransactionByHash", "txhash": _require(params, "transaction_hash", method)}
    if method == ProviderMethod.GET_TRANSACTION_RECEIPT:
        return "proxy", {
            "action": "eth_getTransactionReceipt",
            "txhash": _require(params, "transaction_hash", method),
        }
    if method == ProviderMethod.GET_LOGS:
        return "logs", _log_query(filter_from_params(params))
    raise UnsupportedMethod(method, "explorer")


class ExplorerRequestFactory:
    def __init__(self, api_url: str, api_key: Optional[str] = None) -> None:
        self.base_url = normalize_explorer_base(api_url)
        self.api_key = (api_key or "").strip()

    def build_request(self, module: str, params: Dict[str, Any]) -> RequestSpec:
        query: Dict[str, Any] = {key: value for key, value in params.items() if key and value is not None}
        query["module"] = module
        if self.api_key:
            query["apikey"] = self.api_key
        return RequestSpec(
            method="GET",
            base_url=self.base_url,
            path="/api",
            query=query,
            headers={},
        )

    def build_method_request(self, method: ProviderMethod, params: Optional[Dict[str, Any]] = None) -> RequestSpec:
        module, query = explorer_query_for(method, params)
        return self.build_request(module, query)


__all__ = [
    "ExplorerRequestError",
    "ExplorerRequestFactory",
    "explorer_query_for",
    "normalize_explorer_base",
]
