from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional

from eth_utils import encode_hex
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mock_api.data_seed import block_for, generate_seed
from piscan.core.encoding import parse_quantity
from piscan.messages.mailbox import DELIVERED_SELECTOR

app = FastAPI()
seed = generate_seed()

app.state.seed = seed
app.state.metrics = Counter()
app.state.max_block_range = 1000
app.state.failing_methods = set()

_DELIVERED_SELECTOR = encode_hex(DELIVERED_SELECTOR)


def reset_metrics() -> None:
    app.state.metrics = Counter()
    app.state.max_block_range = 1000
    app.state.failing_methods = set()


def _block_number(tag: Any, latest: int) -> int:
    if tag in (None, "latest", "pending", "safe", "finalized"):
        return latest
    if tag == "earliest":
        return 0
    return parse_quantity(tag)


def _topic_matches(expected: Any, actual: Optional[str]) -> bool:
    if expected is None:
        return True
    if actual is None:
        return False
    if isinstance(expected, list):
        return any(_topic_matches(item, actual) for item in expected)
    return expected.lower() == actual.lower()


def _filter_logs(address: Optional[str], topics: List[Any], from_block: int, to_block: int) -> List[Dict[str, Any]]:
    matches: List[Dict[str, Any]] = []
    for log in seed["logs"]:
        number = int(log["blockNumber"], 16)
        if number < from_block or number > to_block:
            continue
        if address and log["address"].lower() != address.lower():
            continue
        log_topics = log["topics"]
        if any(
            not _topic_matches(expected, log_topics[index] if index < len(log_topics) else None)
            for index, expected in enumerate(topics)
        ):
            continue
        matches.append(log)
    return matches


def _delivered(data: str) -> str:
    if not data.lower().startswith(_DELIVERED_SELECTOR):
        raise ValueError("execution reverted")
    msg_id = "0x" + data[len(_DELIVERED_SELECTOR) :].lower()
    flag = 1 if msg_id in seed["delivered"] else 0
    return "0x" + format(flag, "064x")


class RpcFailure(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _dispatch(method: str, params: List[Any]) -> Any:
    latest = seed["latest_block"]
    if method == "eth_blockNumber":
        return hex(latest)
    if method == "eth_chainId":
        return hex(seed["chain_id"])
    if method == "eth_getLogs":
        log_filter = params[0] if params else {}
        from_block = _block_number(log_filter.get("fromBlock"), latest)
        to_block = _block_number(log_filter.get("toBlock"), latest)
        limit = app.state.max_block_range
        if limit and to_block - from_block + 1 > limit:
            raise RpcFailure(-32005, f"query exceeds max block range {limit}")
        return _filter_logs(log_filter.get("address"), log_filter.get("topics") or [], from_block, to_block)
    if method == "eth_getTransactionReceipt":
        return seed["receipts"].get(str(params[0]).lower())
    if method == "eth_getBlockByNumber":
        return block_for(_block_number(params[0], latest), latest)
    if method == "eth_call":
        call = params[0] if params else {}
        if str(call.get("to", "")).lower() != seed["mailbox"].lower():
            return "0x"
        try:
            return _delivered(str(call.get("data", "")))
        except ValueError as exc:
            raise RpcFailure(3, str(exc)) from exc
    raise RpcFailure(-32601, f"Method {method} not found")


@app.post("/rpc")
async def rpc(request: Request) -> JSONResponse:
    body = await request.json()
    method = body.get("method", "")
    app.state.metrics[f"rpc:{method}"] += 1
    if method in app.state.failing_methods:
        return JSONResponse(status_code=503, content={"error": "unavailable"})
    request_id = body.get("id", 1)
    try:
        result = _dispatch(method, body.get("params") or [])
    except RpcFailure as exc:
        return JSONResponse(
            content={"jsonrpc": "2.0", "id": request_id, "error": {"code": exc.code, "message": exc.message}}
        )
    return JSONResponse(content={"jsonrpc": "2.0", "id": request_id, "result": result})


def _explorer_logs(query: Dict[str, str]) -> Dict[str, Any]:
    latest = seed["latest_block"]
    topics: List[Optional[str]] = [query.get(f"topic{index}") for index in range(4)]
    while topics and topics[-1] is None:
        topics.pop()
    logs = _filter_logs(
        query.get("address"),
        topics,
        _block_number(query.get("fromBlock", "0"), latest),
        _block_number(query.get("toBlock", "latest"), latest),
    )
    if not logs:
        return {"status": "0", "message": "No records found", "result": []}
    return {"status": "1", "message": "OK", "result": logs}


@app.get("/api")
async def explorer(request: Request) -> Dict[str, Any]:
    query = dict(request.query_params)
    module = query.get("module", "")
    action = query.get("action", "")
    app.state.metrics[f"explorer:{module}.{action}"] += 1
    if f"explorer:{action}" in app.state.failing_methods:
        return {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}
    if module == "logs" and action == "getLogs":
        return _explorer_logs(query)
    if module == "proxy":
        params: List[Any]
        if action == "eth_getTransactionReceipt":
            params = [query.get("txhash")]
        elif action == "eth_getBlockByNumber":
            params = [query.get("tag", "latest"), query.get("boolean") == "true"]
        else:
            params = []
        try:
            result = _dispatch(action, params)
        except RpcFailure as exc:
            return {"jsonrpc": "2.0", "id": 1, "error": {"code": exc.code, "message": exc.message}}
        return {"jsonrpc": "2.0", "id": 1, "result": result}
    return {"status": "0", "message": "NOTOK", "result": f"Unknown module {module}"}
