from __future__ import annotations

import argparse
import asyncio
import json
import os
import subprocess
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from piscan.composition import build_resolver
from piscan.config import get_config, load_config, repo_root
from piscan.core.exceptions import InvalidIdentifier, ProviderMisconfigured
from piscan.core.logging import get_logger, setup_logging
from piscan.messages.checkpoints import fetch_latest_nonce
from piscan.messages.delivery import check_is_message_delivered, fetch_delivery_status
from piscan.messages.identifiers import QueryType
from piscan.messages.resolver import MessageQuery

logger = get_logger(__name__)


def _block_arg(value: str) -> Any:
    text = value.strip().lower()
    if text in ("latest", "earliest"):
        return text
    try:
        return int(text, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid block: {value}") from exc


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=False))


def _print_table(messages: List[Dict[str, Any]]) -> None:
    table = Table(title=f"Messages ({len(messages)})")
    table.add_column("Nonce", justify="right")
    table.add_column("Msg id")
    table.add_column("Route")
    table.add_column("Origin tx")
    table.add_column("Block", justify="right")
    table.add_column("Payments", justify="right")
    for message in messages:
        origin = message.get("origin") or {}
        table.add_row(
            str(message.get("nonce")),
            message.get("msgId", ""),
            f"{message.get('originDomainId')} -> {message.get('destinationDomainId')}",
            origin.get("hash", ""),
            str(origin.get("blockNumber", "")),
            str(message.get("numPayments") or 0),
        )
    Console().print(table)


async def cmd_search(cfg: Dict[str, Any], args: argparse.Namespace) -> List[Dict[str, Any]]:
    resolver = build_resolver(cfg)
    query = MessageQuery(input=args.input, from_block=args.from_block, to_block=args.to_block)
    try:
        messages = await resolver.search(
            query,
            chains=args.chain or None,
            query_type=args.type,
            first_match=not args.all,
        )
    finally:
        await resolver.registry.aclose()
    return [message.model_dump(mode="json", by_alias=True) for message in messages]


async def cmd_delivery(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    resolver = build_resolver(cfg)
    registry = resolver.registry
    block_range = (cfg.get("delivery") or {}).get("block_range")
    try:
        if args.chain:
            check = await check_is_message_delivered(registry, args.msg_id, args.chain, block_range=block_range)
            return {
                "msgId": args.msg_id,
                "isDelivered": check.is_delivered,
                "transactionHash": check.transaction_hash,
                "blockNumber": check.block_number,
            }
        message = await resolver.find_message(args.msg_id, chains=args.origin or None)
        if message is None:
            return {"msgId": args.msg_id, "status": "not-found"}
        result = await fetch_delivery_status(registry, message, block_range=block_range)
        return {"msgId": message.msg_id, **result.model_dump(mode="json", by_alias=True)}
    finally:
        await registry.aclose()


async def cmd_latest_nonce(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    resolver = build_resolver(cfg)
    try:
        chain = resolver.registry.get_chain_metadata(args.chain)
    finally:
        await resolver.registry.aclose()
    nonce = await fetch_latest_nonce(chain, environment=args.environment)
    return {"chain": chain.name, "nonce": nonce}


def cmd_mock_node(cfg: Dict[str, Any], host: Optional[str], port: Optional[int]) -> int:
    node_cfg = cfg.get("mock_node") or {}
    host = host or node_cfg.get("host", "127.0.0.1")
    port = port or int(node_cfg.get("port", 8545))
    root = repo_root()
    env = os.environ.copy()
    env["PYTHONPATH"] = f"{root}{os.pathsep}{env.get('PYTHONPATH', '')}"
    logger.info(f"Starting mock chain node on http://{host}:{port}")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "mock_api.server:app", "--host", host, "--port", str(port)],
        cwd=str(root),
        env=env,
    )
    try:
        return proc.wait()
    except KeyboardInterrupt:
        proc.terminate()
        return proc.wait(timeout=5)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="piscan", description="Cross-chain message lookup over RPC and explorer APIs")
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML config file")
    parser.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Find messages by tx hash, message id or address")
    search.add_argument("input", help="0x-prefixed tx hash, message id or address")
    search.add_argument("--chain", action="append", default=[], help="Chain to search (repeatable)")
    search.add_argument("--type", choices=[item.value for item in QueryType], default=None, help="Force the query type")
    search.add_argument("--from-block", type=_block_arg, default=None)
    search.add_argument("--to-block", type=_block_arg, default=None)
    search.add_argument("--all", action="store_true", help="Search every chain instead of stopping at the first match")
    search.add_argument("--table", action="store_true", help="Print a summary table instead of JSON")

    delivery = sub.add_parser("delivery", help="Check whether a message was delivered")
    delivery.add_argument("msg_id", help="0x-prefixed message id")
    delivery.add_argument("--chain", default=None, help="Destination chain; skips the origin lookup")
    delivery.add_argument("--origin", action="append", default=[], help="Origin chain to search (repeatable)")

    nonce = sub.add_parser("latest-nonce", help="Latest validator checkpoint index for a chain")
    nonce.add_argument("--chain", required=True)
    nonce.add_argument("--environment", default=None, help="Deployment environment name for the bucket")

    node = sub.add_parser("mock-node", help="Run the local mock chain node")
    node.add_argument("--host", default=None)
    node.add_argument("--port", type=int, default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    cfg = load_config(args.config) if args.config else get_config(refresh=True)
    log_cfg = cfg.get("logging") or {}
    setup_logging(
        level=str(args.log_level or log_cfg.get("level", "INFO")).upper(),
        log_file=log_cfg.get("file"),
        json_format=args.json_logs or bool(log_cfg.get("json", False)),
    )

    if args.command == "mock-node":
        return cmd_mock_node(cfg, args.host, args.port)

    try:
        if args.command == "search":
            messages = asyncio.run(cmd_search(cfg, args))
            if args.table:
                _print_table(messages)
            else:
                _emit(messages)
        elif args.command == "delivery":
            _emit(asyncio.run(cmd_delivery(cfg, args)))
        elif args.command == "latest-nonce":
            _emit(asyncio.run(cmd_latest_nonce(cfg, args)))
    except (InvalidIdentifier, ProviderMisconfigured) as exc:
        logger.error(str(exc))
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
