from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

from eth_utils import encode_hex, keccak, to_checksum_address

from piscan.messages.mailbox import (
    DISPATCH_ID_TOPIC,
    GAS_PAYMENT_TOPIC,
    PROCESS_ID_TOPIC,
    dispatch_log_topics,
    encode_dispatch_data,
    encode_gas_payment_data,
    format_message,
    message_id,
    uint_topic,
)

MOCK_CHAIN_ID = 31337
MOCK_DOMAIN_ID = 31337
REMOTE_DOMAIN_ID = 421614
LATEST_BLOCK = 5000
GENESIS_TIMESTAMP = 1_700_000_000
BLOCK_TIME_SEC = 12

MAILBOX = to_checksum_address("0x00000000000000000000000000000000000000aa")
IGP = to_checksum_address("0x00000000000000000000000000000000000000bb")
UNRELATED_CONTRACT = to_checksum_address("0x00000000000000000000000000000000000000cc")


def _hash(label: str) -> str:
    return encode_hex(keccak(text=label))


def _address(rng: random.Random) -> str:
    return to_checksum_address(encode_hex(bytes(rng.getrandbits(8) for _ in range(20))))


def block_timestamp(number: int) -> int:
    return GENESIS_TIMESTAMP + number * BLOCK_TIME_SEC


def _log(address: str, topics: List[str], data: str, tx_hash: str, block_number: int, log_index: int) -> Dict[str, Any]:
    return {
        "address": address,
        "topics": topics,
        "data": data,
        "blockNumber": hex(block_number),
        "blockHash": _hash(f"block-{block_number}"),
        "transactionHash": tx_hash,
        "transactionIndex": "0x0",
        "logIndex": hex(log_index),
        "removed": False,
    }


def _receipt(tx_hash: str, block_number: int, sender: str, logs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "transactionHash": tx_hash,
        "transactionIndex": "0x0",
        "blockNumber": hex(block_number),
        "blockHash": _hash(f"block-{block_number}"),
        "from": sender,
        "to": MAILBOX,
        "contractAddress": None,
        "status": "0x1",
        "gasUsed": hex(120_000),
        "cumulativeGasUsed": hex(120_000),
        "effectiveGasPrice": hex(1_000_000_000),
        "logs": logs,
    }


def _dispatch_tx(
    rng: random.Random,
    index: int,
    nonce: int,
    sender: str,
    recipient: str,
    destination: int,
    block_number: int,
    payments: List[int],
) -> Dict[str, Any]:
    tx_hash = _hash(f"dispatch-tx-{index}")
    body = encode_hex(f"hello {index}".encode())
    message = format_message(nonce, MOCK_DOMAIN_ID, sender, destination, recipient, body)
    msg_id = message_id(message)
    logs = [
        _log(UNRELATED_CONTRACT, [_hash("Transfer(address,address,uint256)")], "0x", tx_hash, block_number, 0),
        _log(MAILBOX, dispatch_log_topics(sender, destination, recipient), encode_dispatch_data(message), tx_hash, block_number, 1),
        _log(MAILBOX, [DISPATCH_ID_TOPIC, msg_id], "0x", tx_hash, block_number, 2),
    ]
    for offset, payment in enumerate(payments):
        logs.append(
            _log(
                IGP,
                [GAS_PAYMENT_TOPIC, msg_id, uint_topic(destination)],
                encode_gas_payment_data(50_000 + offset, payment),
                tx_hash,
                block_number,
                3 + offset,
            )
        )
    return {
        "tx_hash": tx_hash,
        "msg_id": msg_id,
        "message": message,
        "nonce": nonce,
        "sender": sender,
        "recipient": recipient,
        "destination": destination,
        "body": body,
        "block_number": block_number,
        "from": _address(rng),
        "logs": logs,
        "gas_payments": payments,
    }


def generate_seed(seed: int = 7) -> Dict[str, Any]:
    rng = random.Random(seed)
    alice = _address(rng)
    bob = _address(rng)
    carol = _address(rng)

    messages: List[Dict[str, Any]] = [
        _dispatch_tx(rng, 0, 0, alice, bob, REMOTE_DOMAIN_ID, 1200, [10_000]),
        _dispatch_tx(rng, 1, 1, alice, carol, REMOTE_DOMAIN_ID, 2450, [7_000, 3_000]),
        _dispatch_tx(rng, 2, 2, carol, alice, MOCK_DOMAIN_ID, 4100, []),
    ]

    logs: List[Dict[str, Any]] = []
    receipts: Dict[str, Dict[str, Any]] = {}
    for item in messages:
        logs.extend(item["logs"])
        receipts[item["tx_hash"].lower()] = _receipt(item["tx_hash"], item["block_number"], item["from"], item["logs"])

    # Dispatch with an undecodable payload, must be skipped by readers
    broken_tx = _hash("broken-dispatch-tx")
    broken = _log(MAILBOX, dispatch_log_topics(bob, REMOTE_DOMAIN_ID, alice), "0xdeadbeef", broken_tx, 3300, 0)
    logs.append(broken)
    receipts[broken_tx.lower()] = _receipt(broken_tx, 3300, _address(rng), [broken])

    # Message 2 targets this chain and was processed here
    delivered = messages[2]
    process_tx = _hash("process-tx-2")
    process_block = LATEST_BLOCK - 100
    process_log = _log(MAILBOX, [PROCESS_ID_TOPIC, delivered["msg_id"]], "0x", process_tx, process_block, 0)
    logs.append(process_log)
    receipts[process_tx.lower()] = _receipt(process_tx, process_block, _address(rng), [process_log])

    logs.sort(key=lambda entry: (int(entry["blockNumber"], 16), int(entry["logIndex"], 16)))
    return {
        "chain_id": MOCK_CHAIN_ID,
        "domain_id": MOCK_DOMAIN_ID,
        "latest_block": LATEST_BLOCK,
        "mailbox": MAILBOX,
        "igp": IGP,
        "accounts": {"alice": alice, "bob": bob, "carol": carol},
        "messages": messages,
        "logs": logs,
        "receipts": receipts,
        "delivered": {delivered["msg_id"]},
        "process_tx": process_tx,
    }


def block_for(number: int, latest: int) -> Optional[Dict[str, Any]]:
    if number < 0 or number > latest:
        return None
    return {
        "number": hex(number),
        "hash": _hash(f"block-{number}"),
        "parentHash": _hash(f"block-{number - 1}"),
        "timestamp": hex(block_timestamp(number)),
        "transactions": [],
    }


__all__ = [
    "IGP",
    "LATEST_BLOCK",
    "MAILBOX",
    "MOCK_CHAIN_ID",
    "MOCK_DOMAIN_ID",
    "REMOTE_DOMAIN_ID",
    "block_for",
    "block_timestamp",
    "generate_seed",
]
