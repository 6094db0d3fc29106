"""
Mailbox and gas paymaster event codec.

Message layout, packed: version (1) | nonce (4) | origin (4) | sender (32) |
destination (4) | recipient (32) | body. The message id is keccak256 of the
packed bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from eth_abi import decode, encode
from eth_utils import decode_hex, encode_hex, function_signature_to_4byte_selector, keccak

from piscan.core.encoding import address_to_bytes32, bytes32_to_address, is_hex_string
from piscan.core.exceptions import DecodeError
from piscan.core.logging import get_logger
from piscan.data.chain_types import Log
from piscan.messages.types import DispatchRecord

logger = get_logger(__name__)

MESSAGE_HEADER_LENGTH = 77
DEFAULT_MESSAGE_VERSION = 3


def event_topic(signature: str) -> str:
    return encode_hex(keccak(text=signature))


DISPATCH_TOPIC = event_topic("Dispatch(address,uint32,bytes32,bytes)")
DISPATCH_ID_TOPIC = event_topic("DispatchId(bytes32)")
PROCESS_ID_TOPIC = event_topic("ProcessId(bytes32)")
GAS_PAYMENT_TOPIC = event_topic("GasPayment(bytes32,uint32,uint256,uint256)")

DELIVERED_SELECTOR = function_signature_to_4byte_selector("delivered(bytes32)")

Hexish = Union[str, bytes]


@dataclass(frozen=True)
class ParsedMessage:
    version: int
    nonce: int
    origin: int
    sender: bytes
    destination: int
    recipient: bytes
    body: bytes


def _to_bytes(value: Hexish) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return decode_hex(value)
    except (ValueError, TypeError) as exc:
        raise DecodeError(f"Invalid hex payload: {value!r}") from exc


def _to_bytes32(value: Hexish) -> bytes:
    if isinstance(value, str) and is_hex_string(value, 20):
        value = address_to_bytes32(value)
    raw = _to_bytes(value)
    if len(raw) > 32:
        raise DecodeError("Value longer than 32 bytes")
    return raw.rjust(32, b"\x00")


def uint_topic(value: int) -> str:
    return encode_hex(int(value).to_bytes(32, "big"))


def format_message(
    nonce: int,
    origin: int,
    sender: Hexish,
    destination: int,
    recipient: Hexish,
    body: Hexish = b"",
    version: int = DEFAULT_MESSAGE_VERSION,
) -> str:
    packed = (
        int(version).to_bytes(1, "big")
        + int(nonce).to_bytes(4, "big")
        + int(origin).to_bytes(4, "big")
        + _to_bytes32(sender)
        + int(destination).to_bytes(4, "big")
        + _to_bytes32(recipient)
        + _to_bytes(body)
    )
    return encode_hex(packed)


def parse_message(message: Hexish) -> ParsedMessage:
    raw = _to_bytes(message)
    if len(raw) < MESSAGE_HEADER_LENGTH:
        raise DecodeError(f"Message too short: {len(raw)} bytes")
    return ParsedMessage(
        version=raw[0],
        nonce=int.from_bytes(raw[1:5], "big"),
        origin=int.from_bytes(raw[5:9], "big"),
        sender=raw[9:41],
        destination=int.from_bytes(raw[41:45], "big"),
        recipient=raw[45:77],
        body=raw[77:],
    )


def message_id(message: Hexish) -> str:
    return encode_hex(keccak(_to_bytes(message)))


def dispatch_log_topics(sender: str, destination: int, recipient: Hexish) -> List[str]:
    return [DISPATCH_TOPIC, address_to_bytes32(sender), uint_topic(destination), encode_hex(_to_bytes32(recipient))]


def encode_dispatch_data(message: Hexish) -> str:
    return encode_hex(encode(["bytes"], [_to_bytes(message)]))


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left) and bool(right) and left.lower() == right.lower()


def is_dispatch_log(log: Log, mailbox: Optional[str] = None) -> bool:
    if log.topic0 != DISPATCH_TOPIC:
        return False
    return mailbox is None or _same_address(log.address, mailbox)


def decode_dispatch_log(log: Log) -> DispatchRecord:
    if log.topic0 != DISPATCH_TOPIC:
        raise DecodeError(f"Not a Dispatch log: {log.topic0}")
    if len(log.topics) != 4:
        raise DecodeError(f"Dispatch log has {len(log.topics)} topics, expected 4")
    try:
        (message,) = decode(["bytes"], _to_bytes(log.data))
    except Exception as exc:
        raise DecodeError(f"Undecodable Dispatch payload in {log.transaction_hash}") from exc

    parsed = parse_message(message)
    if int(log.topics[2], 16) != parsed.destination:
        raise DecodeError("Dispatch destination topic does not match message")

    return DispatchRecord(
        version=parsed.version,
        nonce=parsed.nonce,
        origin_domain=parsed.origin,
        sender=bytes32_to_address(parsed.sender),
        destination_domain=parsed.destination,
        recipient=bytes32_to_address(parsed.recipient),
        body=encode_hex(parsed.body),
        message_id=message_id(message),
        transaction_hash=log.transaction_hash,
        block_number=log.block_number,
        log_index=log.log_index,
        mailbox=log.address,
    )


def decode_dispatch_logs(logs: Iterable[Log], mailbox: Optional[str] = None) -> List[DispatchRecord]:
    records: List[DispatchRecord] = []
    for log in logs:
        if not is_dispatch_log(log, mailbox):
            continue
        try:
            records.append(decode_dispatch_log(log))
        except DecodeError as exc:
            logger.debug(f"Dropping malformed Dispatch log in {log.transaction_hash}: {exc}")
    return records


def encode_delivered_call(msg_id: Hexish) -> str:
    return encode_hex(DELIVERED_SELECTOR + encode(["bytes32"], [_to_bytes32(msg_id)]))


def decode_bool_result(result: Hexish) -> bool:
    try:
        (value,) = decode(["bool"], _to_bytes(result))
    except Exception as exc:
        raise DecodeError(f"Not an ABI bool: {result!r}") from exc
    return bool(value)


def encode_gas_payment_data(gas_amount: int, payment: int) -> str:
    return encode_hex(encode(["uint256", "uint256"], [gas_amount, payment]))


def decode_gas_payment_log(log: Log) -> Tuple[int, int]:
    if log.topic0 != GAS_PAYMENT_TOPIC:
        raise DecodeError(f"Not a GasPayment log: {log.topic0}")
    try:
        gas_amount, payment = decode(["uint256", "uint256"], _to_bytes(log.data))
    except Exception as exc:
        raise DecodeError(f"Undecodable GasPayment payload in {log.transaction_hash}") from exc
    return gas_amount, payment


__all__ = [
    "DELIVERED_SELECTOR",
    "DISPATCH_ID_TOPIC",
    "DISPATCH_TOPIC",
    "GAS_PAYMENT_TOPIC",
    "MESSAGE_HEADER_LENGTH",
    "PROCESS_ID_TOPIC",
    "ParsedMessage",
    "decode_bool_result",
    "decode_dispatch_log",
    "decode_dispatch_logs",
    "decode_gas_payment_log",
    "dispatch_log_topics",
    "encode_delivered_call",
    "encode_dispatch_data",
    "encode_gas_payment_data",
    "event_topic",
    "format_message",
    "is_dispatch_log",
    "message_id",
    "parse_message",
    "uint_topic",
]
