from __future__ import annotations

import re
from typing import Any, Optional, Union

from eth_utils import add_0x_prefix, decode_hex, is_hexstr, remove_0x_prefix, to_checksum_address

BlockTag = Union[int, str]

NAMED_BLOCK_TAGS = {"latest", "earliest", "pending", "safe", "finalized"}

_HEX_BODY = re.compile(r"^[0-9a-fA-F]*$")


def ensure_0x(value: str) -> str:
    return add_0x_prefix(value)


def strip_0x(value: str) -> str:
    return remove_0x_prefix(value)


def is_hex_string(value: Any, byte_length: Optional[int] = None) -> bool:
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        return False
    body = value[2:]
    if not _HEX_BODY.match(body):
        return False
    if byte_length is not None:
        return len(body) == byte_length * 2
    return True


def parse_quantity(value: Any) -> int:
    """Parse an RPC quantity (hex string, decimal string or int) into an int."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text in ("0x", "0X", ""):
            return 0
        if text.startswith(("0x", "0X")):
            return int(text, 16)
        return int(text, 10)
    raise ValueError(f"Invalid quantity: {value!r}")


def to_quantity(value: int) -> str:
    return hex(int(value))


def is_numeric_block_tag(tag: Any) -> bool:
    if isinstance(tag, bool):
        return False
    if isinstance(tag, int):
        return True
    if isinstance(tag, str):
        if is_hex_string(tag) and len(tag) <= 18:
            return True
        return tag.isdigit()
    return False


def normalize_block_tag(tag: Optional[BlockTag]) -> str:
    if tag is None:
        return "latest"
    if isinstance(tag, str) and tag in NAMED_BLOCK_TAGS:
        return tag
    if isinstance(tag, str) and is_hex_string(tag, 32):
        return tag
    if is_numeric_block_tag(tag):
        return to_quantity(parse_quantity(tag))
    raise ValueError(f"Invalid block tag: {tag!r}")


def address_to_bytes32(address: str) -> str:
    body = strip_0x(address).lower()
    if len(body) != 40 or not is_hexstr(address):
        raise ValueError(f"Invalid address: {address!r}")
    return "0x" + body.rjust(64, "0")


def bytes32_to_address(value: Union[str, bytes]) -> str:
    raw = decode_hex(value) if isinstance(value, str) else bytes(value)
    if len(raw) != 32:
        raise ValueError("Expected 32 bytes")
    return to_checksum_address(raw[12:])


__all__ = [
    "BlockTag",
    "NAMED_BLOCK_TAGS",
    "address_to_bytes32",
    "bytes32_to_address",
    "ensure_0x",
    "is_hex_string",
    "is_numeric_block_tag",
    "normalize_block_tag",
    "parse_quantity",
    "strip_0x",
    "to_quantity",
]
