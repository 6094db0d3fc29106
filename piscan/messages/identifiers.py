from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from piscan.core.encoding import ensure_0x, is_hex_string
from piscan.core.exceptions import InvalidIdentifier

ADDRESS_BYTES = 20
HASH_BYTES = 32


class QueryType(str, Enum):
    ADDRESS = "address"
    TX_HASH = "tx-hash"
    MESSAGE_ID = "msg-id"


@dataclass(frozen=True)
class Identifier:
    """A validated search input and the interpretations to try, in order."""

    value: str
    interpretations: Tuple[QueryType, ...]

    @property
    def is_address(self) -> bool:
        return self.interpretations == (QueryType.ADDRESS,)


def coerce_query_type(hint: Union[QueryType, str, None]) -> Optional[QueryType]:
    if hint is None or isinstance(hint, QueryType):
        return hint
    try:
        return QueryType(str(hint).strip().lower())
    except ValueError as exc:
        raise InvalidIdentifier(f"Unknown query type: {hint!r}") from exc


def classify_identifier(value: str, hint: Union[QueryType, str, None] = None) -> Identifier:
    """Classify a raw search string.

    A 20-byte value is an address. A 32-byte value is either a transaction
    hash or a message id; a hint picks one, otherwise the transaction hash
    reading is tried first with the message id as fallback.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentifier("Empty identifier")
    normalized = ensure_0x(value.strip()).lower()
    query_type = coerce_query_type(hint)

    if is_hex_string(normalized, ADDRESS_BYTES):
        if query_type not in (None, QueryType.ADDRESS):
            raise InvalidIdentifier(f"A 20-byte value cannot be a {query_type.value}: {value}")
        return Identifier(normalized, (QueryType.ADDRESS,))

    if is_hex_string(normalized, HASH_BYTES):
        if query_type == QueryType.ADDRESS:
            raise InvalidIdentifier(f"A 32-byte value cannot be an address: {value}")
        if query_type is not None:
            return Identifier(normalized, (query_type,))
        return Identifier(normalized, (QueryType.TX_HASH, QueryType.MESSAGE_ID))

    raise InvalidIdentifier(f"Not a 20-byte address or 32-byte hash: {value}")


__all__ = ["ADDRESS_BYTES", "HASH_BYTES", "Identifier", "QueryType", "classify_identifier", "coerce_query_type"]
