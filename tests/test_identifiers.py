import pytest

from piscan.core.exceptions import InvalidIdentifier
from piscan.messages.identifiers import QueryType, classify_identifier

ADDRESS = "0x" + "ab" * 20
HASH = "0x" + "cd" * 32


def test_twenty_byte_value_is_address():
    identifier = classify_identifier(ADDRESS)
    assert len(ADDRESS) == 42
    assert identifier.interpretations == (QueryType.ADDRESS,)
    assert identifier.is_address


def test_thirty_two_byte_value_tries_tx_hash_then_message_id():
    identifier = classify_identifier(HASH)
    assert len(HASH) == 66
    assert identifier.interpretations == (QueryType.TX_HASH, QueryType.MESSAGE_ID)


def test_hint_restricts_hash_interpretation():
    assert classify_identifier(HASH, "msg-id").interpretations == (QueryType.MESSAGE_ID,)
    assert classify_identifier(HASH, QueryType.TX_HASH).interpretations == (QueryType.TX_HASH,)


def test_missing_prefix_and_case_are_normalized():
    identifier = classify_identifier(("CD" * 32))
    assert identifier.value == HASH


@pytest.mark.parametrize(
    "value",
    ["", "   ", "0x1234", "0x" + "zz" * 32, "0x" + "ab" * 21, "not-a-hash", "0x" + "ab" * 33],
)
def test_malformed_values_are_rejected(value):
    with pytest.raises(InvalidIdentifier):
        classify_identifier(value)


def test_conflicting_hints_are_rejected():
    with pytest.raises(InvalidIdentifier):
        classify_identifier(HASH, QueryType.ADDRESS)
    with pytest.raises(InvalidIdentifier):
        classify_identifier(ADDRESS, QueryType.MESSAGE_ID)
    with pytest.raises(InvalidIdentifier):
        classify_identifier(HASH, "block")
