import pytest

from piscan.core.exceptions import UpstreamBadResponse
from piscan.data.chain_source import ProviderMethod
from piscan.data.chain_types import LogFilter
from piscan.data.formatter import filter_from_params, format_result

TX_HASH = "0x" + "11" * 32


def test_quantities_are_parsed():
    assert format_result(ProviderMethod.GET_BLOCK_NUMBER, "0x1388") == 5000
    assert format_result(ProviderMethod.GET_BALANCE, "42") == 42
    with pytest.raises(UpstreamBadResponse):
        format_result(ProviderMethod.GET_GAS_PRICE, "gwei")


def test_missing_result_stays_none():
    assert format_result(ProviderMethod.GET_TRANSACTION_RECEIPT, None) is None
    assert format_result(ProviderMethod.GET_LOGS, []) == []


def test_receipt_and_logs_are_typed():
    receipt = format_result(
        ProviderMethod.GET_TRANSACTION_RECEIPT,
        {
            "transactionHash": TX_HASH,
            "blockNumber": "0x10",
            "from": "0x" + "22" * 20,
            "status": "0x1",
            "gasUsed": "0x5208",
            "logs": [
                {
                    "address": "0x" + "33" * 20,
                    "topics": ["0x" + "44" * 32],
                    "data": "0x",
                    "blockNumber": "0x10",
                    "transactionHash": TX_HASH,
                    "logIndex": "0x2",
                }
            ],
        },
    )
    assert receipt.block_number == 16
    assert receipt.gas_used == 21000
    assert receipt.logs[0].log_index == 2
    assert receipt.logs[0].topic0 == "0x" + "44" * 32


def test_malformed_payloads_raise():
    with pytest.raises(UpstreamBadResponse):
        format_result(ProviderMethod.GET_LOGS, {"not": "a list"})
    with pytest.raises(UpstreamBadResponse):
        format_result(ProviderMethod.GET_BLOCK, {"number": "0x1"})
    with pytest.raises(UpstreamBadResponse):
        format_result(ProviderMethod.CALL, 7)


def test_filter_params():
    assert filter_from_params(None) is None
    log_filter = filter_from_params({"filter": {"address": "0x" + "55" * 20, "fromBlock": 1, "toBlock": "latest"}})
    assert isinstance(log_filter, LogFilter)
    assert log_filter.from_block == 1
    assert log_filter.to_block == "latest"
