import pytest

from piscan.core.exceptions import UnsupportedMethod
from piscan.data.chain_source import ProviderMethod
from piscan.data.chain_types import LogFilter
from piscan.data.explorer.request_factory import (
    ExplorerRequestError,
    ExplorerRequestFactory,
    explorer_query_for,
    normalize_explorer_base,
)


def test_base_url_drops_trailing_api_segment():
    assert normalize_explorer_base("https://api.etherscan.io/api") == "https://api.etherscan.io"
    assert normalize_explorer_base("https://api.etherscan.io/api/") == "https://api.etherscan.io"
    assert normalize_explorer_base("https://explorer.example.com") == "https://explorer.example.com"
    with pytest.raises(ExplorerRequestError):
        normalize_explorer_base("  ")


def test_receipt_request_contract():
    factory = ExplorerRequestFactory(api_url="https://api.etherscan.io/api", api_key="test-key")
    spec = factory.build_method_request(ProviderMethod.GET_TRANSACTION_RECEIPT, {"transaction_hash": "0xabc"})
    assert spec.method == "GET"
    assert spec.base_url == "https://api.etherscan.io"
    assert spec.path == "/api"
    assert spec.url == "https://api.etherscan.io/api"
    assert spec.hostname() == "api.etherscan.io"
    assert spec.query == {
        "action": "eth_getTransactionReceipt",
        "txhash": "0xabc",
        "module": "proxy",
        "apikey": "test-key",
    }


def test_community_request_has_no_api_key():
    factory = ExplorerRequestFactory(api_url="https://api.etherscan.io", api_key="")
    spec = factory.build_method_request(ProviderMethod.GET_BLOCK_NUMBER)
    assert spec.query == {"action": "eth_blockNumber", "module": "proxy"}


def test_balance_uses_account_module():
    module, query = explorer_query_for(ProviderMethod.GET_BALANCE, {"address": "0x" + "11" * 20, "block_tag": 16})
    assert module == "account"
    assert query == {"action": "balance", "address": "0x" + "11" * 20, "tag": "0x10"}


def test_logs_query_uses_decimal_blocks_and_and_operators():
    log_filter = LogFilter(
        address="0x" + "aa" * 20,
        topics=["0xAA", None, None, "0xBB"],
        from_block="0x64",
        to_block="latest",
    )
    module, query = explorer_query_for(ProviderMethod.GET_LOGS, {"filter": log_filter})
    assert module == "logs"
    assert query == {
        "action": "getLogs",
        "fromBlock": "100",
        "toBlock": "latest",
        "address": "0x" + "aa" * 20,
        "topic0": "0xaa",
        "topic3": "0xbb",
        "topic0_3_opr": "and",
    }


def test_logs_query_rejects_or_topics():
    log_filter = LogFilter(topics=[["0xaa", "0xbb"]], from_block=1, to_block=2)
    with pytest.raises(ExplorerRequestError):
        explorer_query_for(ProviderMethod.GET_LOGS, {"filter": log_filter})


@pytest.mark.parametrize("method", [ProviderMethod.CALL, ProviderMethod.ESTIMATE_GAS, ProviderMethod.SEND_TRANSACTION])
def test_write_like_methods_are_unsupported(method):
    with pytest.raises(UnsupportedMethod):
        explorer_query_for(method, {"transaction": {}, "signed_transaction": "0x00"})
