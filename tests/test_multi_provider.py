import asyncio
from typing import Any, Dict, List, Optional

import pytest

from piscan.core.exceptions import AllProvidersFailed, NoSourceConfigured, UnsupportedMethod
from piscan.data.chain_source import ALL_PROVIDER_METHODS, ProviderMethod, exclude_methods
from piscan.data.chain_types import ChainMetadata, ChainNetwork
from piscan.data.explorer.provider import EXPLORER_CAPABILITIES, ExplorerSource
from piscan.data.multi_provider import MultiSourceProvider
from piscan.data.rpc.provider import JsonRpcSource

NETWORK = ChainNetwork(name="testchain", chain_id=1234)


class FakeSource:
    def __init__(
        self,
        label: str,
        capabilities=ALL_PROVIDER_METHODS,
        result: Any = None,
        error: Optional[Exception] = None,
        log: Optional[List[str]] = None,
    ) -> None:
        self._label = label
        self._capabilities = frozenset(capabilities)
        self.result = result
        self.error = error
        self.calls: List[ProviderMethod] = []
        self.log = log if log is not None else []

    @property
    def capabilities(self):
        return self._capabilities

    @property
    def label(self) -> str:
        return self._label

    async def perform(self, method, params: Optional[Dict[str, Any]] = None):
        self.calls.append(method)
        self.log.append(self._label)
        if self.error is not None:
            raise self.error
        return self.result


def test_supported_methods_is_union_of_sources():
    explorer = FakeSource("explorer", capabilities=EXPLORER_CAPABILITIES)
    rpc = FakeSource("rpc", capabilities={ProviderMethod.CALL, ProviderMethod.GET_BLOCK_NUMBER})
    provider = MultiSourceProvider(NETWORK, [explorer], [rpc])
    assert provider.supported_methods == EXPLORER_CAPABILITIES | {ProviderMethod.CALL}
    assert provider.supports("call")
    assert not provider.supports("notAMethod")


def test_unsupported_method_makes_no_calls():
    explorer = FakeSource("explorer", capabilities=EXPLORER_CAPABILITIES, result=1)
    provider = MultiSourceProvider(NETWORK, [explorer], [])
    with pytest.raises(UnsupportedMethod):
        asyncio.run(provider.perform(ProviderMethod.CALL, {"transaction": {}}))
    assert explorer.calls == []


def test_falls_back_until_a_source_succeeds():
    first = FakeSource("rpc-1", error=RuntimeError("connection refused"))
    second = FakeSource("rpc-2", error=TimeoutError("timed out"))
    third = FakeSource("rpc-3", result=1000)
    provider = MultiSourceProvider(NETWORK, [], [first, second, third])

    assert asyncio.run(provider.get_block_number()) == 1000
    assert provider.failed_request_count() == 2
    assert provider.stats[id(third)].successful_requests == 1
    assert provider.stats[id(first)].last_error == "connection refused"


def test_explorers_are_tried_before_rpc_in_config_order():
    order: List[str] = []
    explorer_a = FakeSource("explorer-a", capabilities=EXPLORER_CAPABILITIES, error=RuntimeError("down"), log=order)
    explorer_b = FakeSource("explorer-b", capabilities=EXPLORER_CAPABILITIES, error=RuntimeError("down"), log=order)
    rpc = FakeSource("rpc", result=5, log=order)
    provider = MultiSourceProvider(NETWORK, [explorer_a, explorer_b], [rpc])
    assert asyncio.run(provider.perform(ProviderMethod.GET_BLOCK_NUMBER)) == 5
    assert order == ["explorer-a", "explorer-b", "rpc"]


def test_sources_lacking_capability_are_skipped():
    explorer = FakeSource("explorer", capabilities=EXPLORER_CAPABILITIES, result="0x01")
    rpc = FakeSource("rpc", result="0x02")
    provider = MultiSourceProvider(NETWORK, [explorer], [rpc])
    assert asyncio.run(provider.call({"to": "0x" + "00" * 20, "data": "0x"})) == "0x02"
    assert explorer.calls == []


def test_none_result_counts_as_failure_but_empty_list_does_not():
    empty = FakeSource("explorer", capabilities=EXPLORER_CAPABILITIES, result=None)
    backup = FakeSource("rpc", result=[])
    provider = MultiSourceProvider(NETWORK, [empty], [backup])
    assert asyncio.run(provider.get_logs({"fromBlock": 1, "toBlock": 2})) == []
    assert provider.failed_request_count() == 1
    assert backup.calls == [ProviderMethod.GET_LOGS]


def test_exhaustion_attaches_every_failure():
    first = FakeSource("rpc-1", error=RuntimeError("a"))
    second = FakeSource("rpc-2", result=None)
    provider = MultiSourceProvider(NETWORK, [], [first, second])
    with pytest.raises(AllProvidersFailed) as excinfo:
        asyncio.run(provider.get_transaction_receipt("0x" + "11" * 32))
    failures = excinfo.value.failures
    assert [failure.source for failure in failures] == ["rpc-1", "rpc-2"]
    assert excinfo.value.method == "getTransactionReceipt"
    assert "rpc-1: RuntimeError: a" == failures[0].describe()


def test_network_identity_is_static():
    provider = MultiSourceProvider(NETWORK, [], [FakeSource("rpc", error=RuntimeError("down"))])
    assert provider.get_network() == NETWORK


def test_no_sources_is_misconfiguration():
    with pytest.raises(NoSourceConfigured):
        MultiSourceProvider(NETWORK, [], [])


def test_from_chain_metadata_builds_typed_sources():
    chain = ChainMetadata.model_validate(
        {
            "name": "testchain",
            "chainId": 1234,
            "rpcUrls": [{"http": "https://rpc-1.example.com"}, {"http": "https://rpc-2.example.com"}],
            "blockExplorers": [
                {"apiUrl": "https://api.scan.example.com/api", "family": "etherscan"},
                {"apiUrl": "https://blockscout.example.com/api", "family": "blockscout"},
            ],
        }
    )
    provider = MultiSourceProvider.from_chain_metadata(chain)
    assert [type(source) for source in provider.sources] == [ExplorerSource, JsonRpcSource, JsonRpcSource]
    assert provider.sources[0].label == "https://api.scan.example.com"
    assert provider.supported_methods == ALL_PROVIDER_METHODS
    assert chain.domain_id == 1234
    assert exclude_methods([ProviderMethod.CALL]) < provider.supported_methods
