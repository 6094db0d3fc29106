import asyncio
from typing import Dict, List

import pytest

from piscan.core.exceptions import InvalidIdentifier
from piscan.data.chain_types import ChainMetadata
from piscan.data.registry import ProviderRegistry
from piscan.messages.resolver import MessageQuery, MessageResolver
from piscan.messages.types import Message, MessageTx

ADDRESS = "0x" + "ab" * 20


def _chain(name: str, chain_id: int, **extra) -> ChainMetadata:
    return ChainMetadata.model_validate(
        {"name": name, "chainId": chain_id, "rpcUrls": [{"http": f"https://{name}.example.com"}], **extra}
    )


def _message(chain_id: int) -> Message:
    return Message(
        id="",
        msg_id="0x" + format(chain_id, "064x"),
        nonce=chain_id,
        sender=ADDRESS,
        recipient=ADDRESS,
        body="0x",
        origin_domain_id=chain_id,
        destination_domain_id=1,
        origin=MessageTx(hash="0x" + "00" * 32, block_number=1),
    )


class ScriptedResolver(MessageResolver):
    """Replaces the per-chain fetch with scripted delays and outcomes."""

    def __init__(self, registry, script: Dict[str, tuple], **kwargs) -> None:
        super().__init__(registry, **kwargs)
        self.script = script
        self.started: List[str] = []
        self.cancelled: List[str] = []
        self.finished: List[str] = []

    async def _fetch_for_identifier(self, chain, query, identifier):
        delay, outcome = self.script[chain.name]
        self.started.append(chain.name)
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(chain.name)
            raise
        self.finished.append(chain.name)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _resolver(script, **kwargs) -> ScriptedResolver:
    chains = [
        _chain("fast", 10),
        _chain("empty", 20),
        _chain("slow", 30),
        _chain("broken", 40),
        _chain("indexed", 50, indexed=True),
        _chain("cosmos", 60, protocol="cosmos"),
    ]
    return ScriptedResolver(ProviderRegistry(chains), script, **kwargs)


SCRIPT = {
    "fast": (0.02, [_message(10)]),
    "empty": (0.0, []),
    "slow": (5.0, [_message(30)]),
    "broken": (0.0, RuntimeError("rpc down")),
}


def test_first_match_cancels_remaining_searches():
    resolver = _resolver(SCRIPT)
    messages = asyncio.run(resolver.search(MessageQuery(input=ADDRESS)))
    assert [message.origin_domain_id for message in messages] == [10]
    assert sorted(resolver.started) == ["broken", "empty", "fast", "slow"]
    assert resolver.cancelled == ["slow"]
    assert "slow" not in resolver.finished


def test_only_live_evm_chains_are_searched_by_default():
    resolver = _resolver(SCRIPT)
    assert [chain.name for chain in resolver.searchable_chains()] == ["fast", "empty", "slow", "broken"]


def test_gather_all_flattens_and_ignores_failures():
    script = dict(SCRIPT, slow=(0.05, [_message(30)]))
    resolver = _resolver(script)
    messages = asyncio.run(resolver.search(MessageQuery(input=ADDRESS), first_match=False))
    assert [message.origin_domain_id for message in messages] == [10, 30]
    assert resolver.cancelled == []


def test_no_chain_with_messages_yields_empty_list():
    script = {"empty": (0.0, []), "broken": (0.0, RuntimeError("boom"))}
    resolver = _resolver(script)
    assert asyncio.run(resolver.search(MessageQuery(input=ADDRESS), chains=["empty", "broken"])) == []


def test_per_chain_timeout_counts_as_no_data():
    resolver = _resolver(SCRIPT, search_timeout=0.05)
    assert asyncio.run(resolver.search(MessageQuery(input=ADDRESS), chains=["slow"])) == []
    assert resolver.cancelled == ["slow"]


def test_malformed_input_is_rejected_before_any_search():
    resolver = _resolver(SCRIPT)
    with pytest.raises(InvalidIdentifier):
        asyncio.run(resolver.search(MessageQuery(input="0x1234")))
    assert resolver.started == []
