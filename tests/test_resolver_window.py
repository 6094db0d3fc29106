import json

import httpx
import pytest

from piscan.data.chain_types import ChainMetadata
from piscan.data.registry import ProviderRegistry
from piscan.messages.mailbox import dispatch_log_topics, encode_dispatch_data, format_message, message_id
from piscan.messages.resolver import MessageQuery, MessageResolver

HEAD = 200_000
MAX_RANGE = 10_000
DISPATCH_BLOCK = 150_000
MAILBOX = "0x" + "aa" * 20
SENDER = "0x" + "a1" * 20
RECIPIENT = "0x" + "b2" * 20
TX_HASH = "0x" + "cd" * 32
MESSAGE = format_message(4, 1234, SENDER, 5678, RECIPIENT, b"hi")


class TallNode:
    """JSON-RPC node far above the retention horizon of its block range."""

    def __init__(self) -> None:
        self.methods = []
        self.ranges = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.methods.append(method)
        result = None
        if method == "eth_blockNumber":
            result = hex(HEAD)
        elif method == "eth_getLogs":
            log_filter = body["params"][0]
            start, end = int(log_filter["fromBlock"], 16), int(log_filter["toBlock"], 16)
            self.ranges.append((start, end))
            result = []
            if start <= DISPATCH_BLOCK <= end and len(log_filter["topics"]) == 2:
                result.append(
                    {
                        "address": MAILBOX,
                        "topics": dispatch_log_topics(SENDER, 5678, RECIPIENT),
                        "data": encode_dispatch_data(MESSAGE),
                        "blockNumber": hex(DISPATCH_BLOCK),
                        "transactionHash": TX_HASH,
                        "logIndex": "0x0",
                    }
                )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def _chain() -> ChainMetadata:
    return ChainMetadata.model_validate(
        {
            "name": "tallnet",
            "chainId": 1234,
            "mailbox": MAILBOX,
            "rpcUrls": [{"http": "https://rpc.example.com", "pagination": {"maxBlockRange": MAX_RANGE}}],
        }
    )


@pytest.mark.asyncio
async def test_default_window_fits_chunked_rpc_horizon():
    node = TallNode()
    async with httpx.AsyncClient(transport=httpx.MockTransport(node)) as async_client:
        resolver = MessageResolver(ProviderRegistry([_chain()], async_client=async_client))
        messages = await resolver.fetch_messages("tallnet", MessageQuery(input=SENDER))

    assert [message.msg_id for message in messages] == [message_id(MESSAGE)]
    assert messages[0].origin.block_number == DISPATCH_BLOCK
    # Head is read once by the resolver and handed down as a literal end block
    assert node.methods.count("eth_blockNumber") == 1
    assert len(node.ranges) == 20
    assert min(start for start, _ in node.ranges) == HEAD - 100_000 + 1
    assert max(end for _, end in node.ranges) == HEAD
    assert all(end - start + 1 == MAX_RANGE for start, end in node.ranges)


@pytest.mark.asyncio
async def test_explicit_window_is_passed_through():
    node = TallNode()
    async with httpx.AsyncClient(transport=httpx.MockTransport(node)) as async_client:
        resolver = MessageResolver(ProviderRegistry([_chain()], async_client=async_client))
        query = MessageQuery(input=SENDER, from_block=DISPATCH_BLOCK - 500, to_block=DISPATCH_BLOCK + 499)
        messages = await resolver.fetch_messages("tallnet", query)

    assert len(messages) == 1
    assert "eth_blockNumber" not in node.methods
    assert node.ranges == [(DISPATCH_BLOCK - 500, DISPATCH_BLOCK + 499)] * 2
