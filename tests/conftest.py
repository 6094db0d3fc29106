from typing import Any, Dict, List, Optional

import pytest

from mock_api.data_seed import IGP, MAILBOX, MOCK_CHAIN_ID, REMOTE_DOMAIN_ID
from mock_api.server import app, reset_metrics
from piscan.data.chain_types import ChainMetadata


def mock_chain(
    rpc_urls: Optional[List[Dict[str, Any]]] = None,
    explorers: Optional[List[Dict[str, Any]]] = None,
    **overrides: Any,
) -> ChainMetadata:
    data: Dict[str, Any] = {
        "name": "mocknet",
        "chainId": MOCK_CHAIN_ID,
        "mailbox": MAILBOX,
        "interchainGasPaymaster": IGP,
        "rpcUrls": rpc_urls if rpc_urls is not None else [{"http": "http://mock/rpc", "pagination": {"maxBlockRange": 1000}}],
        "blockExplorers": explorers or [],
    }
    data.update(overrides)
    return ChainMetadata.model_validate(data)


def remote_chain() -> ChainMetadata:
    return ChainMetadata.model_validate(
        {"name": "remote", "chainId": REMOTE_DOMAIN_ID, "rpcUrls": [{"http": "http://remote/rpc"}]}
    )


@pytest.fixture
def mock_node():
    reset_metrics()
    yield app
    reset_metrics()
