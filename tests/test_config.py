from pathlib import Path

import pytest

from piscan.config import expand_env, load_chain_metadata, load_config, repo_root
from piscan.core.exceptions import ProviderMisconfigured


def test_default_config_loads_chain_metadata():
    cfg = load_config(repo_root() / "config" / "default.yaml")
    chains = {chain.name: chain for chain in load_chain_metadata(cfg)}
    assert chains["sepolia"].chain_id == 11155111
    assert chains["sepolia"].rpc_urls[0].pagination.max_block_range == 50000
    assert cfg["explorer"]["throttle_window_sec"] == 5.2
    assert cfg["search"]["block_range"] == 100000


def test_config_path_from_environment(tmp_path: Path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("search:\n  block_range: 10\n", encoding="utf-8")
    monkeypatch.setenv("PISCAN_CONFIG", str(path))
    assert load_config()["search"]["block_range"] == 10


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_env_placeholders_are_substituted(monkeypatch):
    monkeypatch.setenv("TEST_RPC", "https://rpc.example.com")
    monkeypatch.delenv("TEST_KEY", raising=False)
    cfg = {
        "chains": {
            "alpha": {
                "chainId": 5,
                "rpcUrls": [{"http": "${TEST_RPC}"}],
                "blockExplorers": [{"apiUrl": "https://api.scan.example.com/api", "apiKey": "${TEST_KEY}"}],
            }
        }
    }
    (chain,) = load_chain_metadata(cfg)
    assert chain.name == "alpha"
    assert chain.rpc_urls[0].http == "https://rpc.example.com"
    assert chain.block_explorers[0].api_key is None
    assert expand_env(["${TEST_RPC}/x", 3]) == ["https://rpc.example.com/x", 3]


def test_invalid_chain_entry_names_the_chain():
    with pytest.raises(ProviderMisconfigured, match="broken"):
        load_chain_metadata({"chains": {"broken": {"rpcUrls": []}}})
