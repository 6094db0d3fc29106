from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from piscan.core.exceptions import ProviderMisconfigured
from piscan.data.chain_types import ChainMetadata

_CONFIG_CACHE: Dict[str, Any] | None = None
_ENV_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def load_config(path: str | Path | None = None) -> Dict[str, Any]:
    root = repo_root()
    env_path = root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = Path(path) if path else Path(os.getenv("PISCAN_CONFIG", root / "config" / "default.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    return data


def get_config(refresh: bool = False) -> Dict[str, Any]:
    global _CONFIG_CACHE
    if refresh or _CONFIG_CACHE is None:
        _CONFIG_CACHE = load_config()
    return _CONFIG_CACHE


def expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_PLACEHOLDER.sub(lambda match: os.getenv(match.group(1), ""), value)
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def load_chain_metadata(config: Dict[str, Any]) -> List[ChainMetadata]:
    chains: List[ChainMetadata] = []
    for name, raw in (config.get("chains") or {}).items():
        entry = dict(expand_env(raw or {}))
        entry.setdefault("name", name)
        try:
            chains.append(ChainMetadata.model_validate(entry))
        except ValidationError as exc:
            raise ProviderMisconfigured(f"Invalid chain metadata for {name}: {exc}") from exc
    return chains


__all__ = ["expand_env", "get_config", "load_chain_metadata", "load_config", "repo_root"]
