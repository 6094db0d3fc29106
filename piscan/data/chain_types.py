from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from piscan.core.encoding import normalize_block_tag, parse_quantity

BlockTag = Union[int, str]

EXPLORER_FAMILY_ETHERSCAN = "etherscan"


def _quantity_or_none(value: Any) -> Optional[int]:
    if value is None:
        return None
    return parse_quantity(value)


class PaginationOptions(BaseModel):
    max_block_range: Optional[int] = Field(default=None, alias="maxBlockRange", gt=0)
    min_block_number: Optional[int] = Field(default=None, alias="minBlockNumber", ge=0)

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class RpcConfig(BaseModel):
    http: str
    pagination: Optional[PaginationOptions] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class ExplorerConfig(BaseModel):
    name: str = ""
    url: Optional[str] = None
    api_url: str = Field(alias="apiUrl")
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    family: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ChainMetadata(BaseModel):
    name: str
    chain_id: int = Field(alias="chainId")
    domain_id: int = Field(alias="domainId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    protocol: str = "ethereum"
    is_testnet: bool = Field(default=False, alias="isTestnet")
    indexed: bool = False
    rpc_urls: List[RpcConfig] = Field(default_factory=list, alias="rpcUrls")
    block_explorers: List[ExplorerConfig] = Field(default_factory=list, alias="blockExplorers")
    mailbox: Optional[str] = None
    interchain_gas_paymaster: Optional[str] = Field(default=None, alias="interchainGasPaymaster")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _default_domain_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("domain_id") is None and data.get("domainId") is None:
            data = dict(data)
            data["domain_id"] = data.get("chain_id", data.get("chainId"))
        return data

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True)
class ChainNetwork:
    name: str
    chain_id: int


class Log(BaseModel):
    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"
    block_number: int = Field(alias="blockNumber")
    block_hash: Optional[str] = Field(default=None, alias="blockHash")
    transaction_hash: str = Field(alias="transactionHash")
    transaction_index: Optional[int] = Field(default=None, alias="transactionIndex")
    log_index: Optional[int] = Field(default=None, alias="logIndex")
    removed: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("block_number", mode="before")
    @classmethod
    def _parse_block_number(cls, value: Any) -> int:
        return parse_quantity(value)

    @field_validator("transaction_index", "log_index", mode="before")
    @classmethod
    def _parse_optional(cls, value: Any) -> Optional[int]:
        return _quantity_or_none(value)

    @property
    def topic0(self) -> Optional[str]:
        return self.topics[0].lower() if self.topics else None


class TransactionReceipt(BaseModel):
    transaction_hash: str = Field(alias="transactionHash")
    block_number: int = Field(alias="blockNumber")
    block_hash: Optional[str] = Field(default=None, alias="blockHash")
    from_address: Optional[str] = Field(default=None, alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    contract_address: Optional[str] = Field(default=None, alias="contractAddress")
    status: Optional[int] = None
    gas_used: Optional[int] = Field(default=None, alias="gasUsed")
    cumulative_gas_used: Optional[int] = Field(default=None, alias="cumulativeGasUsed")
    effective_gas_price: Optional[int] = Field(default=None, alias="effectiveGasPrice")
    logs: List[Log] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("block_number", mode="before")
    @classmethod
    def _parse_block_number(cls, value: Any) -> int:
        return parse_quantity(value)

    @field_validator("status", "gas_used", "cumulative_gas_used", "effective_gas_price", mode="before")
    @classmethod
    def _parse_optional(cls, value: Any) -> Optional[int]:
        return _quantity_or_none(value)


class Transaction(BaseModel):
    hash: str
    from_address: Optional[str] = Field(default=None, alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    nonce: Optional[int] = None
    block_number: Optional[int] = Field(default=None, alias="blockNumber")
    block_hash: Optional[str] = Field(default=None, alias="blockHash")
    gas_limit: Optional[int] = Field(default=None, alias="gas")
    gas_price: Optional[int] = Field(default=None, alias="gasPrice")
    max_fee_per_gas: Optional[int] = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[int] = Field(default=None, alias="maxPriorityFeePerGas")
    value: Optional[int] = None
    input: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator(
        "nonce",
        "block_number",
        "gas_limit",
        "gas_price",
        "max_fee_per_gas",
        "max_priority_fee_per_gas",
        "value",
        mode="before",
    )
    @classmethod
    def _parse_optional(cls, value: Any) -> Optional[int]:
        return _quantity_or_none(value)


class Block(BaseModel):
    number: int
    hash: Optional[str] = None
    parent_hash: Optional[str] = Field(default=None, alias="parentHash")
    timestamp: int
    transactions: List[Any] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("number", "timestamp", mode="before")
    @classmethod
    def _parse_quantity(cls, value: Any) -> int:
        return parse_quantity(value)


class LogFilter(BaseModel):
    address: Optional[str] = None
    topics: List[Optional[Union[str, List[str]]]] = Field(default_factory=list)
    from_block: Optional[BlockTag] = Field(default=None, alias="fromBlock")
    to_block: Optional[BlockTag] = Field(default=None, alias="toBlock")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    def with_range(self, from_block: BlockTag, to_block: BlockTag) -> "LogFilter":
        return self.model_copy(update={"from_block": from_block, "to_block": to_block})

    def to_rpc(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.address is not None:
            payload["address"] = self.address
        if self.topics:
            payload["topics"] = list(self.topics)
        if self.from_block is not None:
            payload["fromBlock"] = normalize_block_tag(self.from_block)
        if self.to_block is not None:
            payload["toBlock"] = normalize_block_tag(self.to_block)
        return payload


__all__ = [
    "Block",
    "BlockTag",
    "ChainMetadata",
    "ChainNetwork",
    "EXPLORER_FAMILY_ETHERSCAN",
    "ExplorerConfig",
    "Log",
    "LogFilter",
    "PaginationOptions",
    "RpcConfig",
    "Transaction",
    "TransactionReceipt",
]
