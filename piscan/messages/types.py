from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageStatus(str, Enum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILING = "failing"


class DispatchRecord(BaseModel):
    version: int
    nonce: int
    origin_domain: int = Field(alias="originDomain")
    sender: str
    destination_domain: int = Field(alias="destinationDomain")
    recipient: str
    body: str
    message_id: str = Field(alias="msgId")
    transaction_hash: str = Field(alias="transactionHash")
    block_number: int = Field(alias="blockNumber")
    log_index: Optional[int] = Field(default=None, alias="logIndex")
    mailbox: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class MessageTx(BaseModel):
    hash: str
    block_number: int = Field(alias="blockNumber")
    timestamp: Optional[int] = None
    from_address: Optional[str] = Field(default=None, alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    block_hash: Optional[str] = Field(default=None, alias="blockHash")
    gas_used: Optional[int] = Field(default=None, alias="gasUsed")
    effective_gas_price: Optional[int] = Field(default=None, alias="effectiveGasPrice")

    model_config = ConfigDict(populate_by_name=True)


class GasPaymentTotals(BaseModel):
    total_gas_amount: int = Field(default=0, alias="totalGasAmount")
    total_payment: int = Field(default=0, alias="totalPayment")
    num_payments: int = Field(default=0, alias="numPayments")

    model_config = ConfigDict(populate_by_name=True)


class Message(BaseModel):
    id: str
    msg_id: str = Field(alias="msgId")
    nonce: int
    status: MessageStatus = MessageStatus.UNKNOWN
    sender: str
    recipient: str
    body: str
    origin_domain_id: int = Field(alias="originDomainId")
    origin_chain_id: Optional[int] = Field(default=None, alias="originChainId")
    destination_domain_id: int = Field(alias="destinationDomainId")
    destination_chain_id: Optional[int] = Field(default=None, alias="destinationChainId")
    origin: MessageTx
    destination: Optional[MessageTx] = None
    total_gas_amount: Optional[int] = Field(default=None, alias="totalGasAmount")
    total_payment: Optional[int] = Field(default=None, alias="totalPayment")
    num_payments: Optional[int] = Field(default=None, alias="numPayments")
    is_pi_msg: bool = Field(default=True, alias="isPiMsg")

    model_config = ConfigDict(populate_by_name=True)


class DeliveryResult(BaseModel):
    status: MessageStatus
    delivery_transaction: Optional[MessageTx] = Field(default=None, alias="deliveryTransaction")

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["DeliveryResult", "DispatchRecord", "GasPaymentTotals", "Message", "MessageStatus", "MessageTx"]
