from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from piscan.core.encoding import is_hex_string
from piscan.core.exceptions import ProviderMisconfigured
from piscan.core.logging import get_logger
from piscan.data.chain_types import ChainMetadata, LogFilter
from piscan.data.registry import ChainRef, ProviderRegistry
from piscan.messages.identifiers import QueryType, classify_identifier
from piscan.messages.mailbox import PROCESS_ID_TOPIC, decode_bool_result, encode_delivered_call
from piscan.messages.types import DeliveryResult, Message, MessageStatus, MessageTx

logger = get_logger(__name__)

DELIVERY_LOG_CHECK_BLOCK_RANGE = 1000


@dataclass(frozen=True)
class DeliveryCheck:
    is_delivered: bool
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None


def _mailbox_for(chain: ChainMetadata, mailbox: Optional[str]) -> str:
    address = mailbox or chain.mailbox
    if not address or not is_hex_string(address, 20):
        raise ProviderMisconfigured(f"Cannot check delivery status, no mailbox address for chain {chain.name}")
    return address


async def check_is_message_delivered(
    registry: ProviderRegistry,
    msg_id: str,
    destination: ChainRef,
    mailbox: Optional[str] = None,
    block_range: Optional[int] = None,
) -> DeliveryCheck:
    msg_id = classify_identifier(msg_id, QueryType.MESSAGE_ID).value
    chain = registry.try_get_chain_metadata(destination)
    if chain is None or chain.protocol != "ethereum":
        logger.debug(f"Skipping delivery check for non-EVM or unknown chain {destination}")
        return DeliveryCheck(is_delivered=False)
    mailbox_address = _mailbox_for(chain, mailbox)
    provider = registry.get_provider(chain.name)

    # Process logs carry the tx hash and block, so try them first
    try:
        logger.debug(f"Searching for process logs for msgId {msg_id}")
        current_block = await provider.get_block_number()
        from_block = max(0, current_block - (block_range or DELIVERY_LOG_CHECK_BLOCK_RANGE))
        logs = await provider.get_logs(
            LogFilter(address=mailbox_address, topics=[PROCESS_ID_TOPIC, msg_id], from_block=from_block, to_block="latest")
        )
        if logs:
            log = logs[0]
            logger.debug(f"Found process log for {msg_id}")
            return DeliveryCheck(is_delivered=True, transaction_hash=log.transaction_hash, block_number=log.block_number)
    except Exception as exc:
        logger.warning(f"Error querying for process logs for msgId {msg_id}: {exc}")

    logger.debug(f"Querying mailbox about msgId {msg_id}")
    result = await provider.call({"to": mailbox_address, "data": encode_delivered_call(msg_id)})
    is_delivered = decode_bool_result(result)
    logger.debug(f"Mailbox delivery status for {msg_id}: {is_delivered}")
    return DeliveryCheck(is_delivered=is_delivered)


async def _delivery_transaction(registry: ProviderRegistry, chain: ChainMetadata, check: DeliveryCheck) -> MessageTx:
    tx = MessageTx(hash=check.transaction_hash or "", block_number=check.block_number or 0)
    if not check.transaction_hash:
        return tx
    provider = registry.get_provider(chain.name)
    try:
        receipt = await provider.get_transaction_receipt(check.transaction_hash)
        block = await provider.get_block(receipt.block_number)
    except Exception as exc:
        logger.warning(f"Could not fetch delivery tx details for {check.transaction_hash}: {exc}")
        return tx
    return MessageTx(
        hash=check.transaction_hash,
        block_number=receipt.block_number,
        block_hash=receipt.block_hash,
        timestamp=block.timestamp,
        from_address=receipt.from_address,
        to_address=receipt.to_address,
        gas_used=receipt.gas_used,
        effective_gas_price=receipt.effective_gas_price,
    )


async def fetch_delivery_status(
    registry: ProviderRegistry,
    message: Message,
    block_range: Optional[int] = None,
) -> DeliveryResult:
    chain = registry.try_get_chain_metadata(message.destination_domain_id)
    if chain is None:
        raise ProviderMisconfigured(
            f"Cannot check delivery status, no chain configured for domain {message.destination_domain_id}"
        )
    check = await check_is_message_delivered(registry, message.msg_id, chain.name, block_range=block_range)
    if not check.is_delivered:
        return DeliveryResult(status=MessageStatus.UNKNOWN)
    return DeliveryResult(
        status=MessageStatus.DELIVERED,
        delivery_transaction=await _delivery_transaction(registry, chain, check),
    )


__all__ = ["DELIVERY_LOG_CHECK_BLOCK_RANGE", "DeliveryCheck", "check_is_message_delivered", "fetch_delivery_status"]
