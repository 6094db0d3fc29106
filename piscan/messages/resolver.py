"""
Live message search for chains without a maintained index.

Every lookup goes through the chain's MultiSourceProvider, so source
fallback and log chunking apply to all of it. Searching several chains at
once returns the first chain that produces messages and cancels the rest.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from piscan.core.encoding import BlockTag, address_to_bytes32, is_hex_string
from piscan.core.exceptions import AllProvidersFailed
from piscan.core.logging import get_logger
from piscan.data.chain_types import ChainMetadata, Log, LogFilter, TransactionReceipt
from piscan.data.multi_provider import MultiSourceProvider
from piscan.data.registry import ChainRef, ProviderRegistry
from piscan.messages.identifiers import Identifier, QueryType, classify_identifier
from piscan.messages.mailbox import (
    DISPATCH_ID_TOPIC,
    DISPATCH_TOPIC,
    GAS_PAYMENT_TOPIC,
    decode_dispatch_logs,
    decode_gas_payment_log,
)
from piscan.messages.types import DispatchRecord, GasPaymentTotals, Message, MessageStatus, MessageTx

logger = get_logger(__name__)

PI_MESSAGE_LOG_CHECK_BLOCK_RANGE = 100_000
MESSAGE_SEARCH_TIMEOUT_SEC = 10.0
MAX_LOGS_FOR_TIMESTAMPS = 10
MAX_MESSAGES_FOR_GAS_PAYMENTS = 5

Topics = List[Optional[str]]


@dataclass(frozen=True)
class MessageQuery:
    input: str
    from_block: Optional[BlockTag] = None
    to_block: Optional[BlockTag] = None


@dataclass(frozen=True)
class MailboxContext:
    chain: str
    domain_id: int
    mailbox: Optional[str]
    interchain_gas_paymaster: Optional[str]


@dataclass
class OriginLog:
    log: Log
    timestamp: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None


def _valid_address(value: Optional[str]) -> Optional[str]:
    return value if value and is_hex_string(value, 20) else None


def _dedupe_logs(logs: Iterable[Log]) -> List[Log]:
    seen: set = set()
    unique: List[Log] = []
    for log in logs:
        key = (log.transaction_hash.lower(), log.log_index)
        if key in seen:
            continue
        seen.add(key)
        unique.append(log)
    return unique


class MessageResolver:
    def __init__(
        self,
        registry: ProviderRegistry,
        block_range: int = PI_MESSAGE_LOG_CHECK_BLOCK_RANGE,
        search_timeout: Optional[float] = MESSAGE_SEARCH_TIMEOUT_SEC,
    ) -> None:
        self.registry = registry
        self.block_range = block_range
        self.search_timeout = search_timeout
        self._contexts: Dict[str, MailboxContext] = {}

    @classmethod
    def from_config(cls, registry: ProviderRegistry, config: Dict[str, Any]) -> "MessageResolver":
        search = config.get("search") or {}
        timeout = search.get("timeout_sec", MESSAGE_SEARCH_TIMEOUT_SEC)
        return cls(
            registry,
            block_range=int(search.get("block_range", PI_MESSAGE_LOG_CHECK_BLOCK_RANGE)),
            search_timeout=float(timeout) if timeout else None,
        )

    def mailbox_context(self, chain: ChainMetadata) -> MailboxContext:
        context = self._contexts.get(chain.name)
        if context is None:
            mailbox = _valid_address(chain.mailbox)
            if mailbox is None:
                logger.debug(f"No mailbox address found for chain {chain.name}")
            context = MailboxContext(
                chain=chain.name,
                domain_id=chain.domain_id,
                mailbox=mailbox,
                interchain_gas_paymaster=_valid_address(chain.interchain_gas_paymaster),
            )
            self._contexts[chain.name] = context
        return context

    def searchable_chains(self) -> List[ChainMetadata]:
        return [chain for chain in self.registry.chains() if chain.protocol == "ethereum" and not chain.indexed]

    async def fetch_messages(
        self,
        chain_ref: ChainRef,
        query: MessageQuery,
        query_type: Union[QueryType, str, None] = None,
    ) -> List[Message]:
        identifier = classify_identifier(query.input, query_type)
        chain = self.registry.get_chain_metadata(chain_ref)
        return await self._fetch_for_identifier(chain, query, identifier)

    async def _fetch_for_identifier(
        self,
        chain: ChainMetadata,
        query: MessageQuery,
        identifier: Identifier,
    ) -> List[Message]:
        provider = self.registry.get_provider(chain.name)
        context = self.mailbox_context(chain)

        origin_logs: List[OriginLog] = []
        records: List[DispatchRecord] = []
        for query_type in identifier.interpretations:
            if query_type == QueryType.ADDRESS:
                origin_logs = await self._logs_for_address(provider, context, identifier.value, query)
            elif query_type == QueryType.TX_HASH:
                origin_logs = await self._logs_for_tx_hash(provider, context, identifier.value)
            else:
                origin_logs = await self._logs_for_msg_id(provider, context, identifier.value, query)
            records = decode_dispatch_logs((item.log for item in origin_logs), context.mailbox)
            if query_type == QueryType.MESSAGE_ID:
                records = [record for record in records if record.message_id == identifier.value]
            if records:
                break

        by_key = {(item.log.transaction_hash.lower(), item.log.log_index): item for item in origin_logs}
        messages = [
            self._to_message(record, by_key.get((record.transaction_hash.lower(), record.log_index)))
            for record in records
        ]
        logger.debug(f"Found {len(messages)} message(s) on chain {chain.name} for {identifier.value}")

        if len(messages) >= MAX_MESSAGES_FOR_GAS_PAYMENTS:
            return messages
        # One gas paymaster query at a time
        with_payments: List[Message] = []
        for message in messages:
            with_payments.append(await self._with_gas_payments(provider, context, message))
        return with_payments

    async def _logs_for_address(
        self,
        provider: MultiSourceProvider,
        context: MailboxContext,
        address: str,
        query: MessageQuery,
    ) -> List[OriginLog]:
        logger.debug(f"Fetching logs for address {address} on chain {context.chain} ({context.domain_id})")
        if context.mailbox is None:
            return []
        topic = address_to_bytes32(address)
        return await self._fetch_logs(
            provider,
            context.mailbox,
            [[DISPATCH_TOPIC, topic], [DISPATCH_TOPIC, None, None, topic]],
            query,
        )

    async def _logs_for_tx_hash(
        self,
        provider: MultiSourceProvider,
        context: MailboxContext,
        tx_hash: str,
    ) -> List[OriginLog]:
        logger.debug(f"Fetching logs for tx hash {tx_hash} on chain {context.chain} ({context.domain_id})")
        try:
            receipt: TransactionReceipt = await provider.get_transaction_receipt(tx_hash)
        except AllProvidersFailed as exc:
            logger.debug(f"Tx hash {tx_hash} not found on chain {context.chain}: {exc}")
            return []
        timestamp = await self._block_timestamp(provider, receipt.block_number)
        return [
            OriginLog(log=log, timestamp=timestamp, from_address=receipt.from_address, to_address=receipt.to_address)
            for log in receipt.logs
        ]

    async def _logs_for_msg_id(
        self,
        provider: MultiSourceProvider,
        context: MailboxContext,
        msg_id: str,
        query: MessageQuery,
    ) -> List[OriginLog]:
        logger.debug(f"Fetching logs for msg id {msg_id} on chain {context.chain} ({context.domain_id})")
        if context.mailbox is None:
            return []
        id_logs = await self._fetch_logs(provider, context.mailbox, [[DISPATCH_ID_TOPIC, msg_id]], query)
        if not id_logs:
            return []
        # DispatchId carries only the id; the paired Dispatch lives in the same tx
        tx_hash = id_logs[0].log.transaction_hash
        logger.debug(f"Found tx {tx_hash} with DispatchId log for {msg_id}")
        return await self._logs_for_tx_hash(provider, context, tx_hash)

    async def _search_window(
        self, provider: MultiSourceProvider, query: MessageQuery
    ) -> Tuple[BlockTag, BlockTag]:
        if query.from_block is not None and query.to_block is not None:
            return query.from_block, query.to_block
        # One head read for both bounds, so chunked sources see the same end block
        latest = await provider.get_block_number()
        from_block = query.from_block if query.from_block is not None else max(0, latest - self.block_range + 1)
        to_block = query.to_block if query.to_block is not None else latest
        return from_block, to_block

    async def _fetch_logs(
        self,
        provider: MultiSourceProvider,
        address: str,
        topic_sets: Sequence[Topics],
        query: MessageQuery,
    ) -> List[OriginLog]:
        from_block, to_block = await self._search_window(provider, query)
        logs: List[Log] = []
        for topics in topic_sets:
            log_filter = LogFilter(address=address, topics=list(topics), from_block=from_block, to_block=to_block)
            logs.extend(await provider.get_logs(log_filter))
        logs = _dedupe_logs(logs)

        if len(logs) > MAX_LOGS_FOR_TIMESTAMPS:
            return [OriginLog(log=log) for log in logs]

        timestamps: Dict[int, Optional[int]] = {}
        enriched: List[OriginLog] = []
        for log in logs:
            if log.block_number not in timestamps:
                timestamps[log.block_number] = await self._block_timestamp(provider, log.block_number)
            enriched.append(OriginLog(log=log, timestamp=timestamps[log.block_number]))
        return enriched

    async def _block_timestamp(self, provider: MultiSourceProvider, block_number: int) -> Optional[int]:
        try:
            block = await provider.get_block(block_number)
        except Exception as exc:
            logger.debug(f"Could not fetch block {block_number}: {exc}")
            return None
        return block.timestamp

    def _to_message(self, record: DispatchRecord, origin: Optional[OriginLog]) -> Message:
        log = origin.log if origin else None
        return Message(
            id="",
            msg_id=record.message_id,
            nonce=record.nonce,
            status=MessageStatus.UNKNOWN,
            sender=record.sender,
            recipient=record.recipient,
            body=record.body,
            origin_domain_id=record.origin_domain,
            origin_chain_id=self.registry.try_get_chain_id(record.origin_domain),
            destination_domain_id=record.destination_domain,
            destination_chain_id=self.registry.try_get_chain_id(record.destination_domain)
            or record.destination_domain,
            origin=MessageTx(
                hash=record.transaction_hash,
                block_number=record.block_number,
                block_hash=log.block_hash if log else None,
                timestamp=origin.timestamp if origin else None,
                from_address=origin.from_address if origin else None,
                to_address=origin.to_address if origin else None,
            ),
            is_pi_msg=True,
        )

    async def _with_gas_payments(
        self,
        provider: MultiSourceProvider,
        context: MailboxContext,
        message: Message,
    ) -> Message:
        igp = context.interchain_gas_paymaster
        if igp is None:
            logger.warning(f"No IGP address found for chain {context.chain} ({context.domain_id})")
            return message
        log_filter = LogFilter(
            address=igp,
            topics=[GAS_PAYMENT_TOPIC, message.msg_id],
            from_block=message.origin.block_number,
            to_block="latest",
        )
        try:
            logs = await provider.get_logs(log_filter)
        except Exception as exc:
            logger.warning(f"Could not fetch gas payments for {message.msg_id} on {context.chain}: {exc}")
            return message

        totals = GasPaymentTotals()
        for log in logs:
            try:
                gas_amount, payment = decode_gas_payment_log(log)
            except ValueError as exc:
                logger.debug(f"Dropping malformed GasPayment log in {log.transaction_hash}: {exc}")
                continue
            totals.total_gas_amount += gas_amount
            totals.total_payment += payment
            totals.num_payments += 1
        logger.debug(f"Found {totals.num_payments} payment(s) to IGP for msg {message.msg_id}")
        return message.model_copy(
            update={
                "total_gas_amount": totals.total_gas_amount,
                "total_payment": totals.total_payment,
                "num_payments": totals.num_payments,
            }
        )

    def _resolve_chains(self, chains: Optional[Iterable[ChainRef]]) -> List[ChainMetadata]:
        if chains is None:
            return self.searchable_chains()
        return [self.registry.get_chain_metadata(ref) for ref in chains]

    async def _search_chain(self, chain: ChainMetadata, query: MessageQuery, identifier: Identifier) -> List[Message]:
        try:
            if self.search_timeout:
                return await asyncio.wait_for(
                    self._fetch_for_identifier(chain, query, identifier), timeout=self.search_timeout
                )
            return await self._fetch_for_identifier(chain, query, identifier)
        except asyncio.TimeoutError:
            logger.debug(f"Message search timed out on chain {chain.name}")
        except Exception as exc:
            logger.debug(
                f"Error fetching messages for chain {chain.name}: {exc}",
                extra={"context": {"chain": chain.name, "error": repr(exc)}},
            )
        return []

    async def search(
        self,
        query: MessageQuery,
        chains: Optional[Iterable[ChainRef]] = None,
        query_type: Union[QueryType, str, None] = None,
        first_match: bool = True,
    ) -> List[Message]:
        """Search several chains concurrently.

        With ``first_match`` the first chain yielding at least one message wins
        and the other searches are cancelled; otherwise every chain is awaited
        and the results are flattened in chain order. Failing chains count as
        chains with no messages.
        """
        identifier = classify_identifier(query.input, query_type)
        targets = self._resolve_chains(chains)
        if not targets:
            return []

        tasks = [
            asyncio.create_task(self._search_chain(chain, query, identifier), name=f"search-{chain.name}")
            for chain in targets
        ]
        try:
            if not first_match:
                results = await asyncio.gather(*tasks)
                return [message for messages in results for message in messages]

            pending = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in tasks:
                    if task in done and task.result():
                        return task.result()
            return []
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def find_message(self, msg_id: str, chains: Optional[Iterable[ChainRef]] = None) -> Optional[Message]:
        messages = await self.search(MessageQuery(input=msg_id), chains=chains, query_type=QueryType.MESSAGE_ID)
        target = classify_identifier(msg_id, QueryType.MESSAGE_ID).value
        for message in messages:
            if message.msg_id == target:
                return message
        return None


__all__ = [
    "MAX_LOGS_FOR_TIMESTAMPS",
    "MAX_MESSAGES_FOR_GAS_PAYMENTS",
    "MESSAGE_SEARCH_TIMEOUT_SEC",
    "MailboxContext",
    "MessageQuery",
    "MessageResolver",
    "OriginLog",
    "PI_MESSAGE_LOG_CHECK_BLOCK_RANGE",
]
