from piscan.messages.delivery import check_is_message_delivered, fetch_delivery_status
from piscan.messages.identifiers import Identifier, QueryType, classify_identifier
from piscan.messages.resolver import MessageQuery, MessageResolver
from piscan.messages.types import DeliveryResult, DispatchRecord, Message, MessageStatus, MessageTx

__all__ = [
    "DeliveryResult",
    "DispatchRecord",
    "Identifier",
    "Message",
    "MessageQuery",
    "MessageResolver",
    "MessageStatus",
    "MessageTx",
    "QueryType",
    "check_is_message_delivered",
    "classify_identifier",
    "fetch_delivery_status",
]
