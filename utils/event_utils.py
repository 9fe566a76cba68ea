from typing import Any, List, Optional

from web3 import Web3

from reconstructors.marketplace.marketplace_enums import EventKind
from utils.general_utils import to_topic
from utils.ledger_source import EventFilters, LedgerEvent


def get_event_signature(event_abi: dict) -> str:
    input_types = ",".join(abi_input["type"] for abi_input in event_abi["inputs"])
    return f"{event_abi['name']}({input_types})"


def get_event_topic(event_abi: dict) -> str:
    return Web3.to_hex(Web3.keccak(text=get_event_signature(event_abi)))


def build_topic_filter(
    event_abi: dict, filters: Optional[EventFilters] = None
) -> List[Optional[str]]:
    """
    Topic list for eth_getLogs: the event topic followed by one entry per indexed
    argument, None meaning "any value". Only indexed arguments can be filtered on.
    """
    filters = filters or {}
    indexed_names = [
        abi_input["name"] for abi_input in event_abi["inputs"] if abi_input["indexed"]
    ]
    unknown = set(filters.keys()) - set(indexed_names)
    if unknown:
        raise ValueError(
            f"Cannot filter {event_abi['name']} on non-indexed arguments: {sorted(unknown)}"
        )

    topics: List[Optional[str]] = [get_event_topic(event_abi)]
    for name in indexed_names:
        value = filters.get(name)
        topics.append(None if value is None else to_topic(value))

    while topics[-1] is None:
        topics.pop()
    return topics


def get_transaction_hash(decoded_log: Any) -> str:
    transaction_hash = decoded_log.get("transactionHash")
    if transaction_hash is None:
        return ""
    if isinstance(transaction_hash, (bytes, bytearray)):
        return Web3.to_hex(transaction_hash)
    return str(transaction_hash)


def decoded_log_to_ledger_event(
    kind: EventKind, event_abi: dict, decoded_log: Any, block_timestamp: int
) -> LedgerEvent:
    decoded_args = decoded_log["args"]
    return LedgerEvent(
        kind=kind,
        block_number=int(decoded_log["blockNumber"]),
        log_index=int(decoded_log["logIndex"]),
        block_timestamp=int(block_timestamp),
        args=tuple(decoded_args[abi_input["name"]] for abi_input in event_abi["inputs"]),
        transaction_hash=get_transaction_hash(decoded_log),
    )
