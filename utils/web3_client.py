import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional

from web3 import Web3

from reconstructors.marketplace.marketplace_constants import (
    COLLECTION_EVENT_KINDS,
    EVENT_ABIS,
    NFT_ABI,
)
from reconstructors.marketplace.marketplace_enums import EventKind
from utils.event_utils import build_topic_filter, decoded_log_to_ledger_event
from utils.general_utils import standardize_address
from utils.ledger_source import (
    CollectionContract,
    EventFilters,
    EventQueryError,
    EventSource,
    Ledger,
    LedgerEvent,
    LedgerUnavailableError,
    MarketContext,
)

LEDGER_SERVICE_TYPE = "ledger"
DEFAULT_BLOCK_TIMESTAMP_CACHE_SIZE = 100_000


class Web3Ledger(Ledger):
    def __init__(
        self,
        rpc_url: str,
        request_timeout_in_secs: int = 30,
        num_concurrent_fetch_tasks: int = 10,
        block_timestamp_cache_size: int = DEFAULT_BLOCK_TIMESTAMP_CACHE_SIZE,
    ):
        self.rpc_url = rpc_url
        self.num_concurrent_fetch_tasks = num_concurrent_fetch_tasks
        self.w3 = Web3(
            Web3.HTTPProvider(
                rpc_url, request_kwargs={"timeout": request_timeout_in_secs}
            )
        )
        # Blocks are immutable, so their timestamps can be kept across passes
        self.get_block_timestamp = functools.lru_cache(
            maxsize=block_timestamp_cache_size
        )(self.fetch_block_timestamp)

    def ensure_reachable(self) -> None:
        if not self.w3.is_connected():
            logging.error(
                "[Ledger] Ledger endpoint is not reachable",
                extra={"rpc_url": self.rpc_url, "service_type": LEDGER_SERVICE_TYPE},
            )
            raise LedgerUnavailableError(
                f"Ledger endpoint {self.rpc_url} is not reachable"
            )

    def event_source(self, context: MarketContext) -> "Web3EventSource":
        return Web3EventSource(self, context)

    def collection(self, context: MarketContext) -> "Web3CollectionContract":
        return Web3CollectionContract(self, context)

    def fetch_block_timestamp(self, block_number: int) -> int:
        return int(self.w3.eth.get_block(block_number)["timestamp"])

    def get_block_timestamps(self, block_numbers: Iterable[int]) -> Dict[int, int]:
        # One lookup per distinct block, spread over the fetch pool
        distinct_block_numbers = sorted(set(block_numbers))
        if not distinct_block_numbers:
            return {}
        with ThreadPoolExecutor(
            max_workers=max(
                1, min(self.num_concurrent_fetch_tasks, len(distinct_block_numbers))
            )
        ) as executor:
            timestamps = executor.map(self.get_block_timestamp, distinct_block_numbers)
            return dict(zip(distinct_block_numbers, timestamps))


class Web3EventSource(EventSource):
    def __init__(self, ledger: Web3Ledger, context: MarketContext):
        self.ledger = ledger
        self.context = context

    def get_contract_address(self, kind: EventKind) -> Optional[str]:
        if kind in COLLECTION_EVENT_KINDS:
            return self.context.collection_address
        return self.context.marketplace_address

    def query_events(
        self, kind: EventKind, filters: Optional[EventFilters] = None
    ) -> List[LedgerEvent]:
        address = self.get_contract_address(kind)
        if not address:
            raise EventQueryError(f"No contract address configured for {kind.value}")

        event_abi = EVENT_ABIS[kind]
        checksum_address = Web3.to_checksum_address(address)
        w3 = self.ledger.w3
        try:
            contract = w3.eth.contract(address=checksum_address, abi=[event_abi])
            contract_event = getattr(contract.events, event_abi["name"])()
            logs = w3.eth.get_logs(
                {
                    "address": checksum_address,
                    "fromBlock": self.context.from_block,
                    "toBlock": "latest",
                    "topics": build_topic_filter(event_abi, filters),
                }
            )
            block_timestamps = self.ledger.get_block_timestamps(
                log["blockNumber"] for log in logs
            )
            events = [
                decoded_log_to_ledger_event(
                    kind,
                    event_abi,
                    contract_event.process_log(log),
                    block_timestamps[log["blockNumber"]],
                )
                for log in logs
            ]
        except Exception as e:
            raise EventQueryError(f"Failed to query {kind.value} events") from e

        logging.debug(
            "[Ledger] Queried events",
            extra={
                "event_kind": kind.value,
                "contract_address": address,
                "num_of_events": len(events),
                "service_type": LEDGER_SERVICE_TYPE,
            },
        )
        return sorted(events, key=lambda event: event.order)


class Web3CollectionContract(CollectionContract):
    def __init__(self, ledger: Web3Ledger, context: MarketContext):
        self.contract = ledger.w3.eth.contract(
            address=Web3.to_checksum_address(context.collection_address),
            abi=NFT_ABI,
        )

    def owner_of(self, token_id: int) -> str:
        try:
            owner = self.contract.functions.ownerOf(token_id).call()
        except Exception as e:
            raise EventQueryError(f"Failed to resolve owner of token {token_id}") from e
        return standardize_address(owner)

    def token_uri(self, token_id: int) -> str:
        try:
            return self.contract.functions.tokenURI(token_id).call()
        except Exception as e:
            raise EventQueryError(f"Failed to resolve URI of token {token_id}") from e

    def name(self) -> str:
        try:
            return self.contract.functions.name().call()
        except Exception as e:
            raise EventQueryError("Failed to resolve collection name") from e
