from typing import Dict, Iterable, List, Optional

from reconstructors.marketplace.marketplace_constants import EVENT_ABIS
from reconstructors.marketplace.marketplace_enums import EventKind
from utils.content_utils import ContentResolutionError, resolve_content
from utils.general_utils import ZERO_ADDRESS, standardize_address
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

MARKETPLACE = "0x00000000000000000000000000000000000000aa"
COLLECTION = "0x00000000000000000000000000000000000000cc"
OTHER_COLLECTION = "0x00000000000000000000000000000000000000dd"
SELLER = "0x0000000000000000000000000000000000000005"
BIDDER = "0x000000000000000000000000000000000000000b"
BUYER = "0x0000000000000000000000000000000000000b0b"
WALLET = "0x0000000000000000000000000000000000000001"
MINTER = ZERO_ADDRESS

GATEWAY_URL = "https://gateway.test/ipfs/"
BASE_TIMESTAMP = 1_700_000_000
ETHER = 10**18


def make_event(
    kind: EventKind,
    block_number: int,
    *args,
    log_index: int = 0,
    block_timestamp: Optional[int] = None,
) -> LedgerEvent:
    return LedgerEvent(
        kind=kind,
        block_number=block_number,
        log_index=log_index,
        block_timestamp=(
            BASE_TIMESTAMP + block_number if block_timestamp is None else block_timestamp
        ),
        args=tuple(args),
        transaction_hash="0x" + format(block_number * 1000 + log_index, "064x"),
    )


def transfer(block_number: int, token_id: int, to_address: str, **kwargs) -> LedgerEvent:
    return make_event(
        EventKind.TRANSFER, block_number, MINTER, to_address, token_id, **kwargs
    )


def item_listed(
    block_number: int,
    token_id: int,
    price: int,
    seller: str = SELLER,
    listing_id: int = 1,
    collection_address: str = COLLECTION,
    **kwargs,
) -> LedgerEvent:
    return make_event(
        EventKind.ITEM_LISTED,
        block_number,
        listing_id,
        collection_address,
        token_id,
        price,
        seller,
        **kwargs,
    )


def auction_created(
    block_number: int,
    auction_id: int,
    token_id: int,
    minimum_price: int,
    seller: str = SELLER,
    end_time: int = BASE_TIMESTAMP + 86400,
    collection_address: str = COLLECTION,
    **kwargs,
) -> LedgerEvent:
    return make_event(
        EventKind.AUCTION_CREATED,
        block_number,
        auction_id,
        collection_address,
        token_id,
        minimum_price,
        end_time,
        seller,
        **kwargs,
    )


def new_bid(
    block_number: int, auction_id: int, amount: int, bidder: str = BIDDER, **kwargs
) -> LedgerEvent:
    return make_event(
        EventKind.NEW_BID, block_number, auction_id, bidder, amount, **kwargs
    )


def auction_ended(block_number: int, auction_id: int, **kwargs) -> LedgerEvent:
    return make_event(
        EventKind.AUCTION_ENDED, block_number, auction_id, BIDDER, 0, **kwargs
    )


def item_sold(
    block_number: int, item_id: int, price: int, buyer: str = BUYER, **kwargs
) -> LedgerEvent:
    return make_event(EventKind.ITEM_SOLD, block_number, item_id, buyer, price, **kwargs)


def normalize_filter_value(value):
    if isinstance(value, str):
        return standardize_address(value)
    return value


class FakeEventSource(EventSource):
    def __init__(
        self,
        events: Iterable[LedgerEvent] = (),
        failing_kinds: Iterable[EventKind] = (),
    ):
        self.events = list(events)
        self.failing_kinds = set(failing_kinds)
        self.queries: List[tuple] = []

    def query_events(
        self, kind: EventKind, filters: Optional[EventFilters] = None
    ) -> List[LedgerEvent]:
        self.queries.append((kind, filters))
        if kind in self.failing_kinds:
            raise EventQueryError(f"{kind.value} query failed")

        names = [abi_input["name"] for abi_input in EVENT_ABIS[kind]["inputs"]]
        matched = []
        for event in self.events:
            if event.kind != kind:
                continue
            if all(
                normalize_filter_value(event.args[names.index(name)])
                == normalize_filter_value(value)
                for name, value in (filters or {}).items()
                if value is not None
            ):
                matched.append(event)
        return sorted(matched, key=lambda event: event.order)


class FakeCollection(CollectionContract):
    def __init__(
        self,
        owners: Dict[int, str],
        uris: Optional[Dict[int, str]] = None,
        collection_name: Optional[str] = "Obsidian Syndicate",
    ):
        self.owners = owners
        self.uris = uris or {}
        self.collection_name = collection_name

    def owner_of(self, token_id: int) -> str:
        if token_id not in self.owners:
            raise EventQueryError(f"Token {token_id} does not exist")
        return standardize_address(self.owners[token_id])

    def token_uri(self, token_id: int) -> str:
        return self.uris.get(token_id, f"ipfs://meta-{token_id}")

    def name(self) -> str:
        if self.collection_name is None:
            raise EventQueryError("name() reverted")
        return self.collection_name


def default_document(uri: str) -> dict:
    return {
        "name": f"Artifact {uri.rsplit('-', 1)[-1]}",
        "ticker": "OBS",
        "description": "Genesis Block Artifact",
        "rarity": "Legendary",
        "image": "ipfs://image-cid",
    }


class FakeContentResolver:
    def __init__(
        self,
        documents: Optional[Dict[str, dict]] = None,
        failing_uris: Iterable[str] = (),
    ):
        self.documents = documents or {}
        self.failing_uris = set(failing_uris)

    def resolve(self, locator: Optional[str]) -> Optional[str]:
        return resolve_content(locator, GATEWAY_URL)

    def fetch_document(self, uri: str) -> dict:
        if uri in self.failing_uris:
            raise ContentResolutionError(f"Failed to fetch document at {uri}")
        return self.documents.get(uri) or default_document(uri)


class FakeLedger(Ledger):
    def __init__(
        self,
        event_source: FakeEventSource,
        collection: FakeCollection,
        reachable: bool = True,
    ):
        self.fake_event_source = event_source
        self.fake_collection = collection
        self.reachable = reachable

    def ensure_reachable(self) -> None:
        if not self.reachable:
            raise LedgerUnavailableError("Ledger endpoint is not reachable")

    def event_source(self, context: MarketContext) -> FakeEventSource:
        return self.fake_event_source

    def collection(self, context: MarketContext) -> FakeCollection:
        return self.fake_collection


def gateway_uri(token_id: int) -> str:
    return f"{GATEWAY_URL}meta-{token_id}"
