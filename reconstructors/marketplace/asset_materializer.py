import logging

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from time import perf_counter
from typing import Iterable, List, Optional, Set

from reconstructors.marketplace.marketplace_constants import (
    ORGANIZATION_TRAIT_TYPE,
    UNKNOWN_COLLECTION_NAME,
    UNLISTED_PRICE,
)
from reconstructors.marketplace.marketplace_enums import EventKind
from reconstructors.marketplace.marketplace_models import (
    Asset,
    AuctionSnapshot,
    MarketState,
)
from reconstructors.marketplace.marketplace_parser import (
    get_asset_metadata,
    get_trait_value,
    get_transfer,
)
from utils.content_utils import ContentResolutionError, ContentResolver
from utils.general_utils import (
    addresses_equal,
    convert_block_timestamp_to_datetime,
    format_units,
)
from utils.ledger_source import (
    CollectionContract,
    EventSource,
    LedgerEvent,
    MarketContext,
)
from utils.metrics import (
    EVENT_QUERY_FAILURES_COUNTER,
    EXCLUDED_ASSETS_COUNTER,
    RECONSTRUCTED_ASSETS_GAUGE,
)
from utils.reconstructor_name import ReconstructorName

RECONSTRUCTOR_NAME = ReconstructorName.ASSET_MATERIALIZER.value
DEFAULT_NUM_CONCURRENT_FETCH_TASKS = 10


@dataclass(frozen=True)
class SaleTerms:
    is_listed: bool
    price: str
    seller: Optional[str]
    auction: Optional[AuctionSnapshot]


UNLISTED = SaleTerms(is_listed=False, price=UNLISTED_PRICE, seller=None, auction=None)


def latest_transfers(transfer_events: Iterable[LedgerEvent]) -> List[LedgerEvent]:
    """
    Walks the transfer history newest first and keeps only the first transfer
    seen for each token, i.e. the one with the highest ledger order.
    """
    seen_token_ids: Set[int] = set()
    latest: List[LedgerEvent] = []
    ordered = sorted(transfer_events, key=lambda event: event.order)
    for event in reversed(ordered):
        try:
            token_id = get_transfer(event)["token_id"]
        except Exception as e:
            EXCLUDED_ASSETS_COUNTER.labels(reconstructor_name=RECONSTRUCTOR_NAME).inc()
            logging.warning(
                "[Reconstructor] Skipping malformed transfer event",
                extra={
                    "reconstructor_name": RECONSTRUCTOR_NAME,
                    "block_number": event.block_number,
                    "log_index": event.log_index,
                    "error": str(e),
                },
            )
            continue
        if token_id in seen_token_ids:
            continue
        seen_token_ids.add(token_id)
        latest.append(event)
    return latest


def get_sale_terms(
    token_id: int,
    owner: str,
    market_state: MarketState,
    marketplace_address: Optional[str],
) -> SaleTerms:
    # Only an asset held by the marketplace can be for sale; stale index
    # entries for anything else are ignored
    if not addresses_equal(owner, marketplace_address):
        return UNLISTED

    # Auction state wins over a fixed-price listing for the same token
    auction = market_state.auctions.get(token_id)
    if auction:
        return SaleTerms(
            is_listed=True,
            price=format_units(auction.highest_bid),
            seller=auction.seller,
            auction=AuctionSnapshot(
                auction_id=str(auction.auction_id),
                end_time=convert_block_timestamp_to_datetime(auction.end_time),
                highest_bid=format_units(auction.highest_bid),
                highest_bidder=auction.highest_bidder,
            ),
        )

    listing = market_state.listings.get(token_id)
    if listing:
        return SaleTerms(
            is_listed=True,
            price=format_units(listing.price),
            seller=listing.seller,
            auction=None,
        )

    # Held by the marketplace without discoverable terms: still reported
    return UNLISTED


def belongs_to_inventory(owner: str, sale_terms: SaleTerms, context: MarketContext) -> bool:
    if not context.owner_address:
        return True
    return addresses_equal(owner, context.owner_address) or addresses_equal(
        sale_terms.seller, context.owner_address
    )


def materialize_asset(
    transfer_event: LedgerEvent,
    market_state: MarketState,
    collection: CollectionContract,
    content_resolver: ContentResolver,
    context: MarketContext,
    collection_name: str,
) -> Optional[Asset]:
    token_id = get_transfer(transfer_event)["token_id"]

    # The transfer's recipient may be stale, the contract knows the current holder
    owner = collection.owner_of(token_id)
    sale_terms = get_sale_terms(
        token_id, owner, market_state, context.marketplace_address
    )
    if not belongs_to_inventory(owner, sale_terms, context):
        return None

    locator = collection.token_uri(token_id)
    uri = content_resolver.resolve(locator)
    if not uri:
        raise ContentResolutionError(f"Token {token_id} has no resolvable content locator")
    document = content_resolver.fetch_document(uri)

    return Asset(
        id=str(token_id),
        metadata=get_asset_metadata(document),
        image=content_resolver.resolve(document.get("image")),
        # Tokens of one collection can belong to different organizations
        collection=get_trait_value(document, ORGANIZATION_TRAIT_TYPE) or collection_name,
        timestamp=convert_block_timestamp_to_datetime(transfer_event.block_timestamp),
        owner=owner,
        price=sale_terms.price,
        seller=sale_terms.seller,
        is_listed=sale_terms.is_listed,
        auction=sale_terms.auction,
    )


def materialize_assets(
    transfer_events: Iterable[LedgerEvent],
    market_state: MarketState,
    collection: CollectionContract,
    content_resolver: ContentResolver,
    context: MarketContext,
    collection_name: str,
    num_concurrent_fetch_tasks: int = DEFAULT_NUM_CONCURRENT_FETCH_TASKS,
) -> List[Asset]:
    # Deduplication is an order-dependent fold and must finish before any fetch
    transfers = latest_transfers(transfer_events)

    def materialize_or_exclude(transfer_event: LedgerEvent) -> Optional[Asset]:
        try:
            return materialize_asset(
                transfer_event,
                market_state,
                collection,
                content_resolver,
                context,
                collection_name,
            )
        except Exception as e:
            EXCLUDED_ASSETS_COUNTER.labels(reconstructor_name=RECONSTRUCTOR_NAME).inc()
            logging.warning(
                "[Reconstructor] Failed to load asset; excluding it",
                extra={
                    "reconstructor_name": RECONSTRUCTOR_NAME,
                    "asset_id": str(transfer_event.args[2]),
                    "error": str(e),
                },
            )
            return None

    if not transfers:
        return []

    # map() keeps input order, so the output stays newest first
    with ThreadPoolExecutor(
        max_workers=max(1, min(num_concurrent_fetch_tasks, len(transfers)))
    ) as executor:
        results = list(executor.map(materialize_or_exclude, transfers))

    return [asset for asset in results if asset is not None]


def get_collection_name(collection: CollectionContract) -> str:
    try:
        return collection.name()
    except Exception as e:
        logging.warning(
            "[Reconstructor] Failed to resolve collection name",
            extra={"reconstructor_name": RECONSTRUCTOR_NAME, "error": str(e)},
        )
        return UNKNOWN_COLLECTION_NAME


def fetch_assets(
    event_source: EventSource,
    collection: CollectionContract,
    content_resolver: ContentResolver,
    context: MarketContext,
    market_state: MarketState,
    num_concurrent_fetch_tasks: int = DEFAULT_NUM_CONCURRENT_FETCH_TASKS,
) -> List[Asset]:
    start_time = perf_counter()
    filters = {"to": context.owner_address} if context.owner_address else None
    try:
        transfer_events = event_source.query_events(EventKind.TRANSFER, filters)
    except Exception as e:
        EVENT_QUERY_FAILURES_COUNTER.labels(
            reconstructor_name=RECONSTRUCTOR_NAME,
            event_kind=EventKind.TRANSFER.value,
        ).inc()
        logging.warning(
            "[Reconstructor] Failed to query transfer history; no assets materialized",
            extra={
                "reconstructor_name": RECONSTRUCTOR_NAME,
                "collection_address": context.collection_address,
                "error": str(e),
            },
        )
        return []

    assets = materialize_assets(
        transfer_events,
        market_state,
        collection,
        content_resolver,
        context,
        get_collection_name(collection),
        num_concurrent_fetch_tasks,
    )

    RECONSTRUCTED_ASSETS_GAUGE.labels(reconstructor_name=RECONSTRUCTOR_NAME).set(
        len(assets)
    )
    logging.info(
        "[Reconstructor] Assets materialized",
        extra={
            "reconstructor_name": RECONSTRUCTOR_NAME,
            "collection_address": context.collection_address,
            "num_of_transfers": len(transfer_events),
            "num_of_assets": len(assets),
            "duration_in_secs": str(format(perf_counter() - start_time, ".8f")),
        },
    )
    return assets
