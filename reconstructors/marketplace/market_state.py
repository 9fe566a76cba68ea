import logging

from time import perf_counter
from typing import Dict, Iterable, List, Optional, Set, Tuple

from reconstructors.marketplace.marketplace_enums import EventKind
from reconstructors.marketplace.marketplace_models import Auction, Listing, MarketState
from reconstructors.marketplace.marketplace_parser import (
    NewBidEvent,
    get_auction_created,
    get_ended_auction_id,
    get_item_listed,
    get_item_sold,
    get_new_bid,
)
from utils.ledger_source import EventSource, LedgerEvent, MarketContext
from utils.metrics import EVENT_QUERY_FAILURES_COUNTER
from utils.reconstructor_name import ReconstructorName

RECONSTRUCTOR_NAME = ReconstructorName.MARKET_STATE.value


def in_ledger_order(events: Iterable[LedgerEvent]) -> List[LedgerEvent]:
    return sorted(events, key=lambda event: event.order)


def get_sale_orders(item_sold_events: Iterable[LedgerEvent]) -> Dict[int, Tuple[int, int]]:
    # Latest sale position per marketplace item id
    sale_orders: Dict[int, Tuple[int, int]] = {}
    for event in in_ledger_order(item_sold_events):
        sale_orders[get_item_sold(event)["item_id"]] = event.order
    return sale_orders


def fold_listings(
    item_listed_events: Iterable[LedgerEvent],
    collection_address: Optional[str] = None,
    item_sold_events: Iterable[LedgerEvent] = (),
) -> Dict[int, Listing]:
    sale_orders = get_sale_orders(item_sold_events)
    listings: Dict[int, Listing] = {}
    for event in in_ledger_order(item_listed_events):
        item_listed = get_item_listed(event)
        if collection_address and item_listed["collection_address"] != collection_address:
            continue
        # A later sale of the listed item closes the listing
        sale_order = sale_orders.get(item_listed["listing_id"])
        if sale_order and sale_order > event.order:
            listings.pop(item_listed["token_id"], None)
            continue
        # A later listing of the same token replaces the earlier one
        listings[item_listed["token_id"]] = Listing(
            listing_id=item_listed["listing_id"],
            token_id=item_listed["token_id"],
            price=item_listed["price"],
            seller=item_listed["seller"],
        )
    return listings


def get_ended_auction_ids(auction_ended_events: Iterable[LedgerEvent]) -> Set[int]:
    return set(get_ended_auction_id(event) for event in auction_ended_events)


def get_latest_bids(new_bid_events: Iterable[LedgerEvent]) -> Dict[int, NewBidEvent]:
    # The last bid in ledger order is the standing one; amounts are not compared
    latest_bids: Dict[int, NewBidEvent] = {}
    for event in in_ledger_order(new_bid_events):
        new_bid = get_new_bid(event)
        latest_bids[new_bid["auction_id"]] = new_bid
    return latest_bids


def fold_auctions(
    auction_created_events: Iterable[LedgerEvent],
    new_bid_events: Iterable[LedgerEvent],
    auction_ended_events: Iterable[LedgerEvent],
    collection_address: Optional[str] = None,
) -> Dict[int, Auction]:
    ended_auction_ids = get_ended_auction_ids(auction_ended_events)
    latest_bids = get_latest_bids(new_bid_events)

    auctions: Dict[int, Auction] = {}
    for event in in_ledger_order(auction_created_events):
        auction_created = get_auction_created(event)
        auction_id = auction_created["auction_id"]
        if auction_id in ended_auction_ids:
            continue
        if (
            collection_address
            and auction_created["collection_address"] != collection_address
        ):
            continue

        latest_bid = latest_bids.get(auction_id)
        auctions[auction_created["token_id"]] = Auction(
            auction_id=auction_id,
            token_id=auction_created["token_id"],
            minimum_price=auction_created["minimum_price"],
            end_time=auction_created["end_time"],
            highest_bid=(
                latest_bid["amount"] if latest_bid else auction_created["minimum_price"]
            ),
            highest_bidder=latest_bid["bidder"] if latest_bid else None,
            seller=auction_created["seller"],
        )
    return auctions


def reconstruct_market_state(
    item_listed_events: Iterable[LedgerEvent],
    auction_created_events: Iterable[LedgerEvent],
    new_bid_events: Iterable[LedgerEvent],
    auction_ended_events: Iterable[LedgerEvent],
    collection_address: Optional[str] = None,
    item_sold_events: Iterable[LedgerEvent] = (),
) -> MarketState:
    return MarketState(
        listings=fold_listings(item_listed_events, collection_address, item_sold_events),
        auctions=fold_auctions(
            auction_created_events,
            new_bid_events,
            auction_ended_events,
            collection_address,
        ),
    )


def fetch_listings(event_source: EventSource, context: MarketContext) -> Dict[int, Listing]:
    kind = EventKind.ITEM_LISTED
    try:
        item_listed_events = event_source.query_events(
            kind, {"nftContract": context.collection_address}
        )
        # Sales carry no collection address; they are matched by item id
        kind = EventKind.ITEM_SOLD
        item_sold_events = event_source.query_events(kind)
        return fold_listings(
            item_listed_events, context.collection_address, item_sold_events
        )
    except Exception as e:
        log_index_degraded("listings", kind, context, e)
        return {}


def fetch_auctions(event_source: EventSource, context: MarketContext) -> Dict[int, Auction]:
    kind = EventKind.AUCTION_CREATED
    try:
        auction_created_events = event_source.query_events(
            kind, {"nftContract": context.collection_address}
        )
        kind = EventKind.NEW_BID
        new_bid_events = event_source.query_events(kind)
        kind = EventKind.AUCTION_ENDED
        auction_ended_events = event_source.query_events(kind)
        return fold_auctions(
            auction_created_events,
            new_bid_events,
            auction_ended_events,
            context.collection_address,
        )
    except Exception as e:
        log_index_degraded("auctions", kind, context, e)
        return {}


def fetch_market_state(event_source: EventSource, context: MarketContext) -> MarketState:
    """
    Builds the live listing and auction indexes for the context's collection.
    Never raises: an index whose events cannot be read is returned empty, which
    makes every asset in the collection appear unlisted.
    """
    if not context.marketplace_address:
        logging.warning(
            "[Reconstructor] No marketplace configured; treating every asset as unlisted",
            extra={
                "reconstructor_name": RECONSTRUCTOR_NAME,
                "collection_address": context.collection_address,
            },
        )
        return MarketState()

    start_time = perf_counter()
    market_state = MarketState(
        listings=fetch_listings(event_source, context),
        auctions=fetch_auctions(event_source, context),
    )
    logging.info(
        "[Reconstructor] Market state reconstructed",
        extra={
            "reconstructor_name": RECONSTRUCTOR_NAME,
            "collection_address": context.collection_address,
            "marketplace_address": context.marketplace_address,
            "num_of_listings": len(market_state.listings),
            "num_of_auctions": len(market_state.auctions),
            "duration_in_secs": str(format(perf_counter() - start_time, ".8f")),
        },
    )
    return market_state


def log_index_degraded(
    index_name: str, kind: EventKind, context: MarketContext, error: Exception
) -> None:
    EVENT_QUERY_FAILURES_COUNTER.labels(
        reconstructor_name=RECONSTRUCTOR_NAME, event_kind=kind.value
    ).inc()
    logging.warning(
        "[Reconstructor] Failed to rebuild index; degrading to empty",
        extra={
            "reconstructor_name": RECONSTRUCTOR_NAME,
            "index": index_name,
            "event_kind": kind.value,
            "collection_address": context.collection_address,
            "error": str(error),
        },
    )
