import logging

from time import perf_counter
from typing import Iterable, List

from reconstructors.marketplace.marketplace_enums import ActivityType, EventKind
from reconstructors.marketplace.marketplace_models import ActivityItem
from reconstructors.marketplace.marketplace_parser import get_item_sold, get_new_bid
from utils.general_utils import convert_block_timestamp_to_datetime, format_units
from utils.ledger_source import EventSource, LedgerEvent, MarketContext
from utils.metrics import ACTIVITY_ITEMS_GAUGE, EVENT_QUERY_FAILURES_COUNTER
from utils.reconstructor_name import ReconstructorName

RECONSTRUCTOR_NAME = ReconstructorName.ACTIVITY_AGGREGATOR.value


def get_activity_id(event: LedgerEvent) -> str:
    return f"{event.transaction_hash}-{event.log_index}"


def sale_to_activity(event: LedgerEvent, marketplace_address: str) -> ActivityItem:
    item_sold = get_item_sold(event)
    return ActivityItem(
        id=get_activity_id(event),
        type=ActivityType.SALE,
        item_id=str(item_sold["item_id"]),
        price=format_units(item_sold["price"]),
        from_address=marketplace_address,
        to_address=item_sold["buyer"],
        timestamp=convert_block_timestamp_to_datetime(event.block_timestamp),
        transaction_hash=event.transaction_hash,
    )


def bid_to_activity(event: LedgerEvent, marketplace_address: str) -> ActivityItem:
    new_bid = get_new_bid(event)
    return ActivityItem(
        id=get_activity_id(event),
        type=ActivityType.BID,
        item_id=str(new_bid["auction_id"]),
        price=format_units(new_bid["amount"]),
        from_address=new_bid["bidder"],
        to_address=marketplace_address,
        timestamp=convert_block_timestamp_to_datetime(event.block_timestamp),
        transaction_hash=event.transaction_hash,
    )


def aggregate_activity(
    item_sold_events: Iterable[LedgerEvent],
    new_bid_events: Iterable[LedgerEvent],
    marketplace_address: str,
) -> List[ActivityItem]:
    activity = [
        sale_to_activity(event, marketplace_address) for event in item_sold_events
    ] + [bid_to_activity(event, marketplace_address) for event in new_bid_events]
    # sorted() is stable, equal timestamps keep their discovery order
    return sorted(activity, key=lambda item: item.timestamp, reverse=True)


def fetch_activity(event_source: EventSource, context: MarketContext) -> List[ActivityItem]:
    """
    Newest-first feed of sales and bids. The feed is informational, so any
    failure yields an empty feed rather than an error.
    """
    if not context.marketplace_address:
        logging.warning(
            "[Reconstructor] No marketplace configured; activity feed is empty",
            extra={"reconstructor_name": RECONSTRUCTOR_NAME},
        )
        return []

    start_time = perf_counter()
    kind = EventKind.ITEM_SOLD
    try:
        item_sold_events = event_source.query_events(kind)
        kind = EventKind.NEW_BID
        new_bid_events = event_source.query_events(kind)
        activity = aggregate_activity(
            item_sold_events, new_bid_events, context.marketplace_address
        )
    except Exception as e:
        EVENT_QUERY_FAILURES_COUNTER.labels(
            reconstructor_name=RECONSTRUCTOR_NAME, event_kind=kind.value
        ).inc()
        logging.warning(
            "[Reconstructor] Failed to build activity feed; returning empty feed",
            extra={
                "reconstructor_name": RECONSTRUCTOR_NAME,
                "event_kind": kind.value,
                "marketplace_address": context.marketplace_address,
                "error": str(e),
            },
        )
        return []

    ACTIVITY_ITEMS_GAUGE.labels(reconstructor_name=RECONSTRUCTOR_NAME).set(
        len(activity)
    )
    logging.info(
        "[Reconstructor] Activity feed aggregated",
        extra={
            "reconstructor_name": RECONSTRUCTOR_NAME,
            "marketplace_address": context.marketplace_address,
            "num_of_activity_items": len(activity),
            "duration_in_secs": str(format(perf_counter() - start_time, ".8f")),
        },
    )
    return activity
