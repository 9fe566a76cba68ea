from typing import Optional
from typing_extensions import TypedDict

from reconstructors.marketplace.marketplace_constants import (
    DEFAULT_TICKER,
    RARITY_TRAIT_TYPE,
)
from reconstructors.marketplace.marketplace_enums import EventKind, Rarity
from reconstructors.marketplace.marketplace_models import AssetMetadata
from utils.general_utils import standardize_address
from utils.ledger_source import LedgerEvent


class TransferEvent(TypedDict):
    from_address: str
    to_address: str
    token_id: int


class ItemListedEvent(TypedDict):
    listing_id: int
    collection_address: str
    token_id: int
    price: int
    seller: str


class AuctionCreatedEvent(TypedDict):
    auction_id: int
    collection_address: str
    token_id: int
    minimum_price: int
    end_time: int
    seller: str


class NewBidEvent(TypedDict):
    auction_id: int
    bidder: str
    amount: int


class ItemSoldEvent(TypedDict):
    item_id: int
    buyer: str
    price: int


def check_event_kind(event: LedgerEvent, kind: EventKind) -> None:
    if event.kind != kind:
        raise ValueError(f"Expected a {kind.value} event, got {event.kind.value}")


def get_transfer(event: LedgerEvent) -> TransferEvent:
    check_event_kind(event, EventKind.TRANSFER)
    from_address, to_address, token_id = event.args
    return {
        "from_address": standardize_address(from_address),
        "to_address": standardize_address(to_address),
        "token_id": int(token_id),
    }


def get_item_listed(event: LedgerEvent) -> ItemListedEvent:
    check_event_kind(event, EventKind.ITEM_LISTED)
    listing_id, collection_address, token_id, price, seller = event.args
    return {
        "listing_id": int(listing_id),
        "collection_address": standardize_address(collection_address),
        "token_id": int(token_id),
        "price": int(price),
        "seller": standardize_address(seller),
    }


def get_auction_created(event: LedgerEvent) -> AuctionCreatedEvent:
    check_event_kind(event, EventKind.AUCTION_CREATED)
    (
        auction_id,
        collection_address,
        token_id,
        minimum_price,
        end_time,
        seller,
    ) = event.args
    return {
        "auction_id": int(auction_id),
        "collection_address": standardize_address(collection_address),
        "token_id": int(token_id),
        "minimum_price": int(minimum_price),
        "end_time": int(end_time),
        "seller": standardize_address(seller),
    }


def get_new_bid(event: LedgerEvent) -> NewBidEvent:
    check_event_kind(event, EventKind.NEW_BID)
    auction_id, bidder, amount = event.args
    return {
        "auction_id": int(auction_id),
        "bidder": standardize_address(bidder),
        "amount": int(amount),
    }


def get_ended_auction_id(event: LedgerEvent) -> int:
    # Winner and final amount are not needed to know the auction is over
    check_event_kind(event, EventKind.AUCTION_ENDED)
    return int(event.args[0])


def get_item_sold(event: LedgerEvent) -> ItemSoldEvent:
    check_event_kind(event, EventKind.ITEM_SOLD)
    item_id, buyer, price = event.args
    return {
        "item_id": int(item_id),
        "buyer": standardize_address(buyer),
        "price": int(price),
    }


def get_trait_value(document: dict, trait_type: str) -> Optional[str]:
    for attribute in document.get("attributes") or []:
        if isinstance(attribute, dict) and attribute.get("trait_type") == trait_type:
            return attribute.get("value")
    return None


def get_asset_metadata(document: dict) -> AssetMetadata:
    """
    Normalizes a token metadata document. Missing ticker and rarity fall back to
    defaults; a rarity outside the known set raises ValueError.
    """
    rarity = (
        document.get("rarity")
        or get_trait_value(document, RARITY_TRAIT_TYPE)
        or Rarity.COMMON.value
    )
    return AssetMetadata(
        name=document.get("name") or "",
        ticker=document.get("ticker") or DEFAULT_TICKER,
        description=document.get("description") or "",
        rarity=Rarity(rarity),
    )
