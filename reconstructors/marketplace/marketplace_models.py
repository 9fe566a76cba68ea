import datetime

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from reconstructors.marketplace.marketplace_enums import ActivityType, Rarity


# Derived indexes. Amounts are kept in the smallest unit (wei) until materialization.
@dataclass(frozen=True)
class Listing:
    listing_id: int
    token_id: int
    price: int
    seller: str


@dataclass(frozen=True)
class Auction:
    auction_id: int
    token_id: int
    minimum_price: int
    end_time: int
    # Starts at minimum_price until the first bid
    highest_bid: int
    highest_bidder: Optional[str]
    seller: str


@dataclass
class MarketState:
    listings: Dict[int, Listing] = field(default_factory=dict)
    auctions: Dict[int, Auction] = field(default_factory=dict)


# Materialized records
@dataclass(frozen=True)
class AuctionSnapshot:
    auction_id: str
    end_time: datetime.datetime
    highest_bid: str
    highest_bidder: Optional[str]
    active: bool = True


@dataclass(frozen=True)
class AssetMetadata:
    name: str
    ticker: str
    description: str
    rarity: Rarity


@dataclass(frozen=True)
class Asset:
    id: str
    metadata: AssetMetadata
    image: Optional[str]
    collection: str
    timestamp: datetime.datetime
    # Authoritative holder: a wallet, or the marketplace while for sale
    owner: str
    price: str
    # Only set while listed or under auction
    seller: Optional[str]
    is_listed: bool
    auction: Optional[AuctionSnapshot] = None


@dataclass(frozen=True)
class ActivityItem:
    id: str
    type: ActivityType
    # Sale item id for SALE, auction id for BID
    item_id: str
    price: str
    from_address: str
    to_address: str
    timestamp: datetime.datetime
    transaction_hash: str


def to_epoch_millis(timestamp: datetime.datetime) -> int:
    return int(timestamp.timestamp() * 1000)


def auction_snapshot_to_dict(auction: AuctionSnapshot) -> Dict[str, Any]:
    return {
        "auctionId": auction.auction_id,
        "endTime": to_epoch_millis(auction.end_time),
        "highestBid": auction.highest_bid,
        "highestBidder": auction.highest_bidder,
        "active": auction.active,
    }


def asset_to_dict(asset: Asset) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "metadata": {
            "name": asset.metadata.name,
            "ticker": asset.metadata.ticker,
            "description": asset.metadata.description,
            "rarity": asset.metadata.rarity.value,
        },
        "image": asset.image,
        "org": asset.collection,
        "timestamp": to_epoch_millis(asset.timestamp),
        "price": asset.price,
        "owner": asset.owner,
        "seller": asset.seller,
        "isListed": asset.is_listed,
        "auction": auction_snapshot_to_dict(asset.auction) if asset.auction else None,
    }


def activity_item_to_dict(item: ActivityItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "type": item.type.value,
        "itemId": item.item_id,
        "price": item.price,
        "from": item.from_address,
        "to": item.to_address,
        "timestamp": to_epoch_millis(item.timestamp),
        "txHash": item.transaction_hash,
    }
