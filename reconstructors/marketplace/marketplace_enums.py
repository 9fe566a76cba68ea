from enum import Enum


class EventKind(Enum):
    TRANSFER = "Transfer"
    ITEM_LISTED = "ItemListed"
    AUCTION_CREATED = "AuctionCreated"
    NEW_BID = "NewBid"
    AUCTION_ENDED = "AuctionEnded"
    ITEM_SOLD = "ItemSold"


class ActivityType(Enum):
    SALE = "SALE"
    BID = "BID"


class Rarity(Enum):
    COMMON = "Common"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
