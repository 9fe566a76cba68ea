from reconstructors.marketplace.marketplace_enums import EventKind


def _event_abi(name: str, inputs: list[tuple[str, str, bool]]) -> dict:
    return {
        "anonymous": False,
        "name": name,
        "type": "event",
        "inputs": [
            {"indexed": indexed, "name": input_name, "type": input_type}
            for input_name, input_type, indexed in inputs
        ],
    }


def _view_function_abi(
    name: str, inputs: list[tuple[str, str]], output_type: str
) -> dict:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": input_name, "type": input_type}
            for input_name, input_type in inputs
        ],
        "outputs": [{"name": "", "type": output_type}],
    }


TRANSFER_EVENT_ABI = _event_abi(
    EventKind.TRANSFER.value,
    [
        ("from", "address", True),
        ("to", "address", True),
        ("tokenId", "uint256", True),
    ],
)

ITEM_LISTED_EVENT_ABI = _event_abi(
    EventKind.ITEM_LISTED.value,
    [
        ("itemId", "uint256", True),
        ("nftContract", "address", True),
        ("tokenId", "uint256", False),
        ("price", "uint256", False),
        ("seller", "address", False),
    ],
)

AUCTION_CREATED_EVENT_ABI = _event_abi(
    EventKind.AUCTION_CREATED.value,
    [
        ("auctionId", "uint256", True),
        ("nftContract", "address", True),
        ("tokenId", "uint256", False),
        ("minPrice", "uint256", False),
        ("endTime", "uint256", False),
        ("seller", "address", False),
    ],
)

NEW_BID_EVENT_ABI = _event_abi(
    EventKind.NEW_BID.value,
    [
        ("auctionId", "uint256", True),
        ("bidder", "address", True),
        ("amount", "uint256", False),
    ],
)

AUCTION_ENDED_EVENT_ABI = _event_abi(
    EventKind.AUCTION_ENDED.value,
    [
        ("auctionId", "uint256", True),
        ("winner", "address", False),
        ("amount", "uint256", False),
    ],
)

ITEM_SOLD_EVENT_ABI = _event_abi(
    EventKind.ITEM_SOLD.value,
    [
        ("itemId", "uint256", True),
        ("buyer", "address", True),
        ("price", "uint256", False),
    ],
)

NFT_ABI = [
    TRANSFER_EVENT_ABI,
    _view_function_abi("ownerOf", [("tokenId", "uint256")], "address"),
    _view_function_abi("tokenURI", [("tokenId", "uint256")], "string"),
    _view_function_abi("name", [], "string"),
]

EVENT_ABIS = {
    EventKind.TRANSFER: TRANSFER_EVENT_ABI,
    EventKind.ITEM_LISTED: ITEM_LISTED_EVENT_ABI,
    EventKind.AUCTION_CREATED: AUCTION_CREATED_EVENT_ABI,
    EventKind.NEW_BID: NEW_BID_EVENT_ABI,
    EventKind.AUCTION_ENDED: AUCTION_ENDED_EVENT_ABI,
    EventKind.ITEM_SOLD: ITEM_SOLD_EVENT_ABI,
}

# Emitted by the collection contract; every other kind comes from the marketplace
COLLECTION_EVENT_KINDS = set([EventKind.TRANSFER])

DEFAULT_TICKER = "NFT"
RARITY_TRAIT_TYPE = "Rarity"
ORGANIZATION_TRAIT_TYPE = "Organization"
UNKNOWN_COLLECTION_NAME = "Unknown"
UNLISTED_PRICE = "0"
