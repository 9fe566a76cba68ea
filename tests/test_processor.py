import pytest

from fakes import (
    ETHER,
    MARKETPLACE,
    SELLER,
    WALLET,
    FakeCollection,
    FakeContentResolver,
    FakeEventSource,
    FakeLedger,
    auction_created,
    gateway_uri,
    item_listed,
    item_sold,
    new_bid,
    transfer,
)
from reconstructors.marketplace.marketplace_enums import ActivityType, EventKind
from reconstructors.marketplace.processor import MarketplaceReconstructor
from utils.ledger_source import LedgerUnavailableError


def build_reconstructor(events, owners, failing_kinds=(), failing_uris=(), reachable=True):
    ledger = FakeLedger(
        FakeEventSource(events, failing_kinds=failing_kinds),
        FakeCollection(owners),
        reachable=reachable,
    )
    return MarketplaceReconstructor(
        ledger, FakeContentResolver(failing_uris=failing_uris), num_concurrent_fetch_tasks=4
    )


MARKET_EVENTS = [
    transfer(1, token_id=7, to_address=MARKETPLACE),
    item_listed(2, token_id=7, price=ETHER, seller=SELLER),
    transfer(3, token_id=8, to_address=WALLET),
    transfer(4, token_id=9, to_address=MARKETPLACE),
    auction_created(5, auction_id=1, token_id=9, minimum_price=ETHER // 10),
    new_bid(6, auction_id=1, amount=ETHER // 4),
    item_sold(7, item_id=3, price=2 * ETHER),
]
OWNERS = {7: MARKETPLACE, 8: WALLET, 9: MARKETPLACE}


def test_refresh_combines_assets_and_activity(context):
    reconstructor = build_reconstructor(MARKET_EVENTS, OWNERS)

    result = reconstructor.refresh(context)

    assert [asset.id for asset in result.assets] == ["9", "8", "7"]
    by_id = {asset.id: asset for asset in result.assets}
    assert by_id["7"].price == "1.0"
    assert by_id["8"].is_listed is False
    assert by_id["9"].price == "0.25"
    assert [item.type for item in result.activity] == [
        ActivityType.SALE,
        ActivityType.BID,
    ]
    assert set(result.market_state.listings.keys()) == {7}
    assert set(result.market_state.auctions.keys()) == {9}


def test_refresh_without_context_is_empty():
    reconstructor = build_reconstructor(MARKET_EVENTS, OWNERS)

    result = reconstructor.refresh(None)

    assert result.assets == []
    assert result.activity == []
    assert result.to_dict() == {"assets": [], "activity": []}


def test_unreachable_ledger_propagates(context):
    reconstructor = build_reconstructor(MARKET_EVENTS, OWNERS, reachable=False)

    with pytest.raises(LedgerUnavailableError):
        reconstructor.refresh(context)


def test_failed_listing_index_makes_assets_unlisted(context):
    reconstructor = build_reconstructor(
        MARKET_EVENTS, OWNERS, failing_kinds=[EventKind.ITEM_LISTED]
    )

    result = reconstructor.refresh(context)

    by_id = {asset.id: asset for asset in result.assets}
    assert by_id["7"].is_listed is False
    assert by_id["7"].price == "0"
    assert by_id["9"].is_listed is True


def test_failed_activity_queries_leave_assets_intact(context):
    reconstructor = build_reconstructor(
        MARKET_EVENTS, OWNERS, failing_kinds=[EventKind.ITEM_SOLD]
    )

    result = reconstructor.refresh(context)

    assert result.activity == []
    assert len(result.assets) == 3


def test_single_content_failure_only_drops_that_asset(context):
    reconstructor = build_reconstructor(
        MARKET_EVENTS, OWNERS, failing_uris=[gateway_uri(8)]
    )

    result = reconstructor.refresh(context)

    assert [asset.id for asset in result.assets] == ["9", "7"]


def test_wallet_refresh_only_returns_inventory(wallet_context):
    reconstructor = build_reconstructor(MARKET_EVENTS, OWNERS)

    result = reconstructor.refresh(wallet_context)

    assert [asset.id for asset in result.assets] == ["8"]


def test_result_serializes_to_camel_case(context):
    reconstructor = build_reconstructor(MARKET_EVENTS, OWNERS)

    serialized = reconstructor.refresh(context).to_dict()

    auctioned = serialized["assets"][0]
    assert auctioned["id"] == "9"
    assert auctioned["isListed"] is True
    assert auctioned["org"] == "Obsidian Syndicate"
    assert auctioned["metadata"]["rarity"] == "Legendary"
    assert auctioned["auction"]["auctionId"] == "1"
    assert auctioned["auction"]["highestBid"] == "0.25"
    assert serialized["activity"][0]["type"] == ActivityType.SALE.value
    assert serialized["activity"][0]["from"] == MARKETPLACE


def test_repeated_refresh_is_identical(context):
    events = MARKET_EVENTS + [
        transfer(10 + token_id, token_id=token_id, to_address=WALLET)
        for token_id in range(20, 40)
    ]
    owners = {**OWNERS, **{token_id: WALLET for token_id in range(20, 40)}}
    reconstructor = build_reconstructor(events, owners)

    first = reconstructor.refresh(context).to_dict()
    second = reconstructor.refresh(context).to_dict()

    assert first == second
    assert len(first["assets"]) == 23
    assert [asset["id"] for asset in first["assets"]][:3] == ["39", "38", "37"]
