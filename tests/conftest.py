import pytest

from fakes import COLLECTION, MARKETPLACE, WALLET
from utils.ledger_source import MarketContext


@pytest.fixture
def context() -> MarketContext:
    return MarketContext(
        collection_address=COLLECTION, marketplace_address=MARKETPLACE
    )


@pytest.fixture
def wallet_context() -> MarketContext:
    return MarketContext(
        collection_address=COLLECTION,
        marketplace_address=MARKETPLACE,
        owner_address=WALLET,
    )
