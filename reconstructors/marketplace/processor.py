import logging

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional

from reconstructors.marketplace.activity_aggregator import fetch_activity
from reconstructors.marketplace.asset_materializer import (
    DEFAULT_NUM_CONCURRENT_FETCH_TASKS,
    fetch_assets,
)
from reconstructors.marketplace.market_state import fetch_market_state
from reconstructors.marketplace.marketplace_models import (
    ActivityItem,
    Asset,
    MarketState,
    activity_item_to_dict,
    asset_to_dict,
)
from utils.content_utils import ContentResolver
from utils.ledger_source import Ledger, MarketContext
from utils.metrics import REFRESH_DURATION_GAUGE
from utils.reconstructor import Reconstructor
from utils.reconstructor_name import ReconstructorName


@dataclass
class ReconstructionResult:
    assets: List[Asset] = field(default_factory=list)
    activity: List[ActivityItem] = field(default_factory=list)
    market_state: MarketState = field(default_factory=MarketState)
    duration_in_secs: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assets": [asset_to_dict(asset) for asset in self.assets],
            "activity": [activity_item_to_dict(item) for item in self.activity],
        }


class MarketplaceReconstructor(Reconstructor):
    def __init__(
        self,
        ledger: Ledger,
        content_resolver: ContentResolver,
        num_concurrent_fetch_tasks: int = DEFAULT_NUM_CONCURRENT_FETCH_TASKS,
    ):
        self.ledger = ledger
        self.content_resolver = content_resolver
        self.num_concurrent_fetch_tasks = num_concurrent_fetch_tasks

    def name(self) -> str:
        return ReconstructorName.MARKETPLACE_RECONSTRUCTOR.value

    def refresh(self, context: Optional[MarketContext]) -> ReconstructionResult:
        if context is None:
            logging.warning(
                "[Reconstructor] No collection configured; nothing to reconstruct",
                extra={"reconstructor_name": self.name()},
            )
            return ReconstructionResult()

        start_time = perf_counter()
        self.ledger.ensure_reachable()
        event_source = self.ledger.event_source(context)
        collection = self.ledger.collection(context)

        # Market state and activity are independent; assets need the market state
        with ThreadPoolExecutor(max_workers=2) as executor:
            market_state_future = executor.submit(
                fetch_market_state, event_source, context
            )
            activity_future = executor.submit(fetch_activity, event_source, context)

            market_state = market_state_future.result()
            assets = fetch_assets(
                event_source,
                collection,
                self.content_resolver,
                context,
                market_state,
                self.num_concurrent_fetch_tasks,
            )
            activity = activity_future.result()

        duration_in_secs = perf_counter() - start_time
        REFRESH_DURATION_GAUGE.labels(reconstructor_name=self.name()).set(
            duration_in_secs
        )
        logging.info(
            "[Reconstructor] Finished reconstruction pass",
            extra={
                "reconstructor_name": self.name(),
                "collection_address": context.collection_address,
                "marketplace_address": context.marketplace_address,
                "owner_address": context.owner_address,
                "num_of_assets": len(assets),
                "num_of_activity_items": len(activity),
                "duration_in_secs": str(format(duration_in_secs, ".8f")),
            },
        )
        return ReconstructionResult(
            assets=assets,
            activity=activity,
            market_state=market_state,
            duration_in_secs=duration_in_secs,
        )
