from enum import Enum


class ReconstructorName(Enum):
    MARKETPLACE_RECONSTRUCTOR = "marketplace_reconstructor"
    MARKET_STATE = "market_state_reconstructor"
    ASSET_MATERIALIZER = "asset_materializer"
    ACTIVITY_AGGREGATOR = "activity_aggregator"
