from abc import ABC, abstractmethod
from typing import Any, Optional

from utils.ledger_source import MarketContext


class Reconstructor(ABC):
    # Name of the reconstructor for status logging and metric labels
    @abstractmethod
    def name(self) -> str:
        pass

    # Rebuilds the full state for the context from ledger history.
    # A None context means nothing is configured and yields an empty result.
    # Only an unreachable ledger raises; every other failure degrades the result.
    @abstractmethod
    def refresh(self, context: Optional[MarketContext]) -> Any:
        pass
