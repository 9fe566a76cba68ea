from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from reconstructors.marketplace.marketplace_enums import EventKind
from utils.general_utils import standardize_address

# Indexed-argument filters, keyed by the ABI argument name
EventFilters = Dict[str, Any]


class LedgerUnavailableError(Exception):
    pass


class EventQueryError(Exception):
    pass


@dataclass(frozen=True)
class MarketContext:
    """
    Which collection and marketplace a reconstruction pass runs against.
    Passed explicitly into every pass so concurrent passes never share it.
    """

    collection_address: str
    marketplace_address: Optional[str] = None
    # Restricts materialization to one wallet's inventory
    owner_address: Optional[str] = None
    from_block: int = 0

    def __post_init__(self):
        object.__setattr__(
            self, "collection_address", standardize_address(self.collection_address)
        )
        if self.marketplace_address:
            object.__setattr__(
                self,
                "marketplace_address",
                standardize_address(self.marketplace_address),
            )
        if self.owner_address:
            object.__setattr__(
                self, "owner_address", standardize_address(self.owner_address)
            )


@dataclass(frozen=True)
class LedgerEvent:
    kind: EventKind
    block_number: int
    log_index: int
    # Seconds since epoch of the block that included the event
    block_timestamp: int
    # Event arguments in ABI order
    args: Tuple[Any, ...]
    transaction_hash: str = field(default="")

    @property
    def order(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


class EventSource(ABC):
    # Returns every historical occurrence of the event kind, sorted by ledger order.
    # Raises EventQueryError if the query fails.
    @abstractmethod
    def query_events(
        self, kind: EventKind, filters: Optional[EventFilters] = None
    ) -> List[LedgerEvent]:
        pass


class CollectionContract(ABC):
    """Point queries against the collection contract."""

    @abstractmethod
    def owner_of(self, token_id: int) -> str:
        pass

    @abstractmethod
    def token_uri(self, token_id: int) -> str:
        pass

    @abstractmethod
    def name(self) -> str:
        pass


class Ledger(ABC):
    # Raises LedgerUnavailableError when the ledger cannot be reached at all.
    # This is the only failure that aborts a reconstruction pass.
    @abstractmethod
    def ensure_reachable(self) -> None:
        pass

    @abstractmethod
    def event_source(self, context: MarketContext) -> EventSource:
        pass

    @abstractmethod
    def collection(self, context: MarketContext) -> CollectionContract:
        pass
