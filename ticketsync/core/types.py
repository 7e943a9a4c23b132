"""
Core types for the chain-to-store synchronization engine.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, Optional, Type, Union

# The zero address marks mints in ERC-721 Transfer logs
# and the native coin as a payment token.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(address: str) -> str:
    """
    Normalize a chain address for storage and comparison.

    :param address: The address in any case.
    :return: The lower-cased address.
    """
    if not isinstance(address, str) or not address:
        raise ValueError(f"Invalid address: {address!r}")
    return address.strip().lower()


class ContractCategory(str, Enum):
    """
    Category of a watched contract.
    Handlers are registered per category, not per address.
    """

    EVENT_MANAGER = "EventManager"
    TICKET_MANAGER = "TicketManager"
    MARKETPLACE = "Marketplace"
    TOKEN_SWAP = "TokenSwap"


@dataclass(frozen=True)
class WatchedContract:
    """
    A deployed contract the engine mirrors into the store.
    """

    category: ContractCategory
    address: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))


@dataclass(frozen=True)
class LogRef:
    """
    Position of a log on chain.
    """

    block_number: int
    log_index: int
    transaction_hash: str


@dataclass(frozen=True)
class EventCreated:
    """
    A ticketed event was registered on chain.
    """

    event_id: int
    organizer: str
    name: str
    max_tickets: int
    ticket_price: int
    ref: LogRef

    kind = "EventCreated"


@dataclass(frozen=True)
class TicketMinted:
    """
    A ticket token was minted for an event.
    """

    token_id: int
    event_id: int
    to: str
    seat_number: str
    ref: LogRef

    kind = "TicketMinted"


@dataclass(frozen=True)
class TicketTransferred:
    """
    A ticket token changed owner.
    """

    from_address: str
    to: str
    token_id: int
    ref: LogRef

    kind = "TicketTransferred"

    @property
    def is_mint(self) -> bool:
        """True for the Transfer paired with a mint (from the zero address)."""
        return self.from_address == ZERO_ADDRESS


@dataclass(frozen=True)
class OrderCreated:
    """
    A primary-market ticket purchase.
    """

    order_id: str
    buyer: str
    event_id: int
    price: int
    ref: LogRef

    kind = "OrderCreated"


DomainEvent = Union[EventCreated, TicketMinted, TicketTransferred, OrderCreated]

_EVENT_TYPES: Dict[str, Type] = {
    t.kind: t for t in (EventCreated, TicketMinted, TicketTransferred, OrderCreated)
}


def domain_event_to_dict(event: DomainEvent) -> dict:
    """
    Serialize a domain event into a JSON-compatible dict.

    :param event: The domain event.
    :return: The dict carrying the event kind and fields.
    """
    return {"kind": event.kind, "fields": asdict(event)}


def domain_event_from_dict(data: dict) -> DomainEvent:
    """
    Rebuild a domain event serialized by domain_event_to_dict().

    :param data: The serialized event.
    :return: The domain event.
    """
    event_type = _EVENT_TYPES.get(data.get("kind"))
    if event_type is None:
        raise ValueError(f"Unknown domain event kind: {data.get('kind')!r}")
    fields = dict(data["fields"])
    fields["ref"] = LogRef(**fields["ref"])
    return event_type(**fields)


@dataclass
class ContractSyncResult:
    """
    Outcome of syncing one contract in one pass.

    Attributes:
        status: One of "synced", "up_to_date", "skipped", "failed".
        logs_decoded: Logs successfully decoded.
        logs_projected: Decoded events applied to the store
            (including idempotent no-ops and forward-reference drops).
        logs_failed: Logs that failed to decode or project.
    """

    contract: WatchedContract
    status: str
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    logs_decoded: int = 0
    logs_projected: int = 0
    logs_failed: int = 0
    error: Optional[str] = None


@dataclass
class SyncPassResult:
    """
    Outcome of one pass over all watched contracts.
    """

    contracts: list[ContractSyncResult] = field(default_factory=list)
    dropped_logs_resolved: int = 0

    @property
    def failed(self) -> list[ContractSyncResult]:
        return [r for r in self.contracts if r.status == "failed"]
