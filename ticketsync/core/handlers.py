"""
Registry of per-category sync pipelines.
Adding a contract category is a registration in DEFAULT_HANDLERS,
not a change to the orchestrator.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ticketsync.core.decoders import (
    EVENT_CREATED_ABI,
    ORDER_CREATED_ABI,
    TICKET_MINTED_ABI,
    TICKET_TRANSFERRED_ABI,
    Decoder,
    decode_event_created,
    decode_order_created,
    decode_ticket_minted,
    decode_ticket_transferred,
)
from ticketsync.core.projections import (
    ProjectionContext,
    project_event_created,
    project_order_created,
    project_ticket_minted,
    project_ticket_transferred,
)
from ticketsync.core.types import ContractCategory, DomainEvent

Projector = Callable[[ProjectionContext, DomainEvent], str]


@dataclass(frozen=True)
class LogStream:
    """
    One event type fetched from a contract, with its decoder and writer.

    Attributes:
        name: The event name, used in logs.
        event_abi: The ABI entry used to filter and decode logs.
        decode: Pure function mapping a raw log to a domain event.
        project: Writer applying the domain event to the store.
        include: Optional predicate; decoded events it rejects are not projected.
    """

    name: str
    event_abi: dict
    decode: Decoder
    project: Projector
    include: Optional[Callable[[DomainEvent], bool]] = None


@dataclass(frozen=True)
class CategoryHandler:
    """
    The pipeline for one contract category.
    All streams are fetched and decoded before any is projected;
    streams are projected in the order listed.
    """

    streams: List[LogStream] = field(default_factory=list)


DEFAULT_HANDLERS: Dict[ContractCategory, CategoryHandler] = {
    ContractCategory.EVENT_MANAGER: CategoryHandler(
        streams=[
            LogStream(
                name="EventCreated",
                event_abi=EVENT_CREATED_ABI,
                decode=decode_event_created,
                project=project_event_created,
            ),
        ]
    ),
    ContractCategory.TICKET_MANAGER: CategoryHandler(
        streams=[
            LogStream(
                name="TicketMinted",
                event_abi=TICKET_MINTED_ABI,
                decode=decode_ticket_minted,
                project=project_ticket_minted,
            ),
            # The mint log already created the ticket for mint transfers.
            LogStream(
                name="Transfer",
                event_abi=TICKET_TRANSFERRED_ABI,
                decode=decode_ticket_transferred,
                project=project_ticket_transferred,
                include=lambda event: not event.is_mint,
            ),
        ]
    ),
    ContractCategory.MARKETPLACE: CategoryHandler(
        streams=[
            LogStream(
                name="OrderCreated",
                event_abi=ORDER_CREATED_ABI,
                decode=decode_order_created,
                project=project_order_created,
            ),
        ]
    ),
}
