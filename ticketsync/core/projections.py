"""
Projection writers applying decoded domain events to the ticket store.
Every writer is an idempotent upsert keyed by the event's on-chain identifiers:
replaying a log, or a whole block range, leaves the store unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from ticketsync.core.models import Event, Ticket, TicketOrder
from ticketsync.core.ticket_store import TicketStore, now_ms
from ticketsync.core.types import (
    ZERO_ADDRESS,
    DomainEvent,
    EventCreated,
    OrderCreated,
    TicketMinted,
    TicketTransferred,
    domain_event_to_dict,
)
from ticketsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)

# The chain carries no schedule for an event, so new events open now
# and close after this default window until edited off-chain.
DEFAULT_EVENT_DURATION = pd.Timedelta(days=7)

# Orders created from OrderCreated logs are confirmed primary-market purchases
# paid in the native coin.
PRIMARY_ORDER_TYPE = "PRIMARY"
CONFIRMED_ORDER_STATUS = "CONFIRMED"


@dataclass(frozen=True)
class ProjectionContext:
    """
    Everything a projection writer needs besides the event.
    """

    store: TicketStore
    chain_id: int
    contract_address: str


# Outcomes returned by the writers.
CREATED = "created"
UPDATED = "updated"
EXISTS = "exists"
NOT_FOUND = "not_found"
DROPPED = "dropped"


def _token_id_of(event: DomainEvent) -> Optional[str]:
    token_id = getattr(event, "token_id", None)
    return None if token_id is None else str(token_id)


def _dead_letter(ctx: ProjectionContext, event: DomainEvent, reason: str) -> str:
    """
    Record a log that cannot be applied yet so it can be replayed.
    Only the first drop of a log is a warning; replays that drop it
    again are logged at debug level.
    """
    recorded = ctx.store.add_dropped_log(
        chain_id=ctx.chain_id,
        contract_address=ctx.contract_address,
        kind=event.kind,
        transaction_hash=event.ref.transaction_hash,
        log_index=event.ref.log_index,
        block_number=event.ref.block_number,
        payload=domain_event_to_dict(event),
        token_id=_token_id_of(event),
    )
    _LOG.log(
        logging.WARNING if recorded else logging.DEBUG,
        "Dropping %s in tx %s: %s",
        event.kind,
        event.ref.transaction_hash,
        reason,
    )
    return DROPPED


def _drop_forward_reference(ctx: ProjectionContext, event: DomainEvent) -> str:
    return _dead_letter(
        ctx,
        event,
        f"event {event.event_id} not found on chain {ctx.chain_id}",
    )


def project_event_created(ctx: ProjectionContext, event: EventCreated) -> str:
    """
    Create the Event row for an EventCreated log unless it already exists.
    """
    organizer = ctx.store.ensure_user(event.organizer)
    start_time = now_ms()
    created = ctx.store.create_event_if_absent(
        Event(
            chain_id=ctx.chain_id,
            contract_id=str(event.event_id),
            name=event.name,
            organizer_address=organizer,
            max_tickets=event.max_tickets,
            ticket_price=str(event.ticket_price),
            start_time=start_time,
            end_time=start_time
            + int(DEFAULT_EVENT_DURATION.total_seconds() * 1000),
            transaction_hash=event.ref.transaction_hash,
            block_number=event.ref.block_number,
        )
    )
    if not created:
        return EXISTS
    _LOG.info("Created event %s (ID: %s)", event.name, event.event_id)
    return CREATED


def project_ticket_minted(ctx: ProjectionContext, event: TicketMinted) -> str:
    """
    Create the Ticket row for a TicketMinted log.
    Mints referencing an Event that has not been projected are dropped.
    """
    owner = ctx.store.ensure_user(event.to)
    platform_event = ctx.store.find_event(ctx.chain_id, str(event.event_id))
    if platform_event is None:
        return _drop_forward_reference(ctx, event)
    created = ctx.store.create_ticket_if_absent(
        Ticket(
            chain_id=ctx.chain_id,
            token_id=str(event.token_id),
            event_id=platform_event.id,
            seat_number=event.seat_number,
            owner_address=owner,
            transaction_hash=event.ref.transaction_hash,
            block_number=event.ref.block_number,
        )
    )
    if not created:
        return EXISTS
    _LOG.info("Created ticket: token %s for event %s", event.token_id, event.event_id)
    return CREATED


def project_ticket_transferred(
    ctx: ProjectionContext, event: TicketTransferred
) -> str:
    """
    Move a ticket to its new owner.
    Transfers of tokens that were never minted affect no rows.
    A transfer of a token whose mint was dropped is dropped as well,
    so replays apply it after the mint.
    """
    owner = ctx.store.ensure_user(event.to)
    token_id = str(event.token_id)
    updated = ctx.store.update_ticket_owner(ctx.chain_id, token_id, owner)
    if updated == 0:
        if ctx.store.has_dropped_log(ctx.chain_id, TicketMinted.kind, token_id):
            return _dead_letter(ctx, event, f"mint of token {token_id} was dropped")
        _LOG.debug("No ticket for token %s; transfer ignored", event.token_id)
        return NOT_FOUND
    _LOG.info(
        "Ticket transferred: token %s from %s to %s",
        event.token_id,
        event.from_address,
        owner,
    )
    return UPDATED


def project_order_created(ctx: ProjectionContext, event: OrderCreated) -> str:
    """
    Create the Order row for an OrderCreated log, one per transaction.
    Orders referencing an Event that has not been projected are dropped.
    """
    buyer = ctx.store.ensure_user(event.buyer)
    platform_event = ctx.store.find_event(ctx.chain_id, str(event.event_id))
    if platform_event is None:
        return _drop_forward_reference(ctx, event)
    created = ctx.store.create_order_if_absent(
        TicketOrder(
            chain_id=ctx.chain_id,
            transaction_hash=event.ref.transaction_hash,
            order_id=event.order_id,
            order_type=PRIMARY_ORDER_TYPE,
            status=CONFIRMED_ORDER_STATUS,
            price=str(event.price),
            payment_token=ZERO_ADDRESS,
            buyer_address=buyer,
            event_id=platform_event.id,
            block_number=event.ref.block_number,
        )
    )
    if created:
        _LOG.info("Created order %s for event %s", event.order_id, event.event_id)
        return CREATED
    existing = ctx.store.find_order(ctx.chain_id, event.ref.transaction_hash)
    if existing is not None and existing.order_id != event.order_id:
        # Orders are keyed by transaction, so a second order in the same
        # transaction is not stored.
        _LOG.warning(
            "Order %s in tx %s not stored: tx already recorded order %s",
            event.order_id,
            event.ref.transaction_hash,
            existing.order_id,
        )
    return EXISTS


_PROJECTORS = {
    EventCreated.kind: project_event_created,
    TicketMinted.kind: project_ticket_minted,
    TicketTransferred.kind: project_ticket_transferred,
    OrderCreated.kind: project_order_created,
}


def project(ctx: ProjectionContext, event: DomainEvent) -> str:
    """
    Apply any domain event with its writer.

    :param ctx: The projection context.
    :param event: The decoded event.
    :return: The projection outcome.
    """
    return _PROJECTORS[event.kind](ctx, event)
