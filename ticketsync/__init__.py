"""ticketsync

Mirrors the event logs of the ticketing contracts into a relational store.
"""

from ticketsync.core.chain_reader import ChainReader, Web3ChainReader
from ticketsync.core.config import SyncConfig
from ticketsync.core.decoders import (
    LogDecodeError,
    decode_event_created,
    decode_order_created,
    decode_ticket_minted,
    decode_ticket_transferred,
)
from ticketsync.core.handlers import DEFAULT_HANDLERS, CategoryHandler, LogStream
from ticketsync.core.service import create_sync_service
from ticketsync.core.sync_orchestrator import SYNC_INTERVAL_SECONDS, SyncOrchestrator
from ticketsync.core.ticket_store import SQLTicketStore, TicketStore
from ticketsync.core.types import (
    ContractCategory,
    EventCreated,
    OrderCreated,
    TicketMinted,
    TicketTransferred,
    WatchedContract,
)
from ticketsync.utils.log import get_default_logger

__all__ = [
    "ChainReader",
    "Web3ChainReader",
    "SyncConfig",
    "LogDecodeError",
    "decode_event_created",
    "decode_order_created",
    "decode_ticket_minted",
    "decode_ticket_transferred",
    "DEFAULT_HANDLERS",
    "CategoryHandler",
    "LogStream",
    "create_sync_service",
    "SYNC_INTERVAL_SECONDS",
    "SyncOrchestrator",
    "SQLTicketStore",
    "TicketStore",
    "ContractCategory",
    "EventCreated",
    "OrderCreated",
    "TicketMinted",
    "TicketTransferred",
    "WatchedContract",
    "get_default_logger",
]
