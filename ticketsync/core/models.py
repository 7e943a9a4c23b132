"""SQL models for the projected ticketing state and sync bookkeeping."""

from typing import Optional

from sqlalchemy import BigInteger, Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """ORM model for the user table, keyed by lower-cased chain address."""

    __tablename__ = "user"
    address: str = Field(primary_key=True, index=True)
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))


class Event(SQLModel, table=True):
    """ORM model for the event table, one row per on-chain EventCreated."""

    __tablename__ = "event"
    __table_args__ = (
        UniqueConstraint("chain_id", "contract_id", name="uq_event_chain_contract"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    chain_id: int = Field(index=True)
    contract_id: str = Field(index=True)
    name: str
    organizer_address: str = Field(foreign_key="user.address", index=True)
    max_tickets: int
    # uint256 values do not fit SQL integers.
    ticket_price: str
    start_time: int = Field(sa_column=Column(BigInteger, nullable=False))
    end_time: int = Field(sa_column=Column(BigInteger, nullable=False))
    transaction_hash: str
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False))


class Ticket(SQLModel, table=True):
    """ORM model for the ticket table, one row per minted token."""

    __tablename__ = "ticket"
    __table_args__ = (
        UniqueConstraint("chain_id", "token_id", name="uq_ticket_chain_token"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    chain_id: int = Field(index=True)
    token_id: str = Field(index=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    seat_number: str
    owner_address: str = Field(foreign_key="user.address", index=True)
    transaction_hash: str
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False))


class TicketOrder(SQLModel, table=True):
    """ORM model for the ticket_order table, one row per purchase transaction."""

    __tablename__ = "ticket_order"
    __table_args__ = (
        UniqueConstraint(
            "chain_id", "transaction_hash", name="uq_order_chain_transaction"
        ),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    chain_id: int = Field(index=True)
    transaction_hash: str = Field(index=True)
    order_id: str
    order_type: str
    status: str
    price: str
    payment_token: str
    buyer_address: str = Field(foreign_key="user.address", index=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False))


class SyncCursor(SQLModel, table=True):
    """ORM model for the blockchain_sync table, the per-contract high-water mark."""

    __tablename__ = "blockchain_sync"
    contract_address: str = Field(primary_key=True, index=True)
    last_block_number: int = Field(sa_column=Column(BigInteger, nullable=False))
    synced_at: int = Field(sa_column=Column(BigInteger, nullable=False))


class DroppedLog(SQLModel, table=True):
    """
    ORM model for the dropped_log table, logs waiting on a missing Event.
    Entries that exhaust their replay attempts are kept with abandoned set.
    """

    __tablename__ = "dropped_log"
    __table_args__ = (
        UniqueConstraint(
            "chain_id",
            "transaction_hash",
            "log_index",
            name="uq_dropped_log_position",
        ),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    chain_id: int = Field(index=True)
    contract_address: str
    kind: str
    transaction_hash: str
    log_index: int
    token_id: Optional[str] = Field(default=None, index=True)
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False))
    payload: str = Field(sa_column=Column(Text, nullable=False))
    attempts: int = Field(default=0)
    abandoned: bool = Field(default=False, index=True)
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))
