"""
The ticket store module provides the relational store the sync engine projects
chain state into, together with the per-contract sync cursors.
Store handles are constructed explicitly at process start and passed
to the components that need them.
"""

import json
from abc import ABC, abstractmethod
from typing import List, Optional, Union

import pandas as pd
from sqlalchemy import text, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, create_engine, select

from ticketsync.core.models import (
    DroppedLog,
    Event,
    SyncCursor,
    Ticket,
    TicketOrder,
    User,
)
from ticketsync.core.types import normalize_address
from ticketsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)


def now_ms() -> int:
    """Current UTC time in milliseconds since the epoch."""
    return int(pd.Timestamp.now(tz="UTC").value // 1_000_000)


def format_timestamp(timestamp: int) -> str:
    """Render a millisecond timestamp as a UTC pandas timestamp string."""
    return str(pd.Timestamp(int(timestamp), unit="ms", tz="UTC"))


class TicketStore(ABC):
    """
    Store operations used by the projection writers and the orchestrator.
    Every create operation is "create if absent, else no-op"
    and every update tolerates zero matching rows.
    """

    @abstractmethod
    def ensure_user(self, address: str) -> str:
        """
        Create the user for an address unless it already exists.

        :param address: The user's chain address in any case.
        :return: The normalized address.
        """

    @abstractmethod
    def find_event(self, chain_id: int, contract_id: str) -> Optional[Event]:
        """
        Find the event with a given on-chain id.

        :param chain_id: The chain id.
        :param contract_id: The on-chain event id as a string.
        :return: The event row, or None if it has not been projected.
        """

    @abstractmethod
    def create_event_if_absent(self, event: Event) -> bool:
        """
        Insert an event unless one exists for (chain_id, contract_id).

        :param event: The event row to insert.
        :return: True if the row was created.
        """

    @abstractmethod
    def create_ticket_if_absent(self, ticket: Ticket) -> bool:
        """
        Insert a ticket unless one exists for (chain_id, token_id).

        :param ticket: The ticket row to insert.
        :return: True if the row was created.
        """

    @abstractmethod
    def update_ticket_owner(self, chain_id: int, token_id: str, owner: str) -> int:
        """
        Set the owner of the ticket matched by (chain_id, token_id).

        :param chain_id: The chain id.
        :param token_id: The token id as a string.
        :param owner: The new owner address.
        :return: The number of rows updated; zero is not an error.
        """

    @abstractmethod
    def find_order(self, chain_id: int, transaction_hash: str) -> Optional[TicketOrder]:
        """
        Find the order recorded for a transaction.

        :param chain_id: The chain id.
        :param transaction_hash: The transaction hash.
        :return: The order row, or None.
        """

    @abstractmethod
    def create_order_if_absent(self, order: TicketOrder) -> bool:
        """
        Insert an order unless one exists for (chain_id, transaction_hash).

        :param order: The order row to insert.
        :return: True if the row was created.
        """

    @abstractmethod
    def get_cursor(self, contract_address: str) -> Optional[SyncCursor]:
        """
        Get the sync cursor for a contract.

        :param contract_address: The contract address in any case.
        :return: The cursor, or None if the contract was never synced.
        """

    @abstractmethod
    def upsert_cursor(
        self, contract_address: str, last_block_number: int, synced_at: int
    ) -> SyncCursor:
        """
        Create or advance the sync cursor for a contract.
        The stored block number never decreases.

        :param contract_address: The contract address in any case.
        :param last_block_number: The last block fully processed.
        :param synced_at: The sync time in milliseconds since the epoch.
        :return: The stored cursor.
        """

    @abstractmethod
    def list_cursors(self) -> List[SyncCursor]:
        """
        :return: All sync cursors ordered by contract address.
        """

    @abstractmethod
    def add_dropped_log(
        self,
        chain_id: int,
        contract_address: str,
        kind: str,
        transaction_hash: str,
        log_index: int,
        block_number: int,
        payload: dict,
        token_id: Optional[str] = None,
    ) -> bool:
        """
        Record a log dropped for a missing referenced entity.

        :param token_id: The ticket token the log refers to, if any.
        :return: True if the log was not already recorded.
        """

    @abstractmethod
    def list_dropped_logs(self, chain_id: int) -> List[DroppedLog]:
        """
        :param chain_id: The chain id.
        :return: Pending dropped logs in chain order.
            Abandoned entries are not returned.
        """

    @abstractmethod
    def has_dropped_log(self, chain_id: int, kind: str, token_id: str) -> bool:
        """
        :param chain_id: The chain id.
        :param kind: The domain event kind.
        :param token_id: The ticket token id.
        :return: True if a dropped log of this kind, pending or abandoned,
            refers to the token.
        """

    @abstractmethod
    def record_dropped_log_attempt(self, dropped_log_id: int) -> int:
        """
        Count one more unsuccessful replay of a dropped log.

        :param dropped_log_id: The dropped log row id.
        :return: The number of attempts made so far.
        """

    @abstractmethod
    def abandon_dropped_log(self, dropped_log_id: int) -> None:
        """
        Stop replaying a dropped log. The entry is kept for inspection.

        :param dropped_log_id: The dropped log row id.
        """

    @abstractmethod
    def list_abandoned_dropped_logs(self, chain_id: int) -> List[DroppedLog]:
        """
        :param chain_id: The chain id.
        :return: Abandoned dropped logs in chain order.
        """

    @abstractmethod
    def resolve_dropped_log(self, dropped_log_id: int) -> None:
        """
        Remove a dropped log that has been projected.

        :param dropped_log_id: The dropped log row id.
        """

    def find_stale_cursors(
        self, max_age_seconds: float, now: Union[int, None] = None
    ) -> List[SyncCursor]:
        """
        Find cursors that were not advanced recently.
        Readers of the store can use this to detect a stalled sync engine.

        :param max_age_seconds: Maximum allowed age of a cursor.
        :param now: Current time in milliseconds since the epoch.
        :return: Cursors older than max_age_seconds.
        """
        if now is None:
            now = now_ms()
        threshold = now - int(max_age_seconds * 1000)
        return [c for c in self.list_cursors() if c.synced_at < threshold]


class SQLTicketStore(TicketStore):
    """
    Ticket store backed by any SQL database supported by SQLAlchemy.
    """

    def __init__(self, db_url: str, engine_kwargs: Union[dict, None] = None):
        if engine_kwargs is None:
            engine_kwargs = {}

        self.db_engine = create_engine(db_url, **engine_kwargs)

    def initialize(self) -> "SQLTicketStore":
        """
        Create missing tables and verify the database is reachable.
        Failures propagate: a store that cannot be reached at startup is fatal.

        :return: The store.
        """
        SQLModel.metadata.create_all(self.db_engine)
        with Session(self.db_engine) as session:
            session.exec(text("SELECT 1"))
        _LOG.info("SQLTicketStore.initialize(): Database connection established")
        return self

    def health_check(self) -> bool:
        """
        :return: True if the database answers a trivial query.
        """
        try:
            with Session(self.db_engine) as session:
                session.exec(text("SELECT 1"))
            return True
        except Exception as e:  # pylint: disable=broad-except
            _LOG.error("SQLTicketStore.health_check(): Database unreachable: %s", e)
            return False

    def dispose(self) -> None:
        """Release pooled connections."""
        self.db_engine.dispose()

    def _insert_if_absent(self, row, exists_statement) -> bool:
        """
        Insert a row unless exists_statement finds one.
        A concurrent writer winning the race surfaces as an IntegrityError
        on a unique key and is treated as "already exists".
        """
        with Session(self.db_engine) as session:
            if session.exec(exists_statement).first() is not None:
                return False
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            session.refresh(row)
        return True

    def ensure_user(self, address: str) -> str:
        address = normalize_address(address)
        self._insert_if_absent(
            User(address=address, created_at=now_ms()),
            select(User).where(User.address == address),
        )
        return address

    def find_user(self, address: str) -> Optional[User]:
        with Session(self.db_engine) as session:
            return session.get(User, normalize_address(address))

    def find_event(self, chain_id: int, contract_id: str) -> Optional[Event]:
        with Session(self.db_engine) as session:
            statement = select(Event).where(
                Event.chain_id == chain_id, Event.contract_id == str(contract_id)
            )
            return session.exec(statement).first()

    def create_event_if_absent(self, event: Event) -> bool:
        return self._insert_if_absent(
            event,
            select(Event).where(
                Event.chain_id == event.chain_id,
                Event.contract_id == event.contract_id,
            ),
        )

    def find_ticket(self, chain_id: int, token_id: str) -> Optional[Ticket]:
        with Session(self.db_engine) as session:
            statement = select(Ticket).where(
                Ticket.chain_id == chain_id, Ticket.token_id == str(token_id)
            )
            return session.exec(statement).first()

    def create_ticket_if_absent(self, ticket: Ticket) -> bool:
        return self._insert_if_absent(
            ticket,
            select(Ticket).where(
                Ticket.chain_id == ticket.chain_id,
                Ticket.token_id == ticket.token_id,
            ),
        )

    def update_ticket_owner(self, chain_id: int, token_id: str, owner: str) -> int:
        with Session(self.db_engine) as session:
            statement = (
                update(Ticket)
                .where(Ticket.chain_id == chain_id, Ticket.token_id == str(token_id))
                .values(owner_address=normalize_address(owner))
            )
            result = session.exec(statement)
            session.commit()
            return result.rowcount

    def find_order(self, chain_id: int, transaction_hash: str) -> Optional[TicketOrder]:
        with Session(self.db_engine) as session:
            statement = select(TicketOrder).where(
                TicketOrder.chain_id == chain_id,
                TicketOrder.transaction_hash == transaction_hash.lower(),
            )
            return session.exec(statement).first()

    def create_order_if_absent(self, order: TicketOrder) -> bool:
        return self._insert_if_absent(
            order,
            select(TicketOrder).where(
                TicketOrder.chain_id == order.chain_id,
                TicketOrder.transaction_hash == order.transaction_hash,
            ),
        )

    def get_cursor(self, contract_address: str) -> Optional[SyncCursor]:
        with Session(self.db_engine) as session:
            return session.get(SyncCursor, normalize_address(contract_address))

    def upsert_cursor(
        self, contract_address: str, last_block_number: int, synced_at: int
    ) -> SyncCursor:
        contract_address = normalize_address(contract_address)
        with Session(self.db_engine) as session:
            cursor = session.get(SyncCursor, contract_address)
            if cursor is None:
                cursor = SyncCursor(
                    contract_address=contract_address,
                    last_block_number=last_block_number,
                    synced_at=synced_at,
                )
            else:
                if last_block_number < cursor.last_block_number:
                    _LOG.warning(
                        "SQLTicketStore.upsert_cursor(): "
                        "Refusing to move cursor for %s back from %s to %s",
                        contract_address,
                        cursor.last_block_number,
                        last_block_number,
                    )
                    last_block_number = cursor.last_block_number
                cursor.last_block_number = last_block_number
                cursor.synced_at = synced_at
            session.add(cursor)
            session.commit()
            session.refresh(cursor)
            return cursor

    def list_cursors(self) -> List[SyncCursor]:
        with Session(self.db_engine) as session:
            statement = select(SyncCursor).order_by(SyncCursor.contract_address)
            return list(session.exec(statement).all())

    def add_dropped_log(
        self,
        chain_id: int,
        contract_address: str,
        kind: str,
        transaction_hash: str,
        log_index: int,
        block_number: int,
        payload: dict,
        token_id: Optional[str] = None,
    ) -> bool:
        return self._insert_if_absent(
            DroppedLog(
                chain_id=chain_id,
                contract_address=normalize_address(contract_address),
                kind=kind,
                transaction_hash=transaction_hash,
                log_index=log_index,
                token_id=token_id,
                block_number=block_number,
                payload=json.dumps(payload),
                created_at=now_ms(),
            ),
            select(DroppedLog).where(
                DroppedLog.chain_id == chain_id,
                DroppedLog.transaction_hash == transaction_hash,
                DroppedLog.log_index == log_index,
            ),
        )

    def _list_dropped_logs(self, chain_id: int, abandoned: bool) -> List[DroppedLog]:
        with Session(self.db_engine) as session:
            statement = (
                select(DroppedLog)
                .where(
                    DroppedLog.chain_id == chain_id,
                    DroppedLog.abandoned == abandoned,
                )
                .order_by(DroppedLog.block_number, DroppedLog.log_index)
            )
            return list(session.exec(statement).all())

    def list_dropped_logs(self, chain_id: int) -> List[DroppedLog]:
        return self._list_dropped_logs(chain_id, abandoned=False)

    def list_abandoned_dropped_logs(self, chain_id: int) -> List[DroppedLog]:
        return self._list_dropped_logs(chain_id, abandoned=True)

    def has_dropped_log(self, chain_id: int, kind: str, token_id: str) -> bool:
        with Session(self.db_engine) as session:
            statement = select(DroppedLog.id).where(
                DroppedLog.chain_id == chain_id,
                DroppedLog.kind == kind,
                DroppedLog.token_id == token_id,
            )
            return session.exec(statement).first() is not None

    def record_dropped_log_attempt(self, dropped_log_id: int) -> int:
        with Session(self.db_engine) as session:
            session.exec(
                update(DroppedLog)
                .where(DroppedLog.id == dropped_log_id)
                .values(attempts=DroppedLog.attempts + 1)
            )
            session.commit()
            dropped_log = session.get(DroppedLog, dropped_log_id)
            return dropped_log.attempts if dropped_log is not None else 0

    def abandon_dropped_log(self, dropped_log_id: int) -> None:
        with Session(self.db_engine) as session:
            session.exec(
                update(DroppedLog)
                .where(DroppedLog.id == dropped_log_id)
                .values(abandoned=True)
            )
            session.commit()

    def resolve_dropped_log(self, dropped_log_id: int) -> None:
        with Session(self.db_engine) as session:
            dropped_log = session.get(DroppedLog, dropped_log_id)
            if dropped_log is not None:
                session.delete(dropped_log)
                session.commit()
