"""
The sync orchestrator drives the chain-to-store synchronization loop.
For every watched contract it scans the blocks past the contract's cursor,
decodes and projects the logs found, then advances the cursor.
A pass runs once immediately on start and then on a fixed interval.
"""

import json
import threading
import time
from typing import Dict, List, Mapping, Optional, Sequence

from ticketsync.core.chain_reader import ChainReader
from ticketsync.core.handlers import DEFAULT_HANDLERS, CategoryHandler
from ticketsync.core.projections import (
    DROPPED,
    ProjectionContext,
    project,
)
from ticketsync.core.ticket_store import TicketStore, now_ms
from ticketsync.core.types import (
    ContractCategory,
    ContractSyncResult,
    SyncPassResult,
    WatchedContract,
    domain_event_from_dict,
)
from ticketsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)

# Seconds between the starts of two consecutive passes.
SYNC_INTERVAL_SECONDS = 30

# Replays of a dropped log before it is abandoned, one hour at the default interval.
DEFAULT_MAX_REPLAY_ATTEMPTS = 120

_THREAD_NAME = "ticketsync-sync"


class SyncOrchestrator:
    """
    Mirrors the logs of a set of contracts into the ticket store.
    Contracts are synced sequentially within a pass and passes never overlap.
    """

    # pylint: disable-msg=too-many-arguments
    def __init__(
        self,
        reader: ChainReader,
        store: TicketStore,
        contracts: Sequence[WatchedContract],
        chain_id: int,
        handlers: Optional[Mapping[ContractCategory, CategoryHandler]] = None,
        interval: float = SYNC_INTERVAL_SECONDS,
        max_replay_attempts: Optional[int] = DEFAULT_MAX_REPLAY_ATTEMPTS,
    ):
        """
        Initialize the orchestrator.

        :param reader: The chain reader.
        :param store: The ticket store written by the projections.
        :param contracts: The contracts to sync.
        :param chain_id: The chain id recorded with every projected row.
        :param handlers: The pipelines by contract category.
        :param interval: Seconds between the starts of consecutive passes.
        :param max_replay_attempts: Failed replays after which a dropped log
            is abandoned. None replays it forever.
        """
        self.reader = reader
        self.store = store
        self.contracts: List[WatchedContract] = list(contracts)
        self.chain_id = chain_id
        self.handlers: Dict[ContractCategory, CategoryHandler] = dict(
            DEFAULT_HANDLERS if handlers is None else handlers
        )
        self.interval = interval
        self.max_replay_attempts = max_replay_attempts
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start the background loop.
        The first pass starts immediately. Calling start() on a running
        orchestrator does nothing.
        """
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop, name=_THREAD_NAME, daemon=True
            )
            self._thread.start()
        _LOG.info(
            "SyncOrchestrator.start(): Sync started for %s contracts every %s s",
            len(self.contracts),
            self.interval,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the background loop.
        Cancels the schedule and waits for an in-flight pass to finish,
        so the store is never left with a torn pass.

        :param timeout: Maximum seconds to wait for the loop to exit.
            None waits until the in-flight pass completes.
        """
        with self._lock:
            thread = self._thread
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                _LOG.warning(
                    "SyncOrchestrator.stop(): Pass still running after %s s", timeout
                )
                return
        with self._lock:
            self._thread = None
        _LOG.info("SyncOrchestrator.stop(): Sync stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.sync_all_contracts()
            except Exception:  # pylint: disable=broad-except
                _LOG.exception("SyncOrchestrator._run_loop(): Sync pass failed")
            elapsed = time.monotonic() - started
            self._stop_event.wait(max(0.0, self.interval - elapsed))

    def sync_all_contracts(self) -> SyncPassResult:
        """
        Run one pass: replay dropped logs, then sync every contract in order.
        A failure on one contract never aborts the pass for the others.

        :return: The per-contract outcomes.
        """
        result = SyncPassResult()
        result.dropped_logs_resolved = self.replay_dropped_logs()
        for contract in self.contracts:
            result.contracts.append(self.sync_contract(contract))
        return result

    def sync_contract(self, contract: WatchedContract) -> ContractSyncResult:
        """
        Sync the blocks past a contract's cursor up to the current height.
        The cursor only advances once every log in the range has been
        decoded and projected; on error it stays put and the range
        is scanned again on the next pass.

        :param contract: The contract to sync.
        :return: The outcome.
        """
        handler = self.handlers.get(contract.category)
        if handler is None:
            _LOG.warning(
                "SyncOrchestrator.sync_contract(): No handler for %s contract %s",
                contract.category.value,
                contract.address,
            )
            return ContractSyncResult(contract=contract, status="skipped")

        result = ContractSyncResult(contract=contract, status="failed")
        try:
            cursor = self.store.get_cursor(contract.address)
            from_block = cursor.last_block_number + 1 if cursor is not None else 0
            to_block = self.reader.get_current_height()
            result.from_block, result.to_block = from_block, to_block

            if from_block > to_block:
                result.status = "up_to_date"
                return result

            _LOG.debug(
                "SyncOrchestrator.sync_contract(): %s %s blocks %s..%s",
                contract.category.value,
                contract.address,
                from_block,
                to_block,
            )
            self._sync_range(handler, contract, from_block, to_block, result)

            self.store.upsert_cursor(contract.address, to_block, now_ms())
            result.status = "synced"
            _LOG.info(
                "SyncOrchestrator.sync_contract(): %s %s synced to block %s "
                "(%s decoded, %s projected, %s failed)",
                contract.category.value,
                contract.address,
                to_block,
                result.logs_decoded,
                result.logs_projected,
                result.logs_failed,
            )
        except Exception as e:  # pylint: disable=broad-except
            result.status = "failed"
            result.error = str(e)
            _LOG.error(
                "SyncOrchestrator.sync_contract(): Sync of %s %s failed: %s",
                contract.category.value,
                contract.address,
                e,
                exc_info=True,
            )
        return result

    def _sync_range(
        self,
        handler: CategoryHandler,
        contract: WatchedContract,
        from_block: int,
        to_block: int,
        result: ContractSyncResult,
    ) -> None:
        # Fetch every stream before projecting so a fetch failure
        # leaves the store untouched for this range.
        fetched = [
            (
                stream,
                self.reader.get_logs(
                    contract.address, stream.event_abi, from_block, to_block
                ),
            )
            for stream in handler.streams
        ]

        decoded = []
        for stream, raw_logs in fetched:
            events = []
            for raw_log in raw_logs:
                try:
                    events.append(stream.decode(raw_log))
                    result.logs_decoded += 1
                except Exception as e:  # pylint: disable=broad-except
                    result.logs_failed += 1
                    _LOG.error(
                        "SyncOrchestrator._sync_range(): Failed to decode %s log: %s",
                        stream.name,
                        e,
                    )
            decoded.append((stream, events))

        ctx = ProjectionContext(
            store=self.store, chain_id=self.chain_id, contract_address=contract.address
        )
        for stream, events in decoded:
            for event in events:
                if stream.include is not None and not stream.include(event):
                    continue
                try:
                    stream.project(ctx, event)
                    result.logs_projected += 1
                except Exception as e:  # pylint: disable=broad-except
                    result.logs_failed += 1
                    _LOG.error(
                        "SyncOrchestrator._sync_range(): Failed to process %s "
                        "in tx %s: %s",
                        stream.name,
                        event.ref.transaction_hash,
                        e,
                        exc_info=True,
                    )

    def replay_dropped_logs(self) -> int:
        """
        Re-attempt logs dropped because their Event was not projected yet.
        Entries whose Event now exists are projected and removed.
        Entries still missing their Event after max_replay_attempts
        replays are abandoned.

        :return: The number of dropped logs resolved.
        """
        try:
            dropped_logs = self.store.list_dropped_logs(self.chain_id)
        except Exception as e:  # pylint: disable=broad-except
            _LOG.error(
                "SyncOrchestrator.replay_dropped_logs(): Cannot list dropped logs: %s",
                e,
            )
            return 0

        resolved = 0
        for dropped_log in dropped_logs:
            try:
                event = domain_event_from_dict(json.loads(dropped_log.payload))
                ctx = ProjectionContext(
                    store=self.store,
                    chain_id=self.chain_id,
                    contract_address=dropped_log.contract_address,
                )
                if project(ctx, event) == DROPPED:
                    attempts = self.store.record_dropped_log_attempt(dropped_log.id)
                    if (
                        self.max_replay_attempts is not None
                        and attempts >= self.max_replay_attempts
                    ):
                        self.store.abandon_dropped_log(dropped_log.id)
                        _LOG.error(
                            "SyncOrchestrator.replay_dropped_logs(): Abandoned %s "
                            "in tx %s after %s attempts",
                            dropped_log.kind,
                            dropped_log.transaction_hash,
                            attempts,
                        )
                    continue
                self.store.resolve_dropped_log(dropped_log.id)
                resolved += 1
                _LOG.info(
                    "SyncOrchestrator.replay_dropped_logs(): Resolved %s in tx %s",
                    dropped_log.kind,
                    dropped_log.transaction_hash,
                )
            except Exception as e:  # pylint: disable=broad-except
                _LOG.error(
                    "SyncOrchestrator.replay_dropped_logs(): Replay of %s failed: %s",
                    dropped_log.id,
                    e,
                )
        return resolved
