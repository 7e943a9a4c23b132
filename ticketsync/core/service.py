"""
Wiring of the sync engine's components from configuration.
"""

from typing import Tuple

from ticketsync.core.chain_reader import Web3ChainReader
from ticketsync.core.config import SyncConfig
from ticketsync.core.sync_orchestrator import SyncOrchestrator
from ticketsync.core.ticket_store import SQLTicketStore
from ticketsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)


def check_chain_allowed(chain_id: int, config: SyncConfig) -> None:
    """
    Refuse to sync a chain that is not on the configured allow-list.

    :param chain_id: The chain id reported by the node.
    :param config: The sync config.
    """
    if chain_id not in config.allowed_chain_ids:
        raise ValueError(
            f"Node at {config.node_rpc_url} is on chain {chain_id}, "
            f"which is not in the allowed chains {config.allowed_chain_ids}"
        )


def create_sync_service(
    config: SyncConfig,
) -> Tuple[SyncOrchestrator, SQLTicketStore]:
    """
    Build the store, chain reader and orchestrator.
    Any failure here is a fatal startup failure and propagates.

    :param config: The sync config.
    :return: The orchestrator and the store it writes to.
    """
    store = SQLTicketStore(config.database_url).initialize()
    reader = Web3ChainReader(
        config.node_rpc_url,
        request_timeout=config.rpc_timeout,
        max_block_range=config.max_block_range,
        inject_geth_poa_middleware=config.inject_geth_poa_middleware,
    ).connect()
    chain_id = reader.get_chain_id()
    check_chain_allowed(chain_id, config)
    _LOG.info(
        "create_sync_service(): Syncing chain %s: %s",
        chain_id,
        ", ".join(f"{c.category.value}={c.address}" for c in config.contracts)
        or "no contracts configured",
    )
    orchestrator = SyncOrchestrator(
        reader,
        store,
        config.contracts,
        chain_id,
        max_replay_attempts=config.max_replay_attempts,
    )
    return orchestrator, store
