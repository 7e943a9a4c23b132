"""
Configuration of the sync engine, loaded from environment variables
or a .env file.
"""

import os
import pprint
from dataclasses import dataclass, field
from typing import List, Optional, Union

from dotenv import load_dotenv

from ticketsync.core.chain_reader import DEFAULT_RPC_TIMEOUT
from ticketsync.core.sync_orchestrator import DEFAULT_MAX_REPLAY_ATTEMPTS
from ticketsync.core.types import ContractCategory, WatchedContract
from ticketsync.utils.error_utils import (
    check_for_missing_env_vars,
    get_bool_env_var,
    get_int_list_env_var,
    get_number_env_var,
)
from ticketsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)

# Local development chain (anvil/hardhat).
DEFAULT_ALLOWED_CHAIN_IDS = [31337]

# Environment variables holding the deployed address of each contract category.
CONTRACT_ADDRESS_ENV_VARS = {
    ContractCategory.EVENT_MANAGER: "TICKETSYNC_EVENT_MANAGER_ADDRESS",
    ContractCategory.TICKET_MANAGER: "TICKETSYNC_TICKET_MANAGER_ADDRESS",
    ContractCategory.MARKETPLACE: "TICKETSYNC_MARKETPLACE_ADDRESS",
    ContractCategory.TOKEN_SWAP: "TICKETSYNC_TOKEN_SWAP_ADDRESS",
}


@dataclass
class SyncConfig:
    """
    Settings for the sync engine.

    Attributes:
        node_rpc_url: Node RPC URL.
        database_url: SQLAlchemy URL of the ticket store.
        contracts: The deployed contracts to sync.
            Categories without a configured address are left out.
        allowed_chain_ids: Chains the engine agrees to sync.
        rpc_timeout: Timeout in seconds for every RPC call.
        max_block_range: Maximum blocks per eth_getLogs call, or None.
        inject_geth_poa_middleware: Whether the chain needs the PoA middleware.
        max_replay_attempts: Failed replays before a dropped log is abandoned,
            or None to replay forever.
    """

    node_rpc_url: str
    database_url: str
    contracts: List[WatchedContract] = field(default_factory=list)
    allowed_chain_ids: List[int] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_CHAIN_IDS)
    )
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    max_block_range: Optional[int] = None
    inject_geth_poa_middleware: bool = False
    max_replay_attempts: Optional[int] = DEFAULT_MAX_REPLAY_ATTEMPTS

    @staticmethod
    def get_init_args_from_env(dotenv_path: Union[str, None] = None) -> dict:
        """
        Worker function to load the environment variables.

        :param dotenv_path: The .env file path, if any.
        :return: The dictionary of construction arguments.
        """
        if dotenv_path:
            load_dotenv(dotenv_path, verbose=True, override=True)

        required = {
            "TICKETSYNC_NODE_RPC_URL": os.getenv("TICKETSYNC_NODE_RPC_URL"),
            "TICKETSYNC_DATABASE_URL": os.getenv("TICKETSYNC_DATABASE_URL"),
        }
        check_for_missing_env_vars(required)

        max_replay_attempts = get_number_env_var(
            "TICKETSYNC_MAX_REPLAY_ATTEMPTS", DEFAULT_MAX_REPLAY_ATTEMPTS
        )

        contracts = []
        for category, env_var in CONTRACT_ADDRESS_ENV_VARS.items():
            address = os.getenv(env_var)
            if not address:
                _LOG.info(
                    "SyncConfig.get_init_args_from_env(): %s not set; "
                    "%s contract will not be synced",
                    env_var,
                    category.value,
                )
                continue
            contracts.append(WatchedContract(category=category, address=address))

        init_args = {
            "node_rpc_url": required["TICKETSYNC_NODE_RPC_URL"],
            "database_url": required["TICKETSYNC_DATABASE_URL"],
            "contracts": contracts,
            "allowed_chain_ids": get_int_list_env_var(
                "TICKETSYNC_ALLOWED_CHAIN_IDS", DEFAULT_ALLOWED_CHAIN_IDS
            ),
            "rpc_timeout": get_number_env_var(
                "TICKETSYNC_RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT, float
            ),
            "max_block_range": get_number_env_var("TICKETSYNC_MAX_BLOCK_RANGE"),
            "inject_geth_poa_middleware": get_bool_env_var(
                "TICKETSYNC_INJECT_GETH_POA_MIDDLEWARE"
            ),
            # Zero disables abandoning.
            "max_replay_attempts": max_replay_attempts or None,
        }
        _LOG.debug(
            "SyncConfig.get_init_args_from_env(): init_args =\n%s",
            pprint.pformat(init_args),
        )
        return init_args

    @staticmethod
    def from_env(dotenv_path: Union[str, None] = None) -> "SyncConfig":
        """
        Creates a config initialized from environment variables.

        :param dotenv_path: Path to the .env file.
            If path is not specified, only the existing environment is used.
        :return: The config.
        """
        return SyncConfig(**SyncConfig.get_init_args_from_env(dotenv_path))
