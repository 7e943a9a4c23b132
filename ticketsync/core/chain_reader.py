"""
The chain reader module wraps a node RPC endpoint.
It fetches the current block height and the filtered event logs
the sync engine converts into store records.
Readers hold no state of their own and never retry:
failures propagate to the caller, which retries on the next pass.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from eth_utils import encode_hex, event_abi_to_log_topic
from web3 import Web3
from web3.middleware import geth_poa_middleware

from ticketsync.utils.log import get_default_logger
from ticketsync.utils.retries import with_retries

_LOG = get_default_logger(__name__)

# Default timeout in seconds for a single RPC request.
DEFAULT_RPC_TIMEOUT = 10

# Settings for the startup connection retry.
_W3_CONNECTION_MAX_ATTEMPTS = 5
_W3_CONNECTION_BACKOFF = 1


def get_event_topic(event_abi: dict) -> str:
    """
    Get the topic0 filter value for an event.

    :param event_abi: The event's ABI entry.
    :return: The keccak hash of the event signature as 0x-prefixed hex.
    """
    return encode_hex(event_abi_to_log_topic(event_abi))


class ChainReader(ABC):
    """
    Read-only access to chain height and contract event logs.
    """

    @abstractmethod
    def get_chain_id(self) -> int:
        """
        :return: The chain id reported by the node.
        """

    @abstractmethod
    def get_current_height(self) -> int:
        """
        :return: The latest block number.
        """

    def get_logs(
        self, contract_address: str, event_abi: dict, from_block: int, to_block: int
    ) -> List[dict]:
        """
        Fetch the logs of one event emitted by a contract in a block range.
        A degenerate range (from_block > to_block) returns no logs
        without contacting the node.

        :param contract_address: The contract address.
        :param event_abi: The ABI entry of the event to filter on.
        :param from_block: The first block of the range, inclusive.
        :param to_block: The last block of the range, inclusive.
        :return: The raw logs in the order returned by the node.
        """
        if from_block > to_block:
            return []
        return self._fetch_logs(
            contract_address, get_event_topic(event_abi), from_block, to_block
        )

    @abstractmethod
    def _fetch_logs(
        self, contract_address: str, topic: str, from_block: int, to_block: int
    ) -> List[dict]:
        """
        Worker fetching logs for a non-empty block range.
        """


class Web3ChainReader(ChainReader):
    """
    Chain reader accessible using Web3.HTTPProvider.
    """

    # pylint: disable-msg=too-many-arguments
    def __init__(
        self,
        node_rpc_url: str,
        request_timeout: float = DEFAULT_RPC_TIMEOUT,
        max_block_range: Optional[int] = None,
        inject_geth_poa_middleware: bool = False,
        w3: Optional[Web3] = None,
    ):
        """
        Initialize the reader and connect to the node.

        :param node_rpc_url: Node RPC URL.
        :param request_timeout: Timeout in seconds bounding every RPC call.
        :param max_block_range: Maximum number of blocks per eth_getLogs call.
            Larger ranges are fetched in consecutive chunks.
            None fetches any range in a single call.
        :param inject_geth_poa_middleware: True if geth_poa_middleware W3 option
            is required to connect to the network.
        :param w3: A preconfigured Web3 object to use instead of connecting
            to node_rpc_url.
        """
        if max_block_range is not None and max_block_range < 1:
            raise ValueError(f"max_block_range must be positive: {max_block_range}")
        self.node_rpc_url = node_rpc_url
        self.max_block_range = max_block_range

        if w3 is None:
            w3 = Web3(
                Web3.HTTPProvider(
                    node_rpc_url, request_kwargs={"timeout": request_timeout}
                )
            )
        if inject_geth_poa_middleware:
            w3.middleware_onion.inject(geth_poa_middleware, layer=0)
        self.w3 = w3

    def connect(
        self,
        max_attempts: int = _W3_CONNECTION_MAX_ATTEMPTS,
        delay: float = _W3_CONNECTION_BACKOFF,
    ) -> "Web3ChainReader":
        """
        Verify the node is reachable, retrying with exponential backoff.

        :param max_attempts: Maximum number of connection attempts.
        :param delay: Initial delay in seconds between attempts.
        :return: The reader.
        """

        def check_connection():
            if not self.w3.is_connected():
                raise ConnectionError(
                    f"is_connected() returned False for {self.node_rpc_url}"
                )

        with_retries(
            check_connection,
            _LOG,
            max_attempts=max_attempts,
            delay=delay,
            retry_on=(ConnectionError,),
        )
        _LOG.info("Web3ChainReader.connect(): Connected to %s", self.node_rpc_url)
        return self

    def get_chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    def get_current_height(self) -> int:
        return int(self.w3.eth.block_number)

    def _fetch_logs(
        self, contract_address: str, topic: str, from_block: int, to_block: int
    ) -> List[dict]:
        address = Web3.to_checksum_address(contract_address)
        step = self.max_block_range or (to_block - from_block + 1)
        logs = []
        for chunk_start in range(from_block, to_block + 1, step):
            chunk_end = min(chunk_start + step - 1, to_block)
            _LOG.debug(
                "Web3ChainReader._fetch_logs(): %s topic %s blocks %s..%s",
                address,
                topic,
                chunk_start,
                chunk_end,
            )
            logs.extend(
                self.w3.eth.get_logs(
                    {
                        "address": address,
                        "topics": [topic],
                        "fromBlock": chunk_start,
                        "toBlock": chunk_end,
                    }
                )
            )
        return logs
