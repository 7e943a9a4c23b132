"""
ticketsync test utils
"""

from typing import List, Optional, Sequence

from eth_abi import encode
from eth_utils import encode_hex, event_abi_to_log_topic, keccak, to_checksum_address
from hexbytes import HexBytes
from sqlalchemy.pool import StaticPool

from ticketsync.core.chain_reader import ChainReader
from ticketsync.core.decoders import (
    EVENT_CREATED_ABI,
    ORDER_CREATED_ABI,
    TICKET_MINTED_ABI,
    TICKET_TRANSFERRED_ABI,
)
from ticketsync.core.ticket_store import SQLTicketStore
from ticketsync.core.types import ZERO_ADDRESS

CHAIN_ID = 31337

EVENT_MANAGER_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
TICKET_MANAGER_ADDRESS = "0xe7f1725e7734ce288f8367e1bb143e90bb3f0512"
MARKETPLACE_ADDRESS = "0x9fe46736679d2d9a65f0992f2272de9f3c7fa6e0"
TOKEN_SWAP_ADDRESS = "0xcf7ed3acca5a467e9e704c703e8d87f634fb0fc9"

ORGANIZER = "0xabcdef0123456789abcdef0123456789abcdef01"
ALICE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
BOB = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"


def create_memory_store() -> SQLTicketStore:
    """
    Create an initialized store on a private in-memory SQLite database.
    """
    return SQLTicketStore(
        "sqlite://",
        engine_kwargs={
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        },
    ).initialize()


def tx_hash_for(block_number: int, log_index: int) -> HexBytes:
    """A deterministic transaction hash for a log position."""
    return HexBytes(keccak(text=f"tx-{block_number}-{log_index}"))


# pylint: disable-msg=too-many-arguments
def make_log(
    event_abi: dict,
    indexed_values: Sequence,
    data_values: Sequence,
    address: str,
    block_number: int,
    log_index: int = 0,
    transaction_hash: Optional[bytes] = None,
) -> dict:
    """
    Build a raw log as returned by eth_getLogs, ABI-encoding the values.
    """
    indexed_inputs = [i for i in event_abi["inputs"] if i["indexed"]]
    data_inputs = [i for i in event_abi["inputs"] if not i["indexed"]]
    topics = [HexBytes(event_abi_to_log_topic(event_abi))] + [
        HexBytes(encode([i["type"]], [v]))
        for i, v in zip(indexed_inputs, indexed_values)
    ]
    if transaction_hash is None:
        transaction_hash = tx_hash_for(block_number, log_index)
    return {
        "address": to_checksum_address(address),
        "topics": topics,
        "data": HexBytes(encode([i["type"] for i in data_inputs], list(data_values))),
        "blockNumber": block_number,
        "blockHash": HexBytes(keccak(text=f"block-{block_number}")),
        "logIndex": log_index,
        "transactionIndex": 0,
        "transactionHash": HexBytes(transaction_hash),
        "removed": False,
    }


def event_created_log(
    event_id: int,
    organizer: str = ORGANIZER,
    name: str = "Concert",
    max_tickets: int = 1000,
    ticket_price: int = 10**16,
    block_number: int = 1,
    log_index: int = 0,
    address: str = EVENT_MANAGER_ADDRESS,
) -> dict:
    return make_log(
        EVENT_CREATED_ABI,
        [event_id, to_checksum_address(organizer)],
        [name, max_tickets, ticket_price],
        address,
        block_number,
        log_index,
    )


def ticket_minted_log(
    token_id: int,
    event_id: int,
    to: str = ALICE,
    seat_number: str = "A1",
    block_number: int = 1,
    log_index: int = 0,
    address: str = TICKET_MANAGER_ADDRESS,
) -> dict:
    return make_log(
        TICKET_MINTED_ABI,
        [token_id, event_id, to_checksum_address(to)],
        [seat_number],
        address,
        block_number,
        log_index,
    )


def transfer_log(
    token_id: int,
    from_address: str,
    to: str,
    block_number: int = 1,
    log_index: int = 0,
    address: str = TICKET_MANAGER_ADDRESS,
) -> dict:
    return make_log(
        TICKET_TRANSFERRED_ABI,
        [to_checksum_address(from_address), to_checksum_address(to), token_id],
        [],
        address,
        block_number,
        log_index,
    )


def mint_transfer_log(token_id: int, to: str = ALICE, **kwargs) -> dict:
    return transfer_log(token_id, ZERO_ADDRESS, to, **kwargs)


def order_created_log(
    order_id: bytes,
    event_id: int,
    buyer: str = ALICE,
    price: int = 10**16,
    block_number: int = 1,
    log_index: int = 0,
    transaction_hash: Optional[bytes] = None,
    address: str = MARKETPLACE_ADDRESS,
) -> dict:
    return make_log(
        ORDER_CREATED_ABI,
        [order_id, to_checksum_address(buyer), event_id],
        [price],
        address,
        block_number,
        log_index,
        transaction_hash,
    )


class FakeChainReader(ChainReader):
    """
    In-memory chain serving logs added by the test.
    """

    def __init__(self, height: int = 0, chain_id: int = CHAIN_ID):
        self.height = height
        self.chain_id = chain_id
        self.logs: List[dict] = []
        self.failing_addresses = set()
        self.fetch_calls: List[tuple] = []

    def add_logs(self, *raw_logs: dict) -> None:
        self.logs.extend(raw_logs)

    def fail_for(self, address: str) -> None:
        self.failing_addresses.add(address.lower())

    def get_chain_id(self) -> int:
        return self.chain_id

    def get_current_height(self) -> int:
        return self.height

    def _fetch_logs(
        self, contract_address: str, topic: str, from_block: int, to_block: int
    ) -> List[dict]:
        self.fetch_calls.append((contract_address.lower(), topic, from_block, to_block))
        if contract_address.lower() in self.failing_addresses:
            raise ConnectionError(f"RPC unavailable for {contract_address}")
        return [
            raw_log
            for raw_log in self.logs
            if raw_log["address"].lower() == contract_address.lower()
            and encode_hex(raw_log["topics"][0]) == topic
            and from_block <= raw_log["blockNumber"] <= to_block
        ]
