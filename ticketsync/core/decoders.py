"""
Decoders turning raw contract logs into typed domain events.
Decoders are pure: the same raw log always yields the same event,
and no I/O is performed.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Callable, Union

from eth_abi.codec import ABICodec
from eth_utils import add_0x_prefix, encode_hex

# Private web3 6 modules; requirements.txt pins web3 below 7.
from web3._utils.abi import build_strict_registry
from web3._utils.events import get_event_data

from ticketsync.core.types import (
    DomainEvent,
    EventCreated,
    LogRef,
    OrderCreated,
    TicketMinted,
    TicketTransferred,
    normalize_address,
)

_ABI_DIR = Path(__file__).resolve().parent.parent / "abi"

# Same codec Web3 builds for decoding, without needing a node connection.
_CODEC = ABICodec(build_strict_registry())


class LogDecodeError(ValueError):
    """A raw log could not be decoded into the expected event."""


@lru_cache(maxsize=None)
def load_contract_abi(contract_name: str) -> tuple:
    """
    Load a contract ABI shipped with the package.

    :param contract_name: The contract name, e.g. "TicketManager".
    :return: The ABI entries.
    """
    with open(_ABI_DIR / f"{contract_name}.json", encoding="utf-8") as f:
        return tuple(json.load(f)["abi"])


def get_event_abi(contract_name: str, event_name: str) -> dict:
    """
    Get the ABI entry of a contract event.

    :param contract_name: The contract name.
    :param event_name: The event name.
    :return: The event ABI entry.
    """
    for item in load_contract_abi(contract_name):
        if item.get("type") == "event" and item.get("name") == event_name:
            return item
    raise ValueError(f"Event {event_name} not found in {contract_name} ABI")


EVENT_CREATED_ABI = get_event_abi("EventManager", "EventCreated")
TICKET_MINTED_ABI = get_event_abi("TicketManager", "TicketMinted")
TICKET_TRANSFERRED_ABI = get_event_abi("TicketManager", "Transfer")
ORDER_CREATED_ABI = get_event_abi("Marketplace", "OrderCreated")


def to_hex_str(value: Union[bytes, str]) -> str:
    """
    Convert a hash in bytes or string form to lower-case 0x-prefixed hex.
    """
    if isinstance(value, (bytes, bytearray)):
        return encode_hex(bytes(value))
    return add_0x_prefix(value.lower())


def _decode(event_abi: dict, raw_log: dict) -> dict:
    try:
        return get_event_data(_CODEC, event_abi, raw_log)
    except Exception as e:  # pylint: disable=broad-except
        raise LogDecodeError(
            f"Cannot decode {event_abi['name']} log "
            f"{raw_log.get('transactionHash')!r}#{raw_log.get('logIndex')}: {e}"
        ) from e


def _log_ref(event_data: dict) -> LogRef:
    return LogRef(
        block_number=int(event_data["blockNumber"]),
        log_index=int(event_data["logIndex"]),
        transaction_hash=to_hex_str(event_data["transactionHash"]),
    )


def decode_event_created(raw_log: dict) -> EventCreated:
    """
    Decode an EventManager EventCreated log.

    :param raw_log: The raw log returned by eth_getLogs.
    :return: The decoded event.
    """
    event_data = _decode(EVENT_CREATED_ABI, raw_log)
    args = event_data["args"]
    return EventCreated(
        event_id=int(args["eventId"]),
        organizer=normalize_address(args["organizer"]),
        name=args["name"],
        max_tickets=int(args["maxTickets"]),
        ticket_price=int(args["ticketPrice"]),
        ref=_log_ref(event_data),
    )


def decode_ticket_minted(raw_log: dict) -> TicketMinted:
    """
    Decode a TicketManager TicketMinted log.

    :param raw_log: The raw log returned by eth_getLogs.
    :return: The decoded event.
    """
    event_data = _decode(TICKET_MINTED_ABI, raw_log)
    args = event_data["args"]
    return TicketMinted(
        token_id=int(args["tokenId"]),
        event_id=int(args["eventId"]),
        to=normalize_address(args["to"]),
        seat_number=args["seatNumber"],
        ref=_log_ref(event_data),
    )


def decode_ticket_transferred(raw_log: dict) -> TicketTransferred:
    """
    Decode a TicketManager ERC-721 Transfer log.
    Mint transfers (from the zero address) are decoded too;
    callers filter them with TicketTransferred.is_mint.

    :param raw_log: The raw log returned by eth_getLogs.
    :return: The decoded event.
    """
    event_data = _decode(TICKET_TRANSFERRED_ABI, raw_log)
    args = event_data["args"]
    return TicketTransferred(
        from_address=normalize_address(args["from"]),
        to=normalize_address(args["to"]),
        token_id=int(args["tokenId"]),
        ref=_log_ref(event_data),
    )


def decode_order_created(raw_log: dict) -> OrderCreated:
    """
    Decode a Marketplace OrderCreated log.

    :param raw_log: The raw log returned by eth_getLogs.
    :return: The decoded event.
    """
    event_data = _decode(ORDER_CREATED_ABI, raw_log)
    args = event_data["args"]
    return OrderCreated(
        order_id=to_hex_str(args["orderId"]),
        buyer=normalize_address(args["buyer"]),
        event_id=int(args["eventId"]),
        price=int(args["price"]),
        ref=_log_ref(event_data),
    )


Decoder = Callable[[dict], DomainEvent]
