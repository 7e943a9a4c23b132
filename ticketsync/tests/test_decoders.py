"""
Tests of the decoders module
"""

import unittest

from eth_utils import keccak
from hexbytes import HexBytes

from ticketsync.core.decoders import (
    LogDecodeError,
    decode_event_created,
    decode_order_created,
    decode_ticket_minted,
    decode_ticket_transferred,
    to_hex_str,
)
from ticketsync.core.types import ZERO_ADDRESS
from ticketsync.tests.utils import (
    ALICE,
    BOB,
    ORGANIZER,
    event_created_log,
    mint_transfer_log,
    order_created_log,
    ticket_minted_log,
    transfer_log,
)


class TestDecoders(unittest.TestCase):
    """
    Test decoding of raw logs into domain events.
    """

    def test_decode_event_created(self):
        raw_log = event_created_log(
            1, name="Launch Party", max_tickets=1000, ticket_price=5, block_number=42
        )
        event = decode_event_created(raw_log)
        self.assertEqual(event.event_id, 1)
        self.assertEqual(event.organizer, ORGANIZER)
        self.assertEqual(event.name, "Launch Party")
        self.assertEqual(event.max_tickets, 1000)
        self.assertEqual(event.ticket_price, 5)
        self.assertEqual(event.ref.block_number, 42)
        self.assertEqual(
            event.ref.transaction_hash, to_hex_str(raw_log["transactionHash"])
        )

    def test_addresses_are_lower_cased(self):
        # Decoded addresses come back checksummed from the codec.
        mixed_case = ALICE.upper().replace("0X", "0x")
        event = decode_ticket_minted(ticket_minted_log(7, 1, to=mixed_case))
        self.assertEqual(event.to, ALICE)

    def test_decode_ticket_minted(self):
        event = decode_ticket_minted(
            ticket_minted_log(7, 3, to=BOB, seat_number="B12", log_index=4)
        )
        self.assertEqual(event.token_id, 7)
        self.assertEqual(event.event_id, 3)
        self.assertEqual(event.to, BOB)
        self.assertEqual(event.seat_number, "B12")
        self.assertEqual(event.ref.log_index, 4)

    def test_decode_transfer(self):
        event = decode_ticket_transferred(transfer_log(7, ALICE, BOB))
        self.assertEqual(event.from_address, ALICE)
        self.assertEqual(event.to, BOB)
        self.assertEqual(event.token_id, 7)
        self.assertFalse(event.is_mint)

    def test_decode_mint_transfer(self):
        event = decode_ticket_transferred(mint_transfer_log(7))
        self.assertEqual(event.from_address, ZERO_ADDRESS)
        self.assertTrue(event.is_mint)

    def test_decode_order_created(self):
        order_id = keccak(text="order-1")
        raw_log = order_created_log(order_id, 2, buyer=BOB, price=123)
        event = decode_order_created(raw_log)
        self.assertEqual(event.order_id, "0x" + order_id.hex())
        self.assertEqual(event.buyer, BOB)
        self.assertEqual(event.event_id, 2)
        self.assertEqual(event.price, 123)
        self.assertTrue(event.ref.transaction_hash.startswith("0x"))
        self.assertEqual(event.ref.transaction_hash, event.ref.transaction_hash.lower())

    def test_decoding_is_deterministic(self):
        raw_log = event_created_log(9)
        self.assertEqual(decode_event_created(raw_log), decode_event_created(raw_log))

    def test_signature_mismatch_raises(self):
        with self.assertRaises(LogDecodeError):
            decode_event_created(ticket_minted_log(7, 1))

    def test_malformed_data_raises(self):
        raw_log = event_created_log(1)
        raw_log["data"] = HexBytes(b"\x01\x02")
        with self.assertRaises(LogDecodeError):
            decode_event_created(raw_log)

    def test_missing_topics_raises(self):
        raw_log = transfer_log(7, ALICE, BOB)
        raw_log["topics"] = raw_log["topics"][:2]
        with self.assertRaises(LogDecodeError):
            decode_ticket_transferred(raw_log)

    def test_decode_error_is_value_error(self):
        self.assertTrue(issubclass(LogDecodeError, ValueError))


if __name__ == "__main__":
    unittest.main()
