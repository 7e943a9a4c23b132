"""
Tests of the chain_reader module
"""

import unittest
from unittest.mock import MagicMock

from eth_utils import encode_hex, keccak, to_checksum_address

from ticketsync.core.chain_reader import Web3ChainReader, get_event_topic
from ticketsync.core.decoders import EVENT_CREATED_ABI, TICKET_TRANSFERRED_ABI
from ticketsync.tests.utils import EVENT_MANAGER_ADDRESS


def _reader(max_block_range=None) -> Web3ChainReader:
    w3 = MagicMock()
    w3.eth.get_logs.return_value = []
    return Web3ChainReader(
        "http://127.0.0.1:8545/", max_block_range=max_block_range, w3=w3
    )


class TestWeb3ChainReader(unittest.TestCase):
    """
    Test the Web3 chain reader against a mocked Web3 object.
    """

    def test_event_topic(self):
        self.assertEqual(
            get_event_topic(EVENT_CREATED_ABI),
            encode_hex(
                keccak(text="EventCreated(uint256,address,string,uint256,uint256)")
            ),
        )
        self.assertEqual(
            get_event_topic(TICKET_TRANSFERRED_ABI),
            "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef",
        )

    def test_height_and_chain_id(self):
        reader = _reader()
        reader.w3.eth.block_number = 123
        reader.w3.eth.chain_id = 31337
        self.assertEqual(reader.get_current_height(), 123)
        self.assertEqual(reader.get_chain_id(), 31337)

    def test_get_logs_filter(self):
        reader = _reader()
        reader.w3.eth.get_logs.return_value = [{"logIndex": 0}]
        logs = reader.get_logs(EVENT_MANAGER_ADDRESS, EVENT_CREATED_ABI, 5, 10)
        self.assertEqual(logs, [{"logIndex": 0}])
        reader.w3.eth.get_logs.assert_called_once_with(
            {
                "address": to_checksum_address(EVENT_MANAGER_ADDRESS),
                "topics": [get_event_topic(EVENT_CREATED_ABI)],
                "fromBlock": 5,
                "toBlock": 10,
            }
        )

    def test_degenerate_range_makes_no_call(self):
        reader = _reader()
        self.assertEqual(
            reader.get_logs(EVENT_MANAGER_ADDRESS, EVENT_CREATED_ABI, 101, 100), []
        )
        reader.w3.eth.get_logs.assert_not_called()

    def test_single_block_range(self):
        reader = _reader()
        reader.get_logs(EVENT_MANAGER_ADDRESS, EVENT_CREATED_ABI, 7, 7)
        reader.w3.eth.get_logs.assert_called_once()

    def test_chunked_range(self):
        reader = _reader(max_block_range=10)
        reader.w3.eth.get_logs.side_effect = lambda params: [params["fromBlock"]]
        logs = reader.get_logs(EVENT_MANAGER_ADDRESS, EVENT_CREATED_ABI, 0, 25)
        self.assertEqual(logs, [0, 10, 20])
        ranges = [
            (c.args[0]["fromBlock"], c.args[0]["toBlock"])
            for c in reader.w3.eth.get_logs.call_args_list
        ]
        self.assertEqual(ranges, [(0, 9), (10, 19), (20, 25)])

    def test_errors_propagate(self):
        reader = _reader()
        reader.w3.eth.get_logs.side_effect = ConnectionError("node down")
        with self.assertRaises(ConnectionError):
            reader.get_logs(EVENT_MANAGER_ADDRESS, EVENT_CREATED_ABI, 0, 10)
        self.assertEqual(reader.w3.eth.get_logs.call_count, 1)

    def test_invalid_block_range_setting(self):
        with self.assertRaises(ValueError):
            _reader(max_block_range=0)

    def test_connect_retries_then_succeeds(self):
        reader = _reader()
        reader.w3.is_connected.side_effect = [False, True]
        self.assertIs(reader.connect(delay=0), reader)
        self.assertEqual(reader.w3.is_connected.call_count, 2)

    def test_connect_gives_up(self):
        reader = _reader()
        reader.w3.is_connected.return_value = False
        with self.assertRaises(ConnectionError):
            reader.connect(max_attempts=3, delay=0)
        self.assertEqual(reader.w3.is_connected.call_count, 3)


if __name__ == "__main__":
    unittest.main()
