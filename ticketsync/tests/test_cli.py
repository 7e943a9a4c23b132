"""
Tests of the cli module
"""

import os
import tempfile
import unittest
from unittest.mock import patch

from click.testing import CliRunner

from ticketsync.cli import cli
from ticketsync.core.sync_orchestrator import SyncOrchestrator
from ticketsync.core.ticket_store import SQLTicketStore, now_ms
from ticketsync.core.types import ContractCategory, WatchedContract
from ticketsync.tests.utils import (
    CHAIN_ID,
    EVENT_MANAGER_ADDRESS,
    MARKETPLACE_ADDRESS,
    FakeChainReader,
    create_memory_store,
    event_created_log,
)


class TestCli(unittest.TestCase):
    """
    Test the ticketsync commands.
    """

    def setUp(self):
        self.runner = CliRunner()
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.db_url = f"sqlite:///{os.path.join(self.tmp_dir.name, 'sync.db')}"
        self.env = {
            "TICKETSYNC_NODE_RPC_URL": "http://127.0.0.1:8545/",
            "TICKETSYNC_DATABASE_URL": self.db_url,
        }

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_status_lists_cursors(self):
        store = SQLTicketStore(self.db_url).initialize()
        store.upsert_cursor(EVENT_MANAGER_ADDRESS, 100, now_ms())
        store.upsert_cursor(MARKETPLACE_ADDRESS, 90, 0)
        store.dispose()

        with patch.dict(os.environ, self.env, clear=True):
            result = self.runner.invoke(cli, ["status", "--max-age", "60"])

        self.assertEqual(result.exit_code, 0, result.output)
        lines = result.output.strip().splitlines()
        self.assertEqual(len(lines), 2)
        fresh = next(line for line in lines if EVENT_MANAGER_ADDRESS in line)
        stale = next(line for line in lines if MARKETPLACE_ADDRESS in line)
        self.assertIn("block 100", fresh)
        self.assertNotIn("STALE", fresh)
        self.assertIn("STALE", stale)

    def test_status_without_cursors(self):
        SQLTicketStore(self.db_url).initialize().dispose()
        with patch.dict(os.environ, self.env, clear=True):
            result = self.runner.invoke(cli, ["status"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No contracts synced yet.", result.output)

    def test_sync_once(self):
        store = create_memory_store()
        reader = FakeChainReader(height=10)
        reader.add_logs(event_created_log(1, block_number=3))
        orchestrator = SyncOrchestrator(
            reader,
            store,
            [WatchedContract(ContractCategory.EVENT_MANAGER, EVENT_MANAGER_ADDRESS)],
            CHAIN_ID,
        )

        with patch.dict(os.environ, self.env, clear=True), patch(
            "ticketsync.cli.create_sync_service", return_value=(orchestrator, store)
        ):
            result = self.runner.invoke(cli, ["sync-once"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("synced", result.output)
        self.assertIn("decoded=1", result.output)

    def test_startup_failure_exits_non_zero(self):
        with patch.dict(os.environ, {}, clear=True):
            result = self.runner.invoke(cli, ["sync-once"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn(
            "Startup failed: Missing required environment variables", result.output
        )


if __name__ == "__main__":
    unittest.main()
