"""CLI commands for the ticketsync engine."""

import signal
import sys
import threading

import click

from ticketsync.core.config import SyncConfig
from ticketsync.core.service import create_sync_service
from ticketsync.core.ticket_store import SQLTicketStore, format_timestamp
from ticketsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)

env_file_option = click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Load settings from this .env file.",
)


def _startup(env_file):
    try:
        config = SyncConfig.from_env(env_file)
        return create_sync_service(config)
    except Exception as e:  # pylint: disable=broad-except
        _LOG.error("Startup failed: %s", e, exc_info=True)
        click.echo(f"Startup failed: {e}", err=True)
        sys.exit(1)


@click.group()
def cli():
    """ticketsync: mirror ticketing contract events into the ticket store."""


@cli.command()
@env_file_option
def run(env_file):
    """Sync now and every 30 seconds until interrupted."""
    orchestrator, store = _startup(env_file)
    stop_requested = threading.Event()

    def request_stop(signum, _frame):
        _LOG.info("Received signal %s, stopping", signum)
        stop_requested.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    orchestrator.start()
    try:
        while not stop_requested.is_set() and orchestrator.is_running:
            stop_requested.wait(1.0)
    finally:
        orchestrator.stop()
        store.dispose()


@cli.command("sync-once")
@env_file_option
def sync_once(env_file):
    """Run a single sync pass and print a summary."""
    orchestrator, store = _startup(env_file)
    try:
        result = orchestrator.sync_all_contracts()
    finally:
        store.dispose()
    if result.dropped_logs_resolved:
        click.echo(f"Resolved {result.dropped_logs_resolved} dropped logs")
    for r in result.contracts:
        click.echo(
            f"{r.contract.category.value:<14} {r.contract.address} {r.status:<10} "
            f"blocks {r.from_block}..{r.to_block} "
            f"decoded={r.logs_decoded} projected={r.logs_projected} "
            f"failed={r.logs_failed}"
        )
    if result.failed:
        sys.exit(2)


@cli.command()
@env_file_option
@click.option(
    "--max-age",
    type=float,
    default=120.0,
    show_default=True,
    help="Flag cursors not advanced for this many seconds.",
)
def status(env_file, max_age):
    """Print the sync cursor of every contract."""
    config = SyncConfig.from_env(env_file)
    store = SQLTicketStore(config.database_url).initialize()
    try:
        stale = {c.contract_address for c in store.find_stale_cursors(max_age)}
        cursors = store.list_cursors()
    finally:
        store.dispose()
    if not cursors:
        click.echo("No contracts synced yet.")
        return
    for c in cursors:
        flag = " STALE" if c.contract_address in stale else ""
        click.echo(
            f"{c.contract_address} block {c.last_block_number} "
            f"at {format_timestamp(c.synced_at)}{flag}"
        )


if __name__ == "__main__":
    cli()
