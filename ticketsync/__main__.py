from ticketsync.cli import cli

cli(prog_name="ticketsync")
