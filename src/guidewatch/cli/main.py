"""Click CLI entry point for guidewatch."""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from guidewatch._version import __version__
from guidewatch.core.output import error_console


@click.group()
@click.version_option(version=__version__, prog_name="guidewatch")
@click.option("-v", "--verbose", is_flag=True, help="Show scheduler and ledger log output")
def cli(verbose: bool):
    """guidewatch - guideline compliance auditing for project sessions.

    Score a session context against the compliance rules, log violations
    and keep auditing on a schedule.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=error_console, show_path=False)],
        )


# Import and register subcommands
from guidewatch.cli.check_cmd import check  # noqa: E402
from guidewatch.cli.watch_cmd import watch  # noqa: E402

cli.add_command(check)
cli.add_command(watch)


if __name__ == "__main__":
    cli()
