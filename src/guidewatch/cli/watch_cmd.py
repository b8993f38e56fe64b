"""guidewatch watch command."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import click

from guidewatch.auditor import build_auditor
from guidewatch.core.config import load_config
from guidewatch.core.errors import ConfigurationError
from guidewatch.core.output import (
    console,
    error_console,
    print_check_result,
    print_statistics,
    print_violation_summary,
)
from guidewatch.core.session import load_session
from guidewatch.scheduler.notify import ConsoleSink


@click.command()
@click.argument("session_file", type=click.Path(path_type=Path))
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None, help="Path to guidewatch.toml")
@click.option("--interval", type=float, default=None, help="Minutes between checks (default from config)")
@click.option("--poll", type=float, default=1.0, hidden=True)
def watch(session_file: Path, config_path: Path | None, interval: float | None, poll: float):
    """Audit SESSION_FILE now and then on a schedule.

    The file is re-read on every check.  Stops on Ctrl+C, or with exit
    code 1 when repeated failures trip the circuit breaker.
    """
    try:
        config = load_config(config_path)
        if interval is not None:
            config.scheduler.interval_minutes = interval
        auditor = build_auditor(config, sink=ConsoleSink(error_console))
    except ConfigurationError as e:
        error_console.print(f"\n  [red]{e}[/red]\n")
        sys.exit(2)
    scheduler = auditor.scheduler

    console.print(
        f"\n  Watching [bold]{session_file}[/bold] every "
        f"{config.scheduler.interval_minutes:g} minutes. Press Ctrl+C to stop.\n"
    )

    seen: set[str] = set()

    def print_new_results() -> None:
        for result in scheduler.history():
            if result.check_id not in seen:
                seen.add(result.check_id)
                print_check_result(result)

    scheduler.start(lambda: load_session(session_file))
    try:
        while scheduler.is_running():
            print_new_results()
            time.sleep(poll)
    except KeyboardInterrupt:
        scheduler.stop()
        console.print()
        print_statistics(scheduler.get_statistics())
        print_violation_summary(scheduler.get_violation_report())
        return

    # the tripping check may finish after the last pass
    print_new_results()
    print_statistics(scheduler.get_statistics())
    error_console.print("\n  [red]Checks stopped after repeated failures. Restart manually.[/red]\n")
    sys.exit(1)
