"""guidewatch check command."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from guidewatch.auditor import build_auditor
from guidewatch.core.config import load_config
from guidewatch.core.errors import ConfigurationError, SessionLoadError
from guidewatch.core.models import CheckStatus
from guidewatch.core.output import (
    console,
    error_console,
    print_check_result,
    report_payload,
)
from guidewatch.core.session import load_session
from guidewatch.scheduler.notify import ConsoleSink, NullSink


@click.command()
@click.argument("session_file", type=click.Path(path_type=Path))
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None, help="Path to guidewatch.toml")
@click.option("--json", "as_json", is_flag=True, help="Print the reports as JSON")
@click.option("--fail-under", type=int, default=0, help="Exit 1 if the overall score is below this value")
def check(session_file: Path, config_path: Path | None, as_json: bool, fail_under: int):
    """Run one compliance audit of SESSION_FILE.

    SESSION_FILE is a .session-context.json document.
    """
    try:
        config = load_config(config_path)
        state = load_session(session_file)
    except (ConfigurationError, SessionLoadError) as e:
        error_console.print(f"\n  [red]{e}[/red]\n")
        sys.exit(2)

    sink = NullSink() if as_json else ConsoleSink(error_console)
    auditor = build_auditor(config, sink=sink)
    result = auditor.scheduler.run_check(state)

    if as_json:
        payload = report_payload(
            result,
            auditor.scheduler.get_compliance_report(),
            auditor.scheduler.get_violation_report(),
        )
        click.echo(json.dumps(payload, indent=2))
    else:
        print_check_result(result)

    if result.status == CheckStatus.FAILED:
        sys.exit(2)
    if fail_under and result.compliance.overall < fail_under:
        if not as_json:
            console.print(
                f"\n  [red]Score {result.compliance.overall} is below --fail-under {fail_under}[/red]\n"
            )
        sys.exit(1)
