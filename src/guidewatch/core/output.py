"""Rich terminal formatting and JSON export for guidewatch output."""

from __future__ import annotations

import dataclasses
import enum
from datetime import datetime
from typing import Any, Mapping

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from guidewatch.core.models import (
    CheckResult,
    CheckStatus,
    ComplianceReport,
    Grade,
    Priority,
    SchedulerStatistics,
    Severity,
    ViolationReport,
)

console = Console()
error_console = Console(stderr=True)


SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

GRADE_COLORS = {
    Grade.EXCELLENT: "green",
    Grade.GOOD: "green",
    Grade.ACCEPTABLE: "yellow",
    Grade.POOR: "red",
    Grade.CRITICAL: "red",
}


def score_color(score: int) -> str:
    """Return color name based on score."""
    if score >= 85:
        return "green"
    elif score >= 70:
        return "yellow"
    return "red"


def progress_bar(score: int, width: int = 10) -> str:
    """Create a text-based progress bar."""
    filled = round(score / 100 * width)
    empty = width - filled
    color = score_color(score)
    return f"[{color}]{'█' * filled}{'░' * empty}[/{color}]"


def _label(rule_id: enum.Enum) -> str:
    return rule_id.value.replace("_", " ").title()


def print_check_result(result: CheckResult) -> None:
    """Print the report card for one compliance check."""
    if result.status == CheckStatus.FAILED or result.compliance is None:
        console.print(Panel(
            f"\n  [red]Check failed:[/red] {escape(result.error or '')}\n",
            title=f"[bold]Compliance Check {result.check_id}[/bold]",
            border_style="red",
            padding=(0, 1),
        ))
        return

    compliance = result.compliance
    color = GRADE_COLORS[compliance.grade]

    lines = [""]
    lines.append(
        f"  Overall Score:  [{color}]{compliance.overall}/100[/{color}]  "
        f"{compliance.grade.value}  (trend: {compliance.trend.value.lower()})"
    )
    lines.append("")

    for rule_id, score in compliance.rule_scores.items():
        bar = progress_bar(score)
        lines.append(f"  {_label(rule_id):<28} {bar}  {score}/100")
    lines.append("")

    if result.health is not None and result.health.issues:
        lines.append(f"  Health: {result.health.status.value}")
        for issue in result.health.issues:
            sev_color = SEVERITY_COLORS[issue.severity]
            lines.append(f"  [{sev_color}]●[/{sev_color}] {issue.kind}  {issue.description}")
        lines.append("")

    for violation in result.violations:
        sev_color = SEVERITY_COLORS[violation.severity]
        fix = ""
        if violation.fix.attempted:
            fix = " [green](auto-fixed)[/green]" if violation.fix.succeeded else " [red](auto-fix failed)[/red]"
        recurring = " [magenta](recurring)[/magenta]" if violation.recurring else ""
        lines.append(
            f"  [{sev_color}]●[/{sev_color}] {violation.severity.value:<6} "
            f"{violation.description}{fix}{recurring}"
        )
    if result.violations:
        lines.append("")

    for rec in compliance.recommendations:
        marker = "[red]HIGH[/red]  " if rec.priority == Priority.HIGH else "[yellow]MEDIUM[/yellow]"
        lines.append(f"  {marker} {rec.action}")
    if compliance.recommendations:
        lines.append("")

    lines.append(
        f"  {len(result.violations)} violations | "
        f"{sum(1 for f in result.auto_fixes if f.status == 'FIXED')} auto-fixed | "
        f"{result.duration_ms:.0f} ms"
    )

    console.print(Panel(
        "\n".join(lines),
        title="[bold]Guideline Compliance Report[/bold]",
        border_style=color,
        padding=(0, 1),
    ))


def print_statistics(stats: SchedulerStatistics) -> None:
    last = stats.last_check_time.isoformat(timespec="seconds") if stats.last_check_time else "never"
    console.print(
        f"  Checks: {stats.total_checks} | "
        f"success (last {stats.recent_checks}): {stats.recent_success_rate:.0f}% | "
        f"avg violations: {stats.avg_violations_per_check:.1f} | "
        f"last: {last}"
    )


def print_violation_summary(report: ViolationReport) -> None:
    s = report.summary
    console.print(
        f"  Violations: {s.total_violations} | auto-fix rate: {s.auto_fix_rate}% | "
        f"resolution rate: {s.resolution_rate}% | recurring: {s.recurring_issues}"
    )
    for rec in report.recommendations:
        console.print(f"  [red]●[/red] {rec.description}")


def to_jsonable(value: Any) -> Any:
    """Convert guidewatch models into JSON-compatible structures."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {
            (k.value if isinstance(k, enum.Enum) else str(k)): to_jsonable(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def report_payload(
    result: CheckResult,
    compliance: ComplianceReport,
    violations: ViolationReport,
) -> dict[str, Any]:
    return {
        "check": to_jsonable(result),
        "compliance_report": to_jsonable(compliance),
        "violation_report": to_jsonable(violations),
    }
