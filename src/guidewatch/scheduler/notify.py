"""Notification sinks for critical-issue escalation.

The scheduler hands every escalation to exactly one sink, synchronously,
before the tick returns.  A sink only needs a ``notify`` method.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, runtime_checkable

from rich.console import Console
from rich.panel import Panel

from guidewatch.core.models import CriticalIssue, Severity

logger = logging.getLogger("guidewatch.notify")


@runtime_checkable
class NotificationSink(Protocol):
    def notify(self, issues: Sequence[CriticalIssue]) -> None:
        ...


class NullSink:
    """Discards notifications."""

    def notify(self, issues: Sequence[CriticalIssue]) -> None:
        pass


class LoggingSink:
    """Writes each issue to the ``guidewatch.notify`` logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def notify(self, issues: Sequence[CriticalIssue]) -> None:
        for issue in issues:
            level = logging.CRITICAL if issue.severity == Severity.CRITICAL else logging.ERROR
            self._log.log(
                level, "[%s] %s: %s", issue.severity.value, issue.kind, issue.description
            )


class CollectingSink:
    """Keeps every notification batch in memory."""

    def __init__(self) -> None:
        self.batches: list[tuple[CriticalIssue, ...]] = []

    def notify(self, issues: Sequence[CriticalIssue]) -> None:
        self.batches.append(tuple(issues))

    @property
    def issues(self) -> list[CriticalIssue]:
        return [issue for batch in self.batches for issue in batch]


class ConsoleSink:
    """Renders critical issues as a rich panel on stderr."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def notify(self, issues: Sequence[CriticalIssue]) -> None:
        if not issues:
            return
        lines = [
            f"  {index}. [bold]\\[{issue.severity.value}][/bold] {issue.description}"
            for index, issue in enumerate(issues, start=1)
        ]
        self.console.print(Panel(
            "\n".join(lines),
            title="[bold red]Critical issues detected[/bold red]",
            border_style="red",
            padding=(0, 1),
        ))
