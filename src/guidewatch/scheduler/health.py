"""System health check run at the start of every scheduler tick."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from guidewatch.core.config import RulesConfig, SchedulerConfig
from guidewatch.core.models import (
    HealthIssue,
    HealthReport,
    HealthStatus,
    SessionState,
    Severity,
    utcnow,
)


class HealthChecker:
    """Inspects the session snapshot and recent audit outcomes.

    Issues found:

    * ``SESSION_UNAVAILABLE`` (critical): no snapshot could be obtained.
    * ``PROJECT_STRUCTURE`` (high): a required folder is missing.
    * ``SESSION_CONTEXT`` (high): session id or project name is missing.
    * ``GIT_REPOSITORY`` (medium): no remote repository is configured.
    * ``DECLINING_COMPLIANCE`` (high): too many recent low scores.
    * ``LONG_RUNNING_TASK`` (low): the current task has been open too long.
    """

    def __init__(
        self,
        rules: RulesConfig | None = None,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.rules = rules or RulesConfig()
        self.config = config or SchedulerConfig()
        self._clock = clock

    def check(
        self,
        state: SessionState | None,
        recent_scores: Sequence[int] = (),
    ) -> HealthReport:
        issues: list[HealthIssue] = []

        if state is None:
            issues.append(HealthIssue(
                "SESSION_UNAVAILABLE",
                Severity.CRITICAL,
                "No session snapshot is available",
            ))
            state = SessionState()
        else:
            folders = state.folders if isinstance(state.folders, (list, tuple)) else ()
            missing = [f for f in self.rules.required_folders if f not in folders]
            if missing:
                issues.append(HealthIssue(
                    "PROJECT_STRUCTURE",
                    Severity.HIGH,
                    f"Required project folders are missing: {', '.join(missing)}",
                ))
            if not getattr(state.git, "remote_repository", None):
                issues.append(HealthIssue(
                    "GIT_REPOSITORY",
                    Severity.MEDIUM,
                    "No remote repository is configured",
                ))
            if not state.session_id or not state.project_name:
                issues.append(HealthIssue(
                    "SESSION_CONTEXT",
                    Severity.HIGH,
                    "Session context is incomplete (session id or project name missing)",
                ))

        window = list(recent_scores)[-self.config.declining_window:]
        low = [s for s in window if s < self.config.declining_score]
        if len(low) >= self.config.declining_count:
            issues.append(HealthIssue(
                "DECLINING_COMPLIANCE",
                Severity.HIGH,
                f"Compliance has stayed low in recent checks: {window}",
            ))

        started = getattr(state.current_task, "started_at", None)
        if isinstance(started, datetime):
            if started.tzinfo is None:
                started = started.replace(tzinfo=timezone.utc)
            running = self._clock() - started
            if running > timedelta(hours=self.config.long_running_task_hours):
                hours = int(running.total_seconds() // 3600)
                issues.append(HealthIssue(
                    "LONG_RUNNING_TASK",
                    Severity.LOW,
                    f"Current task has been running for {hours} hours",
                ))

        return HealthReport(
            status=overall_status(issues),
            issues=tuple(issues),
            timestamp=self._clock(),
        )


def overall_status(issues: Sequence[HealthIssue]) -> HealthStatus:
    if not issues:
        return HealthStatus.HEALTHY
    severities = {i.severity for i in issues}
    if Severity.CRITICAL in severities:
        return HealthStatus.CRITICAL
    if Severity.HIGH in severities:
        return HealthStatus.UNHEALTHY
    return HealthStatus.WARNING
