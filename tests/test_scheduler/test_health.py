"""Tests for the per-tick health check."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from guidewatch.core.config import SchedulerConfig
from guidewatch.core.models import (
    CurrentTask,
    GitStatus,
    HealthIssue,
    HealthStatus,
    SessionState,
    Severity,
)
from guidewatch.scheduler.health import HealthChecker, overall_status

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _checker(**config) -> HealthChecker:
    return HealthChecker(config=SchedulerConfig(**config), clock=lambda: NOW)


def _healthy_state(**overrides) -> SessionState:
    values = dict(
        session_id="s-1",
        project_name="demo",
        folders=("evidence", "docs", "src"),
        git=GitStatus(remote_repository="origin"),
    )
    values.update(overrides)
    return SessionState(**values)


def _kinds(report) -> set[str]:
    return {issue.kind for issue in report.issues}


class TestHealthChecker:
    def test_healthy(self):
        report = _checker().check(_healthy_state())
        assert report.status == HealthStatus.HEALTHY
        assert report.issues == ()
        assert report.timestamp == NOW

    def test_missing_snapshot_is_critical(self):
        report = _checker().check(None)
        assert report.status == HealthStatus.CRITICAL
        assert _kinds(report) == {"SESSION_UNAVAILABLE"}
        assert len(report.critical_issues) == 1

    def test_missing_folders(self):
        report = _checker().check(_healthy_state(folders=("src",)))
        assert report.status == HealthStatus.UNHEALTHY
        (issue,) = report.issues
        assert issue.kind == "PROJECT_STRUCTURE"
        assert "evidence, docs" in issue.description

    def test_non_sequence_folders_count_as_missing(self):
        report = _checker().check(_healthy_state(folders=None, git=None))
        assert _kinds(report) == {"PROJECT_STRUCTURE", "GIT_REPOSITORY"}

    def test_missing_remote_is_a_warning(self):
        report = _checker().check(_healthy_state(git=GitStatus()))
        assert report.status == HealthStatus.WARNING
        assert _kinds(report) == {"GIT_REPOSITORY"}

    def test_incomplete_context(self):
        report = _checker().check(_healthy_state(project_name=None))
        assert _kinds(report) == {"SESSION_CONTEXT"}

    def test_declining_compliance(self):
        report = _checker().check(_healthy_state(), [60, 65, 90])
        assert "DECLINING_COMPLIANCE" in _kinds(report)

    def test_single_low_score_is_not_declining(self):
        report = _checker().check(_healthy_state(), [60, 90, 95])
        assert report.status == HealthStatus.HEALTHY

    def test_only_recent_scores_count(self):
        report = _checker().check(_healthy_state(), [10, 20, 90, 95, 60])
        assert report.status == HealthStatus.HEALTHY

    def test_long_running_task(self):
        task = CurrentTask("migrate", NOW - timedelta(hours=5))
        report = _checker().check(_healthy_state(current_task=task))
        (issue,) = report.issues
        assert issue.kind == "LONG_RUNNING_TASK"
        assert issue.severity == Severity.LOW
        assert "5 hours" in issue.description

    def test_task_within_limit(self):
        task = CurrentTask("migrate", NOW - timedelta(hours=3))
        assert _checker().check(_healthy_state(current_task=task)).issues == ()

    def test_configurable_task_limit(self):
        task = CurrentTask("migrate", NOW - timedelta(hours=2))
        report = _checker(long_running_task_hours=1).check(_healthy_state(current_task=task))
        assert _kinds(report) == {"LONG_RUNNING_TASK"}


class TestOverallStatus:
    def test_worst_severity_wins(self):
        issues = [
            HealthIssue("A", Severity.LOW, ""),
            HealthIssue("B", Severity.HIGH, ""),
            HealthIssue("C", Severity.MEDIUM, ""),
        ]
        assert overall_status(issues) == HealthStatus.UNHEALTHY

    def test_empty(self):
        assert overall_status([]) == HealthStatus.HEALTHY
