"""Periodic scheduling, health checks and critical-issue notification."""

from guidewatch.scheduler.health import HealthChecker
from guidewatch.scheduler.notify import (
    CollectingSink,
    ConsoleSink,
    LoggingSink,
    NotificationSink,
    NullSink,
)
from guidewatch.scheduler.periodic import PeriodicScheduler, SchedulerState, critical_issues

__all__ = [
    "CollectingSink",
    "ConsoleSink",
    "HealthChecker",
    "LoggingSink",
    "NotificationSink",
    "NullSink",
    "PeriodicScheduler",
    "SchedulerState",
    "critical_issues",
]
