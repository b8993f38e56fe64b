"""Shared data models used across guidewatch modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RuleId(enum.Enum):
    """The closed set of compliance rules. Declaration order is significant."""

    PROJECT_FOLDER_STRUCTURE = "PROJECT_FOLDER_STRUCTURE"
    EVIDENCE_FILE_MANDATORY = "EVIDENCE_FILE_MANDATORY"
    GITHUB_SYNC_REQUIRED = "GITHUB_SYNC_REQUIRED"
    REALTIME_DOCUMENTATION = "REALTIME_DOCUMENTATION"


class Grade(enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"
    POOR = "POOR"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        """0 for CRITICAL up to 4 for EXCELLENT."""
        return _GRADE_RANKS[self]


_GRADE_RANKS = {
    Grade.CRITICAL: 0,
    Grade.POOR: 1,
    Grade.ACCEPTABLE: 2,
    Grade.GOOD: 3,
    Grade.EXCELLENT: 4,
}


class Severity(enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Trend(enum.Enum):
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"


class Priority(enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class HealthStatus(enum.Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    UNHEALTHY = "UNHEALTHY"
    CRITICAL = "CRITICAL"


class CheckStatus(enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# ---------------------------------------------------------------------------
# Session snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletedTask:
    """A finished task and the evidence artifacts attached to it."""

    name: str = ""
    evidence: tuple[str, ...] = ()


@dataclass(frozen=True)
class CurrentTask:
    name: str = ""
    started_at: datetime | None = None


@dataclass(frozen=True)
class GitStatus:
    """Version-control status as reported by the embedding application."""

    remote_repository: str | None = None
    needs_commit: bool = False
    uncommitted_changes: tuple[str, ...] = ()
    current_branch: str | None = None
    last_commit: str | None = None
    last_commit_time: datetime | None = None


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot of the audited session.

    Owned by the caller. Nothing in guidewatch mutates it; every field may be
    absent, in which case the rule formulas treat it as missing.
    """

    session_id: str | None = None
    project_name: str | None = None
    current_phase: str | None = None
    current_task: CurrentTask | None = None
    next_actions: tuple[str, ...] = ()
    folders: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    completed_tasks: tuple[CompletedTask, ...] = ()
    git: GitStatus | None = None
    last_synced_at: datetime | None = None
    total_tasks: int = 0
    reported_progress: float = 0.0


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoreRecord:
    """One entry of the scorer's history."""

    timestamp: datetime
    overall_score: int
    rule_scores: Mapping[RuleId, int]
    grade: Grade


@dataclass(frozen=True)
class Recommendation:
    rule_id: RuleId
    current_score: int
    target_score: int
    priority: Priority
    action: str


@dataclass(frozen=True)
class RuleBreakdown:
    score: int
    weight: float
    contribution: int
    grade: Grade


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of a single :meth:`ComplianceScorer.score` call."""

    overall: int
    rule_scores: Mapping[RuleId, int]
    grade: Grade
    trend: Trend
    recommendations: tuple[Recommendation, ...] = ()
    breakdown: Mapping[RuleId, RuleBreakdown] = field(
        default_factory=lambda: MappingProxyType({})
    )
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class HistoryStats:
    average: int = 0
    minimum: int = 0
    maximum: int = 0
    total_assessments: int = 0


@dataclass(frozen=True)
class ComplianceReport:
    """Summary of the scorer's current state.

    ``current_score`` and ``grade`` are ``None`` until the first assessment.
    """

    current_score: int | None
    grade: Grade | None
    timestamp: datetime | None
    history: HistoryStats
    trend: Trend
    breakdown: Mapping[RuleId, RuleBreakdown]
    recommendations: tuple[Recommendation, ...]


# ---------------------------------------------------------------------------
# Violations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixOutcome:
    """Result of the (single) auto-fix attempt made for a violation."""

    attempted: bool = False
    succeeded: bool = False
    attempts: int = 0
    detail: str = ""


@dataclass(frozen=True)
class ViolationRecord:
    id: str
    timestamp: datetime
    rule_id: RuleId
    severity: Severity
    score: int
    description: str
    auto_fixable: bool
    fix: FixOutcome = FixOutcome()
    resolved: bool = False
    recurring: bool = False

    @property
    def auto_fixed(self) -> bool:
        return self.fix.succeeded

    @property
    def fix_attempts(self) -> int:
        return self.fix.attempts


@dataclass(frozen=True)
class RuleViolationStats:
    count: int = 0
    auto_fixed: int = 0
    resolved: int = 0


@dataclass(frozen=True)
class LedgerStats:
    """Session-wide counters. Eviction from the ledger does not reduce them."""

    total_violations: int = 0
    auto_fixed: int = 0
    manual_fixes: int = 0
    recurring: int = 0


@dataclass(frozen=True)
class ViolationSummary:
    total_violations: int
    auto_fix_rate: int
    resolution_rate: int
    recurring_issues: int


@dataclass(frozen=True)
class ViolationRecommendation:
    rule_id: RuleId
    priority: Priority
    description: str


@dataclass(frozen=True)
class ViolationReport:
    summary: ViolationSummary
    by_type: Mapping[RuleId, RuleViolationStats]
    by_severity: Mapping[Severity, int]
    recent_violations: tuple[ViolationRecord, ...]
    recommendations: tuple[ViolationRecommendation, ...]


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthIssue:
    kind: str
    severity: Severity
    description: str


@dataclass(frozen=True)
class HealthReport:
    status: HealthStatus
    issues: tuple[HealthIssue, ...] = ()
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def critical_issues(self) -> tuple[HealthIssue, ...]:
        return tuple(i for i in self.issues if i.severity == Severity.CRITICAL)


@dataclass(frozen=True)
class CriticalIssue:
    """A single item handed to a notification sink."""

    source: str  # "health", "violation" or "scheduler"
    kind: str
    severity: Severity
    description: str


@dataclass(frozen=True)
class AutoFixResult:
    violation_id: str
    rule_id: RuleId
    status: str  # "FIXED", "FAILED" or "SKIPPED"
    detail: str = ""


@dataclass(frozen=True)
class CheckResult:
    """One scheduler tick (or manual audit)."""

    check_id: str
    timestamp: datetime
    duration_ms: float
    status: CheckStatus
    health: HealthReport | None = None
    compliance: ScoreResult | None = None
    violations: tuple[ViolationRecord, ...] = ()
    auto_fixes: tuple[AutoFixResult, ...] = ()
    error: str | None = None

    @property
    def violation_count(self) -> int:
        return len(self.violations)


@dataclass(frozen=True)
class SchedulerStatistics:
    total_checks: int
    recent_checks: int
    recent_success_rate: float
    avg_violations_per_check: float
    last_check_time: datetime | None
    is_running: bool
    consecutive_failures: int
