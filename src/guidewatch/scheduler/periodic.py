"""Periodic compliance checks with a consecutive-failure circuit breaker.

One tick is one sequential pipeline pass::

    health check -> ComplianceScorer.score -> ViolationLedger.record (per failing rule)

Ticks never overlap.  The timer is single-shot and is re-armed only after
the previous tick has returned, so a slow remediation hook delays the next
tick instead of racing it.
"""

from __future__ import annotations

import enum
import functools
import logging
import threading
import time
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Callable, Mapping, Union

from guidewatch.core.config import SchedulerConfig
from guidewatch.core.models import (
    AutoFixResult,
    CheckResult,
    CheckStatus,
    ComplianceReport,
    CriticalIssue,
    SchedulerStatistics,
    ScoreResult,
    SessionState,
    Severity,
    ViolationRecord,
    ViolationReport,
    utcnow,
)
from guidewatch.core.session import session_from_dict
from guidewatch.ledger.ledger import ViolationLedger
from guidewatch.scheduler.health import HealthChecker
from guidewatch.scheduler.notify import LoggingSink, NotificationSink
from guidewatch.scoring.grading import severity_for
from guidewatch.scoring.scorer import ComplianceScorer

logger = logging.getLogger("guidewatch.scheduler")

StateSource = Union[SessionState, Callable[[], Any], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class SchedulerState(enum.Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


class PeriodicScheduler:
    """Runs the audit pipeline now and then every ``interval_minutes``.

    Parameters
    ----------
    scorer, ledger:
        The per-session components the pipeline drives.  They are owned by
        this scheduler instance; nothing is shared between instances.
    sink:
        Receives critical issues and the circuit-breaker trip.  Defaults to
        :class:`LoggingSink`.
    timer_factory:
        ``(interval_seconds, callback) -> timer`` where the timer has
        ``start()`` and ``cancel()``.  Defaults to :class:`threading.Timer`.
    """

    def __init__(
        self,
        scorer: ComplianceScorer,
        ledger: ViolationLedger,
        sink: NotificationSink | None = None,
        config: SchedulerConfig | None = None,
        health: HealthChecker | None = None,
        clock: Callable[[], datetime] = utcnow,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.scorer = scorer
        self.ledger = ledger
        self.sink = sink or LoggingSink()
        self.config = config or SchedulerConfig()
        self.health = health or HealthChecker(config=self.config, clock=clock)
        self._clock = clock
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._state = SchedulerState.STOPPED
        self._timer: Any | None = None
        self._source: StateSource = None
        self._generation = 0

        self._checks: deque[CheckResult] = deque(maxlen=self.config.max_checks)
        self._consecutive_failures = 0
        self._last_check_time: datetime | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, state: StateSource) -> bool:
        """Run one check immediately, then every interval.

        Returns False if already running, or if the first check tripped the
        circuit breaker.

        *state* is a :class:`SessionState` or a zero-argument accessor that
        returns the current snapshot; an accessor is called once per tick.
        """
        with self._lock:
            if self._state == SchedulerState.RUNNING:
                logger.warning("Periodic checks are already running")
                return False
            self._state = SchedulerState.RUNNING
            self._consecutive_failures = 0
            self._source = state
            self._generation += 1
            generation = self._generation

        logger.info(
            "Starting periodic compliance checks every %g minutes",
            self.config.interval_minutes,
        )
        self.run_check(state)
        self._arm(generation)
        return self.is_running()

    def stop(self) -> bool:
        """Cancel future ticks. False if not running. A tick in progress completes."""
        with self._lock:
            if self._state != SchedulerState.RUNNING:
                logger.warning("Periodic checks are not running")
                return False
            self._state = SchedulerState.STOPPED
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Periodic compliance checks stopped")
        return True

    def is_running(self) -> bool:
        with self._lock:
            return self._state == SchedulerState.RUNNING

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    def _arm(self, generation: int) -> None:
        with self._lock:
            if self._state != SchedulerState.RUNNING or generation != self._generation:
                return
            timer = self._timer_factory(
                self.config.interval_seconds,
                functools.partial(self._on_timer, generation),
            )
            try:
                timer.daemon = True
            except AttributeError:
                pass  # non-thread timers have no daemon flag
            self._timer = timer
            timer.start()

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if self._state != SchedulerState.RUNNING or generation != self._generation:
                return
            self._timer = None
            source = self._source
        self.run_check(source)
        self._arm(generation)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run_check(self, state: StateSource) -> CheckResult:
        """Run one audit pass. Always returns a :class:`CheckResult`."""
        with self._tick_lock:
            check_id = f"check-{uuid.uuid4().hex[:12]}"
            started_at = self._clock()
            started = time.monotonic()
            logger.debug("Running compliance check %s", check_id)

            try:
                snapshot = self._resolve(state)
                health = self.health.check(snapshot, self._recent_scores())
                compliance = self.scorer.score(snapshot)
                violations, fixes = self._log_violations(compliance)
            except Exception as exc:
                logger.exception("Compliance check %s failed", check_id)
                result = CheckResult(
                    check_id=check_id,
                    timestamp=started_at,
                    duration_ms=(time.monotonic() - started) * 1000,
                    status=CheckStatus.FAILED,
                    error=f"{type(exc).__name__}: {exc}",
                )
                self._record_failure(result)
                return result

            result = CheckResult(
                check_id=check_id,
                timestamp=started_at,
                duration_ms=(time.monotonic() - started) * 1000,
                status=CheckStatus.SUCCESS,
                health=health,
                compliance=compliance,
                violations=violations,
                auto_fixes=fixes,
            )
            with self._lock:
                self._checks.append(result)
                self._last_check_time = self._clock()
                self._consecutive_failures = 0

            logger.info(
                "Compliance check %s complete: score %d (%s), %d violations",
                check_id, compliance.overall, compliance.grade.value, len(violations),
            )
            self._escalate(result)
            return result

    def _resolve(self, state: StateSource) -> SessionState | None:
        if callable(state):
            state = state()
        if state is None or isinstance(state, SessionState):
            return state
        if isinstance(state, Mapping):
            return session_from_dict(state)
        raise TypeError(f"Expected a SessionState, got {type(state).__name__}")

    def _log_violations(
        self, compliance: ScoreResult
    ) -> tuple[tuple[ViolationRecord, ...], tuple[AutoFixResult, ...]]:
        violations: list[ViolationRecord] = []
        fixes: list[AutoFixResult] = []
        for rule in self.scorer.rules:
            score = compliance.rule_scores[rule.rule_id]
            if score >= 100:
                continue
            record = self.ledger.record(
                rule.rule_id,
                severity_for(score),
                score,
                rule.auto_fixable,
                rule.describe_violation(score),
            )
            violations.append(record)
            if record.fix.attempted:
                status = "FIXED" if record.fix.succeeded else "FAILED"
                fixes.append(AutoFixResult(record.id, rule.rule_id, status, record.fix.detail))
            elif rule.auto_fixable:
                fixes.append(AutoFixResult(record.id, rule.rule_id, "SKIPPED", record.fix.detail))
        return tuple(violations), tuple(fixes)

    def _recent_scores(self) -> list[int]:
        with self._lock:
            return [
                c.compliance.overall
                for c in self._checks
                if c.status == CheckStatus.SUCCESS and c.compliance is not None
            ]

    def _record_failure(self, result: CheckResult) -> None:
        with self._lock:
            self._checks.append(result)
            self._last_check_time = self._clock()
            self._consecutive_failures += 1
            failures = self._consecutive_failures
            tripped = (
                failures >= self.config.failure_threshold
                and self._state == SchedulerState.RUNNING
            )
        if tripped:
            self._trip(failures)

    def _trip(self, failures: int) -> None:
        """Circuit breaker: stop and tell the operator. There is no auto-resume."""
        self.stop()
        logger.error(
            "Periodic compliance checks stopped after %d consecutive failures; "
            "manual restart required",
            failures,
        )
        self._notify([
            CriticalIssue(
                source="scheduler",
                kind="CIRCUIT_BREAKER",
                severity=Severity.CRITICAL,
                description=(
                    f"Compliance checks failed {failures} times in a row and were stopped. "
                    "Restart them manually once the cause is fixed."
                ),
            )
        ])

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    def _escalate(self, result: CheckResult) -> None:
        issues = critical_issues(result)
        if issues:
            self._notify(issues)

    def _notify(self, issues: list[CriticalIssue]) -> None:
        try:
            self.sink.notify(issues)
        except Exception:
            logger.exception("Notification sink failed")

    # ------------------------------------------------------------------
    # Status queries
    # ------------------------------------------------------------------

    def history(self) -> tuple[CheckResult, ...]:
        with self._lock:
            return tuple(self._checks)

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def get_statistics(self) -> SchedulerStatistics:
        with self._lock:
            checks = tuple(self._checks)
            running = self._state == SchedulerState.RUNNING
            failures = self._consecutive_failures
            last = self._last_check_time

        recent = checks[-self.config.stats_window:] if self.config.stats_window > 0 else ()
        if recent:
            successes = sum(1 for c in recent if c.status == CheckStatus.SUCCESS)
            success_rate = successes / len(recent) * 100
            avg_violations = sum(c.violation_count for c in recent) / len(recent)
        else:
            success_rate = 0.0
            avg_violations = 0.0

        return SchedulerStatistics(
            total_checks=len(checks),
            recent_checks=len(recent),
            recent_success_rate=success_rate,
            avg_violations_per_check=avg_violations,
            last_check_time=last,
            is_running=running,
            consecutive_failures=failures,
        )

    def get_compliance_report(self) -> ComplianceReport:
        return self.scorer.report()

    def get_violation_report(self) -> ViolationReport:
        return self.ledger.report()


def critical_issues(result: CheckResult) -> list[CriticalIssue]:
    """Critical health issues plus HIGH violations of a finished check."""
    issues: list[CriticalIssue] = []
    if result.health is not None:
        issues.extend(
            CriticalIssue("health", i.kind, i.severity, i.description)
            for i in result.health.critical_issues
        )
    issues.extend(
        CriticalIssue("violation", v.rule_id.value, v.severity, v.description)
        for v in result.violations
        if v.severity == Severity.HIGH
    )
    return issues
