"""Violation ledger: records rule violations, drives auto-fix and tracks recurrence."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter, deque
from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Mapping

from guidewatch.core.config import LedgerConfig
from guidewatch.core.models import (
    FixOutcome,
    LedgerStats,
    Priority,
    RuleId,
    RuleViolationStats,
    Severity,
    ViolationRecommendation,
    ViolationRecord,
    ViolationReport,
    ViolationSummary,
    utcnow,
)
from guidewatch.ledger.hooks import HookRegistry, HookTimeout, call_hook
from guidewatch.rules.base import round_score

logger = logging.getLogger("guidewatch.ledger")

_VIOLATION_SEVERITIES = (Severity.LOW, Severity.MEDIUM, Severity.HIGH)


class ViolationLedger:
    """Append-only, bounded record of violations for one audited session.

    Records are frozen at creation.  The single auto-fix attempt, the
    ``resolved`` flag and the ``recurring`` flag are all decided inside
    :meth:`record` before the record is built.  An external resolution
    (:meth:`resolve`) is kept beside the record and applied to query
    results; the stored record itself is never rewritten.

    Thread-safe: all state is guarded by a re-entrant lock.
    """

    def __init__(
        self,
        hooks: HookRegistry | None = None,
        config: LedgerConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.config = config or LedgerConfig()
        self._hooks: dict[RuleId, Callable] = dict(hooks or {})
        self._clock = clock
        self._new_id = id_factory
        self._lock = threading.RLock()

        self._records: deque[ViolationRecord] = deque(maxlen=self.config.max_records)
        self._resolutions: dict[str, str] = {}

        self._total = 0
        self._auto_fixed = 0
        self._manual_fixes = 0
        self._recurring = 0

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(
        self,
        rule_id: RuleId,
        severity: Severity,
        score: int,
        auto_fixable: bool,
        description: str | None = None,
    ) -> ViolationRecord:
        """Log one violation. Never fails because of a remediation hook."""
        with self._lock:
            fix = self._attempt_fix(rule_id) if auto_fixable else FixOutcome()
            recurring = self._is_recurring(rule_id)

            record = ViolationRecord(
                id=self._new_id(),
                timestamp=self._clock(),
                rule_id=rule_id,
                severity=severity,
                score=score,
                description=description or f"{rule_id.value} violation ({score}%)",
                auto_fixable=auto_fixable,
                fix=fix,
                resolved=fix.succeeded,
                recurring=recurring,
            )

            if len(self._records) == self._records.maxlen:
                self._resolutions.pop(self._records[0].id, None)
            self._records.append(record)

            self._total += 1
            if fix.succeeded:
                self._auto_fixed += 1
            if recurring:
                self._recurring += 1
                logger.info("Recurring violation: %s", rule_id.value)

            logger.debug(
                "Recorded violation %s %s score=%d severity=%s fixed=%s",
                record.id, rule_id.value, score, severity.value, fix.succeeded,
            )
            return record

    def _attempt_fix(self, rule_id: RuleId) -> FixOutcome:
        hook = self._hooks.get(rule_id)
        if hook is None:
            return FixOutcome(detail="no remediation hook registered")

        try:
            result = call_hook(hook, self.config.hook_timeout_seconds)
        except HookTimeout as exc:
            logger.warning("Auto-fix for %s timed out: %s", rule_id.value, exc)
            return FixOutcome(attempted=True, succeeded=False, attempts=1, detail=str(exc))
        except Exception as exc:
            logger.warning("Auto-fix for %s failed: %s", rule_id.value, exc, exc_info=True)
            return FixOutcome(
                attempted=True,
                succeeded=False,
                attempts=1,
                detail=f"{type(exc).__name__}: {exc}",
            )

        if not result.success:
            logger.warning("Auto-fix for %s reported failure: %s", rule_id.value, result.detail)
        return FixOutcome(
            attempted=True,
            succeeded=result.success,
            attempts=1,
            detail=result.detail,
        )

    def _is_recurring(self, rule_id: RuleId) -> bool:
        """Does *rule_id* now have enough logged violations to count as recurring?

        Only violations of the same rule are considered: the most recent
        ``recurrence_window`` of them, including the record about to be
        appended, must number at least ``recurrence_threshold``.  Violations
        of other rules in between do not dilute the window.
        """
        window = self.config.recurrence_window
        if window <= 0:
            return False
        previous = sum(1 for r in self._records if r.rule_id == rule_id)
        matches = min(window, previous + 1)
        return matches >= self.config.recurrence_threshold

    def resolve(self, violation_id: str, note: str = "") -> bool:
        """Mark a violation as resolved by an external signal.

        Returns False when the id is unknown (or already evicted) or the
        violation is already resolved.
        """
        with self._lock:
            for record in self._records:
                if record.id != violation_id:
                    continue
                if record.resolved or violation_id in self._resolutions:
                    return False
                self._resolutions[violation_id] = note
                self._manual_fixes += 1
                return True
            return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def history(
        self,
        rule_id: RuleId | None = None,
        severity: Severity | None = None,
        resolved: bool | None = None,
        limit: int | None = None,
    ) -> tuple[ViolationRecord, ...]:
        """Filtered records in insertion order, keeping the most recent *limit*."""
        records = self._snapshot()
        if rule_id is not None:
            records = [r for r in records if r.rule_id == rule_id]
        if severity is not None:
            records = [r for r in records if r.severity == severity]
        if resolved is not None:
            records = [r for r in records if r.resolved == resolved]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return tuple(records)

    def by_rule(self) -> Mapping[RuleId, RuleViolationStats]:
        counts: dict[RuleId, list[int]] = {}
        for record in self._snapshot():
            entry = counts.setdefault(record.rule_id, [0, 0, 0])
            entry[0] += 1
            entry[1] += record.auto_fixed
            entry[2] += record.resolved
        return MappingProxyType({
            rule_id: RuleViolationStats(count=c, auto_fixed=a, resolved=r)
            for rule_id, (c, a, r) in counts.items()
        })

    def by_severity(self) -> Mapping[Severity, int]:
        counts = Counter(r.severity for r in self._snapshot())
        return MappingProxyType({s: counts.get(s, 0) for s in _VIOLATION_SEVERITIES})

    def resolution_rate(self) -> int:
        """Percentage of retained violations that are resolved; 100 when empty."""
        records = self._snapshot()
        if not records:
            return 100
        return round_score(sum(1 for r in records if r.resolved) / len(records) * 100)

    def auto_fix_rate(self) -> int:
        """Percentage of all session violations fixed automatically; 0 when none."""
        with self._lock:
            if self._total == 0:
                return 0
            return round_score(self._auto_fixed / self._total * 100)

    def stats(self) -> LedgerStats:
        with self._lock:
            return LedgerStats(
                total_violations=self._total,
                auto_fixed=self._auto_fixed,
                manual_fixes=self._manual_fixes,
                recurring=self._recurring,
            )

    def recommendations(self) -> tuple[ViolationRecommendation, ...]:
        threshold = self.config.recommend_after
        return tuple(
            ViolationRecommendation(
                rule_id=rule_id,
                priority=Priority.HIGH,
                description=(
                    f"{rule_id.value} was violated {stats.count} times; "
                    "its remediation should be automated"
                ),
            )
            for rule_id, stats in self.by_rule().items()
            if stats.count > threshold
        )

    def report(self) -> ViolationReport:
        stats = self.stats()
        return ViolationReport(
            summary=ViolationSummary(
                total_violations=stats.total_violations,
                auto_fix_rate=self.auto_fix_rate(),
                resolution_rate=self.resolution_rate(),
                recurring_issues=stats.recurring,
            ),
            by_type=self.by_rule(),
            by_severity=self.by_severity(),
            recent_violations=self.history(limit=self.config.recent_limit),
            recommendations=self.recommendations(),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self) -> list[ViolationRecord]:
        """Copy of the ledger with external resolutions applied."""
        with self._lock:
            return [
                replace(r, resolved=True) if r.id in self._resolutions else r
                for r in self._records
            ]
