"""Tests for the violation ledger."""

from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from guidewatch.core.config import LedgerConfig
from guidewatch.core.models import Priority, RuleId, Severity
from guidewatch.ledger import HookResult, ViolationLedger

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

STRUCTURE = RuleId.PROJECT_FOLDER_STRUCTURE
EVIDENCE = RuleId.EVIDENCE_FILE_MANDATORY
SYNC = RuleId.GITHUB_SYNC_REQUIRED
DOCS = RuleId.REALTIME_DOCUMENTATION


# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------

def _ledger(hooks=None, **config) -> ViolationLedger:
    counter = itertools.count(1)
    return ViolationLedger(
        hooks=hooks,
        config=LedgerConfig(**config),
        clock=lambda: NOW,
        id_factory=lambda: f"v{next(counter)}",
    )


def _record(ledger: ViolationLedger, rule_id: RuleId = EVIDENCE, score: int = 40,
            auto_fixable: bool = False):
    severity = Severity.HIGH if score < 70 else Severity.MEDIUM if score < 85 else Severity.LOW
    return ledger.record(rule_id, severity, score, auto_fixable)


# -----------------------------------------------------------------------
# Recording and auto-fix
# -----------------------------------------------------------------------

class TestRecord:
    def test_record_fields(self):
        record = _ledger().record(EVIDENCE, Severity.HIGH, 40, False, "Evidence missing (40%)")
        assert record.id == "v1"
        assert record.timestamp == NOW
        assert record.rule_id == EVIDENCE
        assert record.severity == Severity.HIGH
        assert record.score == 40
        assert record.description == "Evidence missing (40%)"
        assert record.resolved is False
        assert record.fix_attempts == 0

    def test_default_description(self):
        record = _ledger().record(SYNC, Severity.MEDIUM, 75, False)
        assert "GITHUB_SYNC_REQUIRED" in record.description

    def test_successful_hook_resolves(self):
        hook = MagicMock(return_value=HookResult(True, "folders created"))
        ledger = _ledger({STRUCTURE: hook})
        record = _record(ledger, STRUCTURE, 60, auto_fixable=True)

        hook.assert_called_once_with()
        assert record.resolved is True
        assert record.auto_fixed is True
        assert record.fix_attempts == 1
        assert record.fix.detail == "folders created"

    def test_hook_returning_bool(self):
        ledger = _ledger({SYNC: lambda: True})
        assert _record(ledger, SYNC, auto_fixable=True).resolved is True

    def test_hook_returning_false(self):
        ledger = _ledger({SYNC: lambda: False})
        record = _record(ledger, SYNC, auto_fixable=True)
        assert record.resolved is False
        assert record.fix.attempted is True
        assert record.fix_attempts == 1

    def test_hook_returning_mapping(self):
        ledger = _ledger({SYNC: lambda: {"success": True, "detail": "pushed"}})
        record = _record(ledger, SYNC, auto_fixable=True)
        assert record.resolved is True
        assert record.fix.detail == "pushed"

    def test_raising_hook_is_a_failed_attempt(self):
        def broken():
            raise RuntimeError("git push rejected")

        ledger = _ledger({SYNC: broken})
        record = _record(ledger, SYNC, auto_fixable=True)

        assert record.resolved is False
        assert record.fix.attempted is True
        assert record.fix_attempts == 1
        assert "RuntimeError" in record.fix.detail
        assert len(ledger) == 1

    def test_no_hook_means_no_attempt(self):
        record = _record(_ledger(), STRUCTURE, auto_fixable=True)
        assert record.fix.attempted is False
        assert record.fix_attempts == 0
        assert record.resolved is False

    def test_hook_not_called_for_non_fixable_rule(self):
        hook = MagicMock(return_value=True)
        record = _record(_ledger({EVIDENCE: hook}), EVIDENCE, auto_fixable=False)
        hook.assert_not_called()
        assert record.fix_attempts == 0

    def test_hook_is_called_once_per_violation(self):
        hook = MagicMock(return_value=False)
        ledger = _ledger({SYNC: hook})
        _record(ledger, SYNC, auto_fixable=True)
        _record(ledger, SYNC, auto_fixable=True)
        assert hook.call_count == 2

    def test_slow_hook_times_out(self):
        release = threading.Event()
        ledger = _ledger({SYNC: lambda: release.wait(5)}, hook_timeout_seconds=0.05)
        try:
            record = _record(ledger, SYNC, auto_fixable=True)
        finally:
            release.set()
        assert record.resolved is False
        assert record.fix.attempted is True
        assert "did not finish" in record.fix.detail


# -----------------------------------------------------------------------
# Recurrence
# -----------------------------------------------------------------------

class TestRecurrence:
    def test_third_occurrence_in_a_row_recurs(self):
        ledger = _ledger()
        flags = [_record(ledger, EVIDENCE).recurring for _ in range(3)]
        assert flags == [False, False, True]

    def test_three_in_last_five_recurs(self):
        ledger = _ledger()
        for rule in (EVIDENCE, SYNC, EVIDENCE, SYNC):
            _record(ledger, rule)
        assert _record(ledger, EVIDENCE).recurring is True

    def test_two_in_last_five_does_not_recur(self):
        ledger = _ledger()
        for rule in (SYNC, SYNC, EVIDENCE, SYNC):
            _record(ledger, rule)
        assert _record(ledger, EVIDENCE).recurring is False

    def test_other_rules_do_not_dilute_the_window(self):
        ledger = _ledger()
        for rule in (EVIDENCE, EVIDENCE, SYNC, SYNC, SYNC):
            _record(ledger, rule)
        assert _record(ledger, EVIDENCE).recurring is True

    def test_rules_recorded_together_every_tick_recur(self):
        ledger = _ledger()
        ticks = []
        for _ in range(3):
            ticks.append([_record(ledger, rule).recurring for rule in (STRUCTURE, SYNC, DOCS)])
        assert ticks == [[False] * 3, [False] * 3, [True] * 3]
        assert ledger.stats().recurring == 3

    def test_threshold_above_window_never_recurs(self):
        ledger = _ledger(recurrence_window=2, recurrence_threshold=3)
        flags = [_record(ledger, EVIDENCE).recurring for _ in range(5)]
        assert flags == [False] * 5

    def test_recurring_counter(self):
        ledger = _ledger()
        for _ in range(4):
            _record(ledger, DOCS)
        assert ledger.stats().recurring == 2
        assert ledger.report().summary.recurring_issues == 2


# -----------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------

class TestQueries:
    def test_empty_rates(self):
        ledger = _ledger()
        assert ledger.resolution_rate() == 100
        assert ledger.auto_fix_rate() == 0

    def test_rates(self):
        ledger = _ledger({SYNC: lambda: True})
        _record(ledger, SYNC, auto_fixable=True)
        _record(ledger, EVIDENCE)
        assert ledger.auto_fix_rate() == 50
        assert ledger.resolution_rate() == 50

    def test_filters(self):
        ledger = _ledger({SYNC: lambda: True})
        _record(ledger, SYNC, 60, auto_fixable=True)
        _record(ledger, EVIDENCE, 80)
        _record(ledger, EVIDENCE, 30)

        assert [r.id for r in ledger.history(rule_id=EVIDENCE)] == ["v2", "v3"]
        assert [r.id for r in ledger.history(severity=Severity.HIGH)] == ["v1", "v3"]
        assert [r.id for r in ledger.history(resolved=True)] == ["v1"]
        assert [r.id for r in ledger.history(resolved=False, severity=Severity.HIGH)] == ["v3"]

    def test_limit_keeps_most_recent(self):
        ledger = _ledger()
        for _ in range(5):
            _record(ledger)
        assert [r.id for r in ledger.history(limit=2)] == ["v4", "v5"]
        assert ledger.history(limit=0) == ()

    def test_by_rule_and_severity(self):
        ledger = _ledger({STRUCTURE: lambda: True})
        _record(ledger, STRUCTURE, 60, auto_fixable=True)
        _record(ledger, STRUCTURE, 75, auto_fixable=True)
        _record(ledger, DOCS, 90)

        by_rule = ledger.by_rule()
        assert by_rule[STRUCTURE].count == 2
        assert by_rule[STRUCTURE].auto_fixed == 2
        assert by_rule[DOCS].resolved == 0
        assert EVIDENCE not in by_rule
        assert dict(ledger.by_severity()) == {
            Severity.LOW: 1,
            Severity.MEDIUM: 1,
            Severity.HIGH: 1,
        }

    def test_eviction_keeps_counters(self):
        ledger = _ledger(max_records=3)
        for _ in range(5):
            _record(ledger, SYNC)
        assert len(ledger) == 3
        assert [r.id for r in ledger.history()] == ["v3", "v4", "v5"]
        assert ledger.stats().total_violations == 5


# -----------------------------------------------------------------------
# External resolution
# -----------------------------------------------------------------------

class TestResolve:
    def test_resolve_marks_record(self):
        ledger = _ledger()
        record = _record(ledger)
        assert ledger.resolve(record.id, "fixed by hand") is True

        (stored,) = ledger.history()
        assert stored.resolved is True
        assert record.resolved is False
        assert ledger.stats().manual_fixes == 1
        assert ledger.resolution_rate() == 100

    def test_resolve_twice(self):
        ledger = _ledger()
        record = _record(ledger)
        ledger.resolve(record.id)
        assert ledger.resolve(record.id) is False

    def test_resolve_unknown(self):
        assert _ledger().resolve("missing") is False

    def test_resolve_auto_fixed(self):
        ledger = _ledger({SYNC: lambda: True})
        record = _record(ledger, SYNC, auto_fixable=True)
        assert ledger.resolve(record.id) is False


# -----------------------------------------------------------------------
# Report
# -----------------------------------------------------------------------

class TestReport:
    def test_empty_report(self):
        report = _ledger().report()
        assert report.summary.total_violations == 0
        assert report.summary.resolution_rate == 100
        assert report.summary.auto_fix_rate == 0
        assert report.recent_violations == ()
        assert report.recommendations == ()

    def test_recommendation_after_repeated_violations(self):
        ledger = _ledger()
        for _ in range(3):
            _record(ledger, DOCS)
        _record(ledger, SYNC)
        (rec,) = ledger.report().recommendations
        assert rec.rule_id == DOCS
        assert rec.priority == Priority.HIGH
        assert "3 times" in rec.description

    def test_recent_violations_limit(self):
        ledger = _ledger(recent_limit=2)
        for _ in range(4):
            _record(ledger)
        assert [r.id for r in ledger.report().recent_violations] == ["v3", "v4"]


@pytest.mark.parametrize("rule_id", list(RuleId))
def test_any_rule_can_be_recorded(rule_id):
    assert _record(_ledger(), rule_id).rule_id == rule_id
