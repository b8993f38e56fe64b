"""Weighted compliance scoring with a bounded score history."""

from __future__ import annotations

import math
import threading
from collections import deque
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Mapping

from guidewatch.core.config import ScoringConfig
from guidewatch.core.models import (
    ComplianceReport,
    HistoryStats,
    Priority,
    Recommendation,
    RuleBreakdown,
    RuleId,
    ScoreRecord,
    ScoreResult,
    SessionState,
    Trend,
    utcnow,
)
from guidewatch.rules.base import RuleEvaluator, RuleSet, clamp_score, round_score
from guidewatch.scoring.grading import grade_for


class ComplianceScorer:
    """Aggregates per-rule scores into an overall score, grade and trend.

    Every call to :meth:`score` appends a :class:`ScoreRecord` to a FIFO
    history of at most ``config.history_size`` entries.  The history is the
    only input to trend analysis.
    """

    def __init__(
        self,
        rules: RuleSet,
        config: ScoringConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.rules = rules
        self.config = config or ScoringConfig()
        self.evaluator = RuleEvaluator(rules)
        self._clock = clock
        self._lock = threading.Lock()
        self._history: deque[ScoreRecord] = deque(maxlen=self.config.history_size)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score(self, state: SessionState | None) -> ScoreResult:
        """Score *state*, record it in the history and return the result."""
        rule_scores = MappingProxyType(self.evaluator.evaluate_all(state))
        overall = self.overall(rule_scores)
        grade = grade_for(overall, self.config.thresholds)
        timestamp = self._clock()

        record = ScoreRecord(
            timestamp=timestamp,
            overall_score=overall,
            rule_scores=rule_scores,
            grade=grade,
        )
        with self._lock:
            self._history.append(record)

        return ScoreResult(
            overall=overall,
            rule_scores=rule_scores,
            grade=grade,
            trend=self.trend(),
            recommendations=self.recommendations(rule_scores),
            breakdown=self.breakdown(rule_scores),
            timestamp=timestamp,
        )

    def overall(self, rule_scores: Mapping[RuleId, int]) -> int:
        """Weighted sum of *rule_scores*, rounded and clamped to [0, 100]."""
        total = math.fsum(
            rule_scores.get(rule.rule_id, 0) * rule.weight for rule in self.rules
        )
        return clamp_score(total)

    def trend(self) -> Trend:
        """Direction of the last ``trend_window`` overall scores.

        The mean step between consecutive scores must exceed ``trend_delta``
        in either direction; fewer than two records is always STABLE.
        """
        history = self.history()
        if len(history) < 2:
            return Trend.STABLE

        window = max(2, self.config.trend_window)
        scores = [r.overall_score for r in history[-window:]]
        avg_change = (scores[-1] - scores[0]) / (len(scores) - 1)

        if avg_change > self.config.trend_delta:
            return Trend.IMPROVING
        if avg_change < -self.config.trend_delta:
            return Trend.DECLINING
        return Trend.STABLE

    def recommendations(self, rule_scores: Mapping[RuleId, int]) -> tuple[Recommendation, ...]:
        thresholds = self.config.thresholds
        recs = []
        for rule in self.rules:
            score = rule_scores.get(rule.rule_id)
            if score is None or score >= thresholds.good:
                continue
            recs.append(
                Recommendation(
                    rule_id=rule.rule_id,
                    current_score=score,
                    target_score=thresholds.good,
                    priority=Priority.HIGH if score < thresholds.poor else Priority.MEDIUM,
                    action=rule.recommendation or "Improve guideline compliance",
                )
            )
        # sorted() is stable, so ties keep rule declaration order
        return tuple(sorted(recs, key=lambda r: 0 if r.priority == Priority.HIGH else 1))

    def breakdown(self, rule_scores: Mapping[RuleId, int]) -> Mapping[RuleId, RuleBreakdown]:
        result = {}
        for rule in self.rules:
            if rule.rule_id not in rule_scores:
                continue
            score = rule_scores[rule.rule_id]
            result[rule.rule_id] = RuleBreakdown(
                score=score,
                weight=rule.weight,
                contribution=round_score(score * rule.weight),
                grade=grade_for(score, self.config.thresholds),
            )
        return MappingProxyType(result)

    def history(self) -> tuple[ScoreRecord, ...]:
        with self._lock:
            return tuple(self._history)

    def latest(self) -> ScoreRecord | None:
        history = self.history()
        return history[-1] if history else None

    def report(self) -> ComplianceReport:
        """Summarise the history. Safe to call before any assessment."""
        history = self.history()
        if not history:
            return ComplianceReport(
                current_score=None,
                grade=None,
                timestamp=None,
                history=HistoryStats(),
                trend=Trend.STABLE,
                breakdown=MappingProxyType({}),
                recommendations=(),
            )

        latest = history[-1]
        scores = [r.overall_score for r in history]
        return ComplianceReport(
            current_score=latest.overall_score,
            grade=latest.grade,
            timestamp=latest.timestamp,
            history=HistoryStats(
                average=round_score(sum(scores) / len(scores)),
                minimum=min(scores),
                maximum=max(scores),
                total_assessments=len(scores),
            ),
            trend=self.trend(),
            breakdown=self.breakdown(latest.rule_scores),
            recommendations=self.recommendations(latest.rule_scores),
        )
