"""Rule definitions and the stateless rule evaluator."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from guidewatch.core.errors import ConfigurationError
from guidewatch.core.models import RuleId, SessionState

logger = logging.getLogger("guidewatch.rules")

WEIGHT_TOLERANCE = 1e-9


def round_score(value: float) -> int:
    """Round half up, matching how the scores were historically computed.

    Values are first rounded to 9 decimals so that float noise such as
    52.49999999999999 still counts as a half.
    """
    return int(math.floor(round(value, 9) + 0.5))


def clamp_score(value: float) -> int:
    if not math.isfinite(value):
        return 0
    return max(0, min(100, round_score(value)))


@dataclass(frozen=True)
class Rule:
    """A weighted compliance criterion with a pure scoring function."""

    rule_id: RuleId
    weight: float
    evaluate: Callable[[SessionState], float]
    auto_fixable: bool = False
    description: str = ""
    recommendation: str = ""

    def describe_violation(self, score: int) -> str:
        label = self.description or self.rule_id.value
        return f"{label} ({score}%)"


class RuleSet:
    """Immutable, validated collection holding exactly one rule per :class:`RuleId`.

    Iteration follows the declaration order of :class:`RuleId`, which is also
    the tie-break order for recommendations.
    """

    def __init__(self, rules: Iterable[Rule]):
        by_id: dict[RuleId, Rule] = {}
        for rule in rules:
            if rule.rule_id in by_id:
                raise ConfigurationError(f"Duplicate rule: {rule.rule_id.value}")
            if not 0.0 <= rule.weight <= 1.0:
                raise ConfigurationError(
                    f"Weight for {rule.rule_id.value} must be within [0, 1], got {rule.weight}"
                )
            by_id[rule.rule_id] = rule

        missing = [r.value for r in RuleId if r not in by_id]
        if missing:
            raise ConfigurationError(f"Missing rules: {', '.join(missing)}")

        total = math.fsum(rule.weight for rule in by_id.values())
        if not math.isclose(total, 1.0, rel_tol=0.0, abs_tol=WEIGHT_TOLERANCE):
            raise ConfigurationError(f"Rule weights must sum to 1.0, got {total}")

        self._rules = tuple(by_id[r] for r in RuleId)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __getitem__(self, rule_id: RuleId) -> Rule:
        for rule in self._rules:
            if rule.rule_id == rule_id:
                return rule
        raise KeyError(rule_id)

    @property
    def weights(self) -> dict[RuleId, float]:
        return {rule.rule_id: rule.weight for rule in self._rules}

    @property
    def total_weight(self) -> float:
        return math.fsum(rule.weight for rule in self._rules)


class RuleEvaluator:
    """Turns a session snapshot into per-rule integer scores in [0, 100]."""

    def __init__(self, rules: RuleSet):
        self.rules = rules

    def evaluate(self, rule: Rule, state: SessionState | None) -> int:
        if state is None:
            state = SessionState()
        try:
            return clamp_score(rule.evaluate(state))
        except Exception:
            # a malformed snapshot scores as fully missing
            logger.warning(
                "Rule %s could not evaluate the snapshot; scoring 0",
                rule.rule_id.value,
                exc_info=True,
            )
            return 0

    def evaluate_all(self, state: SessionState | None) -> dict[RuleId, int]:
        return {rule.rule_id: self.evaluate(rule, state) for rule in self.rules}

    def passes(self, rule: Rule, state: SessionState | None) -> bool:
        return self.evaluate(rule, state) == 100
