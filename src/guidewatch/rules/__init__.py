"""Compliance rules: definitions, scoring policies and the evaluator."""

from guidewatch.rules.base import Rule, RuleEvaluator, RuleSet, clamp_score, round_score
from guidewatch.rules.evaluators import build_rule_set

__all__ = [
    "Rule",
    "RuleEvaluator",
    "RuleSet",
    "build_rule_set",
    "clamp_score",
    "round_score",
]
