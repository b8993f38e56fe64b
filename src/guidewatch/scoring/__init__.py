"""Weighted compliance scoring, grading and trend analysis."""

from guidewatch.scoring.grading import grade_for, severity_for
from guidewatch.scoring.scorer import ComplianceScorer

__all__ = ["ComplianceScorer", "grade_for", "severity_for"]
