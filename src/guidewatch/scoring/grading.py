"""Score-to-label mappings."""

from __future__ import annotations

from guidewatch.core.config import GradeThresholds
from guidewatch.core.models import Grade, Severity

DEFAULT_THRESHOLDS = GradeThresholds()

# Violation severity cut-offs: >= 85 LOW, >= 70 MEDIUM, else HIGH.
SEVERITY_LOW_AT = 85
SEVERITY_MEDIUM_AT = 70


def grade_for(score: int, thresholds: GradeThresholds = DEFAULT_THRESHOLDS) -> Grade:
    """Map an overall score to a grade. Monotonic in *score*."""
    if score >= thresholds.excellent:
        return Grade.EXCELLENT
    if score >= thresholds.good:
        return Grade.GOOD
    if score >= thresholds.acceptable:
        return Grade.ACCEPTABLE
    if score >= thresholds.poor:
        return Grade.POOR
    return Grade.CRITICAL


def severity_for(score: int) -> Severity:
    """Severity of a violation with the given rule score."""
    if score >= SEVERITY_LOW_AT:
        return Severity.LOW
    if score >= SEVERITY_MEDIUM_AT:
        return Severity.MEDIUM
    return Severity.HIGH
