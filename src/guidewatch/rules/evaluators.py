"""Scoring policies for the built-in compliance rules.

Each policy is a pure function of the session snapshot (plus, for the
documentation rule, the current time) and never raises: absent fields take
the "missing" branch of the formula.  All point allotments come from
:class:`~guidewatch.core.config.RulesConfig`.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Callable, Sequence

from guidewatch.core.config import (
    DocumentationConfig,
    EvidenceConfig,
    RulesConfig,
    SyncConfig,
)
from guidewatch.core.errors import ConfigurationError
from guidewatch.core.models import RuleId, SessionState, utcnow
from guidewatch.rules.base import Rule, RuleSet, round_score

Clock = Callable[[], datetime]

DESCRIPTIONS = {
    RuleId.PROJECT_FOLDER_STRUCTURE: "Project folder structure incomplete",
    RuleId.EVIDENCE_FILE_MANDATORY: "Evidence files missing for completed tasks",
    RuleId.GITHUB_SYNC_REQUIRED: "Repository synchronisation overdue",
    RuleId.REALTIME_DOCUMENTATION: "Documentation update overdue",
}

RECOMMENDATIONS = {
    RuleId.PROJECT_FOLDER_STRUCTURE: (
        "Create the required folders (evidence, docs, src) and files (.session-context.json, README.md)"
    ),
    RuleId.EVIDENCE_FILE_MANDATORY: "Add a completion-proof.md for every completed task",
    RuleId.GITHUB_SYNC_REQUIRED: "Commit pending changes and push to the remote repository",
    RuleId.REALTIME_DOCUMENTATION: "Update README.md and the session context",
}


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def _items(value: object) -> tuple:
    """A sequence field as a tuple; anything else counts as empty."""
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return ()


def _number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        number = float(value)
    except OverflowError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def score_structure(
    state: SessionState,
    required_folders: Sequence[str],
    required_files: Sequence[str],
    penalty: int,
) -> int:
    folders = _items(state.folders)
    files = _items(state.files)
    missing = sum(1 for name in required_folders if name not in folders)
    missing += sum(1 for name in required_files if name not in files)
    return max(0, 100 - penalty * missing)


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------

def evidence_quality(evidence: Sequence[str], cfg: EvidenceConfig) -> int:
    """Partial credit for specific evidence artifacts, 0-100."""
    items = [str(item) for item in _items(evidence)]
    quality = 0
    if any(cfg.completion_proof_name in item for item in items):
        quality += cfg.completion_proof_points
    if len(items) > 1:
        quality += cfg.multiple_artifacts_points
    if any(cfg.verification_name in item for item in items):
        quality += cfg.verification_points
    return quality


def score_evidence(state: SessionState, cfg: EvidenceConfig) -> int:
    tasks = _items(state.completed_tasks)
    if not tasks:
        return 100

    with_evidence = [t for t in tasks if _items(getattr(t, "evidence", None))]
    if not cfg.quality_blend:
        return round_score(100 * len(with_evidence) / len(tasks))

    # Sum the point allotments first and divide once, so exact halves
    # (e.g. 3 of 4 tasks -> 52.5) are not lost to float error.
    presence_points = cfg.presence_share * 100 * len(with_evidence)
    quality_points = cfg.quality_share * sum(evidence_quality(t.evidence, cfg) for t in with_evidence)
    return round_score((presence_points + quality_points) / len(tasks))


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

def score_sync(state: SessionState, cfg: SyncConfig) -> int:
    git = state.git
    if not getattr(git, "remote_repository", None):
        return 0

    score = cfg.remote_points
    if not git.needs_commit:
        score += cfg.committed_points
    elif not _items(git.uncommitted_changes):
        score += cfg.pending_clean_points

    if git.current_branch and git.current_branch != cfg.default_branch:
        score += cfg.branch_points
    if git.last_commit or git.last_commit_time:
        score += cfg.last_commit_points

    return min(100, score)


# ---------------------------------------------------------------------------
# Documentation
# ---------------------------------------------------------------------------

def freshness_points(
    last_synced_at: datetime | None,
    now: datetime,
    cfg: DocumentationConfig,
) -> float:
    if not isinstance(last_synced_at, datetime) or not cfg.freshness_bands:
        return 0.0
    # naive timestamps are taken as UTC
    if last_synced_at.tzinfo is None:
        last_synced_at = last_synced_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    elapsed = max(0.0, (now - last_synced_at).total_seconds() / 60.0)
    for limit, points in cfg.freshness_bands:
        if elapsed <= limit:
            return float(points)

    last_limit, last_points = cfg.freshness_bands[-1]
    if cfg.decay_minutes <= 0:
        return 0.0
    remaining = 1.0 - (elapsed - last_limit) / cfg.decay_minutes
    return max(0.0, last_points * remaining)


def actual_progress(state: SessionState) -> int:
    total = _number(state.total_tasks)
    if total <= 0:
        return 0
    return round_score(len(_items(state.completed_tasks)) / total * 100)


def context_completeness(state: SessionState, required_fields: Sequence[str]) -> float:
    if not required_fields:
        return 100.0
    present = sum(1 for name in required_fields if getattr(state, name, None))
    return present / len(required_fields) * 100


def score_documentation(state: SessionState, now: datetime, cfg: DocumentationConfig) -> int:
    score = freshness_points(state.last_synced_at, now, cfg)

    accuracy = max(0.0, 100 - abs(_number(state.reported_progress) - actual_progress(state)))
    score += cfg.progress_points * accuracy / 100

    score += cfg.context_points * context_completeness(state, cfg.required_fields) / 100
    return round_score(score)


# ---------------------------------------------------------------------------
# Rule set construction
# ---------------------------------------------------------------------------

def build_rule_set(config: RulesConfig | None = None, clock: Clock = utcnow) -> RuleSet:
    """Build the validated default rule set from configuration.

    Raises :class:`ConfigurationError` when a weight names an unknown rule or
    the weights are invalid.
    """
    config = config or RulesConfig()

    weights: dict[RuleId, float] = {}
    for name, weight in config.weights.items():
        try:
            weights[RuleId(name)] = weight
        except ValueError:
            raise ConfigurationError(f"Unknown rule in weights: {name}") from None
    for name in config.auto_fixable:
        if name not in RuleId.__members__:
            raise ConfigurationError(f"Unknown rule in auto_fixable: {name}")

    policies: dict[RuleId, Callable[[SessionState], float]] = {
        RuleId.PROJECT_FOLDER_STRUCTURE: lambda s: score_structure(
            s, config.required_folders, config.required_files, config.structure_penalty
        ),
        RuleId.EVIDENCE_FILE_MANDATORY: lambda s: score_evidence(s, config.evidence),
        RuleId.GITHUB_SYNC_REQUIRED: lambda s: score_sync(s, config.sync),
        RuleId.REALTIME_DOCUMENTATION: lambda s: score_documentation(
            s, clock(), config.documentation
        ),
    }

    missing = [r.value for r in RuleId if r not in weights]
    if missing:
        raise ConfigurationError(f"No weight configured for: {', '.join(missing)}")

    return RuleSet(
        Rule(
            rule_id=rule_id,
            weight=weights[rule_id],
            evaluate=policy,
            auto_fixable=rule_id.value in config.auto_fixable,
            description=DESCRIPTIONS[rule_id],
            recommendation=RECOMMENDATIONS[rule_id],
        )
        for rule_id, policy in policies.items()
    )
