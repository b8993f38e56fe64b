"""Configuration management for guidewatch (guidewatch.toml parsing + defaults)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from guidewatch.core.errors import ConfigurationError

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]


CONFIG_FILENAME = "guidewatch.toml"

_RULES_KEYS = frozenset({
    "weights",
    "auto_fixable",
    "required_folders",
    "required_files",
    "structure_penalty",
    "evidence",
    "sync",
    "documentation",
})

# (table, option) -> smallest accepted value
_MINIMUMS = {
    ("rules", "structure_penalty"): 0,
    ("scoring", "history_size"): 1,
    ("scoring", "trend_window"): 1,
    ("ledger", "max_records"): 1,
    ("ledger", "recurrence_window"): 1,
    ("ledger", "recurrence_threshold"): 1,
    ("ledger", "recent_limit"): 0,
    ("ledger", "recommend_after"): 0,
    ("scheduler", "failure_threshold"): 1,
    ("scheduler", "max_checks"): 1,
    ("scheduler", "stats_window"): 0,
    ("scheduler", "declining_window"): 1,
    ("scheduler", "declining_count"): 1,
}

# options that must be strictly positive
_POSITIVE = (
    ("scheduler", "interval_minutes"),
    ("scheduler", "long_running_task_hours"),
    ("ledger", "hook_timeout_seconds"),
)


@dataclass
class EvidenceConfig:
    quality_blend: bool = True
    presence_share: float = 0.70
    quality_share: float = 0.30
    completion_proof_name: str = "completion-proof.md"
    completion_proof_points: int = 50
    multiple_artifacts_points: int = 30
    verification_name: str = "verification.json"
    verification_points: int = 20


@dataclass
class SyncConfig:
    remote_points: int = 30
    committed_points: int = 40
    pending_clean_points: int = 30
    default_branch: str = "main"
    branch_points: int = 20
    last_commit_points: int = 10


@dataclass
class DocumentationConfig:
    # (max elapsed minutes, points), checked in order
    freshness_bands: list[tuple[int, int]] = field(
        default_factory=lambda: [(10, 40), (30, 30), (60, 20)]
    )
    decay_minutes: int = 120
    progress_points: int = 30
    context_points: int = 30
    required_fields: list[str] = field(
        default_factory=lambda: [
            "session_id",
            "project_name",
            "current_phase",
            "current_task",
            "git",
            "next_actions",
        ]
    )


@dataclass
class RulesConfig:
    weights: dict[str, float] = field(
        default_factory=lambda: {
            "PROJECT_FOLDER_STRUCTURE": 0.25,
            "EVIDENCE_FILE_MANDATORY": 0.30,
            "GITHUB_SYNC_REQUIRED": 0.25,
            "REALTIME_DOCUMENTATION": 0.20,
        }
    )
    auto_fixable: list[str] = field(
        default_factory=lambda: [
            "PROJECT_FOLDER_STRUCTURE",
            "GITHUB_SYNC_REQUIRED",
        ]
    )
    required_folders: list[str] = field(
        default_factory=lambda: ["evidence", "docs", "src"]
    )
    required_files: list[str] = field(
        default_factory=lambda: [".session-context.json", "README.md"]
    )
    structure_penalty: int = 20
    evidence: EvidenceConfig = field(default_factory=EvidenceConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    documentation: DocumentationConfig = field(default_factory=DocumentationConfig)


@dataclass
class GradeThresholds:
    excellent: int = 95
    good: int = 85
    acceptable: int = 70
    poor: int = 50

    def __post_init__(self) -> None:
        if not (100 >= self.excellent >= self.good >= self.acceptable >= self.poor >= 0):
            raise ConfigurationError(
                "Grade thresholds must satisfy 100 >= excellent >= good >= acceptable >= poor >= 0"
            )


@dataclass
class ScoringConfig:
    thresholds: GradeThresholds = field(default_factory=GradeThresholds)
    history_size: int = 500
    trend_window: int = 3
    trend_delta: float = 5.0


@dataclass
class LedgerConfig:
    max_records: int = 1000
    recurrence_window: int = 5
    recurrence_threshold: int = 3
    hook_timeout_seconds: float | None = 60.0
    recent_limit: int = 10
    recommend_after: int = 2


@dataclass
class SchedulerConfig:
    interval_minutes: float = 30.0
    failure_threshold: int = 3
    max_checks: int = 100
    stats_window: int = 10
    long_running_task_hours: float = 4.0
    declining_score: int = 70
    declining_window: int = 3
    declining_count: int = 2

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0


@dataclass
class GuidewatchConfig:
    """Complete guidewatch configuration."""

    rules: RulesConfig = field(default_factory=RulesConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def load_config(path: Path | None = None) -> GuidewatchConfig:
    """Load configuration from guidewatch.toml if present, otherwise return defaults.

    *path* may be the config file itself or a directory containing one.
    """
    config = GuidewatchConfig()

    if path is None:
        path = Path.cwd()
    config_file = path / CONFIG_FILENAME if path.is_dir() else path
    if not config_file.exists():
        return config

    with open(config_file, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"{config_file}: {exc}") from exc

    if "rules" in data:
        r = dict(data["rules"])
        unknown = sorted(set(r) - _RULES_KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown option '{unknown[0]}' for RulesConfig")
        if "weights" in r:
            try:
                config.rules.weights = {str(k): float(v) for k, v in r["weights"].items()}
            except (TypeError, ValueError, AttributeError) as exc:
                raise ConfigurationError(f"Invalid rule weights: {exc}") from exc
        for attr in ("auto_fixable", "required_folders", "required_files", "structure_penalty"):
            if attr in r:
                setattr(config.rules, attr, r[attr])
        _apply(config.rules.evidence, r.get("evidence", {}))
        _apply(config.rules.sync, r.get("sync", {}))
        doc = dict(r.get("documentation", {}))
        if "freshness_bands" in doc:
            doc["freshness_bands"] = [tuple(band) for band in doc["freshness_bands"]]
        _apply(config.rules.documentation, doc)

    if "scoring" in data:
        s = dict(data["scoring"])
        if "thresholds" in s:
            try:
                config.scoring.thresholds = GradeThresholds(**s.pop("thresholds"))
            except TypeError as exc:
                raise ConfigurationError(f"Invalid grade thresholds: {exc}") from exc
        _apply(config.scoring, s)

    _apply(config.ledger, data.get("ledger", {}))
    _apply(config.scheduler, data.get("scheduler", {}))

    validate_config(config)
    return config


def _apply(target: Any, values: dict[str, Any]) -> None:
    """Copy known keys from a TOML table onto a config dataclass."""
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ConfigurationError(
                f"Unknown option '{key}' for {type(target).__name__}"
            )
        setattr(target, key, value)


def validate_config(config: GuidewatchConfig) -> None:
    """Range-check the numeric limits; raises :class:`ConfigurationError`."""
    for (table, option), minimum in _MINIMUMS.items():
        value = getattr(getattr(config, table), option)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{table}.{option} must be an integer, got {value!r}")
        if value < minimum:
            raise ConfigurationError(f"{table}.{option} must be >= {minimum}, got {value}")

    for table, option in _POSITIVE:
        value = getattr(getattr(config, table), option)
        if value is None and option == "hook_timeout_seconds":
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
            raise ConfigurationError(f"{table}.{option} must be a positive number, got {value!r}")
