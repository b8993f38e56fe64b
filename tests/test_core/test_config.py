"""Tests for config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from guidewatch.auditor import build_auditor
from guidewatch.core.config import GuidewatchConfig, load_config
from guidewatch.core.errors import ConfigurationError


class TestLoadConfig:
    def test_defaults_when_no_config_file(self, tmp_path: Path):
        """Without a guidewatch.toml, load_config should return defaults."""
        config = load_config(tmp_path)

        assert isinstance(config, GuidewatchConfig)
        assert config.rules.weights["EVIDENCE_FILE_MANDATORY"] == 0.30
        assert config.rules.required_folders == ["evidence", "docs", "src"]
        assert config.scoring.history_size == 500
        assert config.ledger.max_records == 1000
        assert config.ledger.recurrence_window == 5
        assert config.scheduler.interval_minutes == 30.0
        assert config.scheduler.failure_threshold == 3
        assert config.scheduler.max_checks == 100

    def test_missing_file_path_gives_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "nope.toml")
        assert config.scheduler.interval_seconds == 1800.0

    def test_loads_rules_section(self, tmp_path: Path):
        toml_content = """\
[rules]
required_folders = ["src", "tests"]
structure_penalty = 25
auto_fixable = ["PROJECT_FOLDER_STRUCTURE"]

[rules.weights]
PROJECT_FOLDER_STRUCTURE = 0.1
EVIDENCE_FILE_MANDATORY = 0.4
GITHUB_SYNC_REQUIRED = 0.3
REALTIME_DOCUMENTATION = 0.2

[rules.evidence]
quality_blend = false

[rules.documentation]
freshness_bands = [[5, 40], [15, 30]]
"""
        (tmp_path / "guidewatch.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.rules.required_folders == ["src", "tests"]
        assert config.rules.structure_penalty == 25
        assert config.rules.auto_fixable == ["PROJECT_FOLDER_STRUCTURE"]
        assert config.rules.weights["EVIDENCE_FILE_MANDATORY"] == 0.4
        assert config.rules.evidence.quality_blend is False
        assert config.rules.documentation.freshness_bands == [(5, 40), (15, 30)]

    def test_loads_scoring_ledger_scheduler(self, tmp_path: Path):
        toml_content = """\
[scoring]
history_size = 50
trend_delta = 3.0

[scoring.thresholds]
excellent = 90
good = 80
acceptable = 60
poor = 40

[ledger]
max_records = 200
hook_timeout_seconds = 5.0

[scheduler]
interval_minutes = 10
failure_threshold = 5
"""
        config_file = tmp_path / "custom.toml"
        config_file.write_text(toml_content)
        config = load_config(config_file)

        assert config.scoring.history_size == 50
        assert config.scoring.trend_delta == 3.0
        assert config.scoring.thresholds.good == 80
        assert config.ledger.max_records == 200
        assert config.ledger.hook_timeout_seconds == 5.0
        assert config.scheduler.interval_seconds == 600.0
        assert config.scheduler.failure_threshold == 5

    def test_unknown_option_is_rejected(self, tmp_path: Path):
        (tmp_path / "guidewatch.toml").write_text("[ledger]\nmax_recods = 10\n")
        with pytest.raises(ConfigurationError, match="max_recods"):
            load_config(tmp_path)

    def test_unknown_rules_option_is_rejected(self, tmp_path: Path):
        (tmp_path / "guidewatch.toml").write_text("[rules]\nstructure_penalti = 5\n")
        with pytest.raises(ConfigurationError, match="structure_penalti"):
            load_config(tmp_path)

    def test_unknown_threshold_is_rejected(self, tmp_path: Path):
        (tmp_path / "guidewatch.toml").write_text("[scoring.thresholds]\nsuperb = 99\n")
        with pytest.raises(ConfigurationError):
            load_config(tmp_path)

    @pytest.mark.parametrize(
        "toml_content",
        [
            "[ledger]\nmax_records = -1\n",
            "[ledger]\nrecurrence_window = 0\n",
            "[ledger]\nhook_timeout_seconds = 0\n",
            "[scoring]\nhistory_size = 0\n",
            "[scheduler]\nmax_checks = 0\n",
            "[scheduler]\nfailure_threshold = 0\n",
            "[scheduler]\ninterval_minutes = -5\n",
            "[scheduler]\nmax_checks = \"ten\"\n",
            "[rules]\nstructure_penalty = -20\n",
        ],
    )
    def test_out_of_range_limits_are_rejected(self, tmp_path: Path, toml_content: str):
        (tmp_path / "guidewatch.toml").write_text(toml_content)
        with pytest.raises(ConfigurationError):
            load_config(tmp_path)

    def test_programmatic_limits_are_checked_when_building(self):
        config = GuidewatchConfig()
        config.ledger.max_records = 0
        with pytest.raises(ConfigurationError, match="ledger.max_records"):
            build_auditor(config)

    def test_invalid_thresholds_are_rejected(self, tmp_path: Path):
        toml_content = """\
[scoring.thresholds]
excellent = 50
good = 85
"""
        (tmp_path / "guidewatch.toml").write_text(toml_content)
        with pytest.raises(ConfigurationError):
            load_config(tmp_path)

    def test_malformed_toml(self, tmp_path: Path):
        (tmp_path / "guidewatch.toml").write_text("[scheduler\n")
        with pytest.raises(ConfigurationError):
            load_config(tmp_path)

    def test_configs_are_independent(self, tmp_path: Path):
        first = load_config(tmp_path)
        second = load_config(tmp_path)
        first.rules.required_folders.append("extra")
        assert "extra" not in second.rules.required_folders
