"""Tests for JSON export and report rendering."""

from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from types import MappingProxyType

from rich.console import Console

from guidewatch.core import output
from guidewatch.core.models import (
    CheckResult,
    CheckStatus,
    Grade,
    HistoryStats,
    RuleId,
    Severity,
)
from guidewatch.core.output import progress_bar, score_color, to_jsonable

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestToJsonable:
    def test_enums_and_datetimes(self):
        assert to_jsonable(Grade.GOOD) == "GOOD"
        assert to_jsonable(NOW) == "2026-03-01T12:00:00+00:00"

    def test_mapping_with_enum_keys(self):
        value = MappingProxyType({RuleId.GITHUB_SYNC_REQUIRED: 40, Severity.HIGH: [1, 2]})
        assert to_jsonable(value) == {"GITHUB_SYNC_REQUIRED": 40, "HIGH": [1, 2]}

    def test_dataclass(self):
        assert to_jsonable(HistoryStats(average=50)) == {
            "average": 50,
            "minimum": 0,
            "maximum": 0,
            "total_assessments": 0,
        }

    def test_check_result_is_json_serialisable(self):
        result = CheckResult("check-1", NOW, 1.5, CheckStatus.FAILED, error="boom")
        payload = json.loads(json.dumps(to_jsonable(result)))
        assert payload["status"] == "FAILED"
        assert payload["violations"] == []


class TestFormatting:
    def test_score_color(self):
        assert score_color(90) == "green"
        assert score_color(70) == "yellow"
        assert score_color(10) == "red"

    def test_progress_bar(self):
        assert progress_bar(50) == "[red]█████░░░░░[/red]"

    def test_failed_check_panel(self, monkeypatch):
        buffer = io.StringIO()
        monkeypatch.setattr(output, "console", Console(file=buffer, width=100))
        output.print_check_result(
            CheckResult("check-1", NOW, 1.0, CheckStatus.FAILED, error="OSError: gone")
        )
        assert "Check failed" in buffer.getvalue()
        assert "OSError: gone" in buffer.getvalue()
