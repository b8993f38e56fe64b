"""Building :class:`SessionState` snapshots from session-context data.

The embedding application usually keeps a ``.session-context.json`` file
with camelCase keys.  Both camelCase and snake_case keys are accepted.
Malformed values are treated as missing rather than rejected, because the
rule formulas already define a score for missing inputs.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from guidewatch.core.errors import SessionLoadError
from guidewatch.core.models import (
    CompletedTask,
    CurrentTask,
    GitStatus,
    SessionState,
)


def session_from_dict(data: Mapping[str, Any] | None) -> SessionState:
    """Build a snapshot from a decoded session-context mapping."""
    if not isinstance(data, Mapping):
        return SessionState()

    structure = _get(data, "projectStructure", "project_structure")
    if isinstance(structure, Mapping):
        folders = _strings(structure.get("folders"))
        files = _strings(structure.get("files"))
    else:
        # Older contexts stored a bare folder list.
        folders = _strings(structure)
        files = ()
    folders = folders or _strings(_get(data, "folders"))
    files = files or _strings(_get(data, "files"))

    return SessionState(
        session_id=_text(_get(data, "sessionId", "session_id")),
        project_name=_text(_get(data, "projectName", "project_name")),
        current_phase=_text(_get(data, "currentPhase", "current_phase")),
        current_task=_current_task(_get(data, "currentTask", "current_task")),
        next_actions=_strings(_get(data, "nextActions", "next_actions")),
        folders=folders,
        files=files,
        completed_tasks=_completed_tasks(_get(data, "completedTasks", "completed_tasks")),
        git=_git_status(_get(data, "gitStatus", "git_status", "git")),
        last_synced_at=parse_timestamp(_get(data, "lastSyncedAt", "last_synced_at")),
        total_tasks=_number(_get(data, "totalTasks", "total_tasks"), int),
        reported_progress=_number(_get(data, "reportedProgress", "reported_progress"), float),
    )


def load_session(path: Path) -> SessionState:
    """Read and parse a session-context JSON file."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SessionLoadError(f"Cannot read session file {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SessionLoadError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SessionLoadError(f"{path} does not contain a JSON object")
    return session_from_dict(data)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 strings and epoch milliseconds into aware UTC datetimes."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _strings(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value if isinstance(v, (str, int, float)))


def _number(value: Any, kind: type) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return kind(0)
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    return kind(value) if finite else kind(0)


def _current_task(value: Any) -> CurrentTask | None:
    if isinstance(value, str) and value:
        return CurrentTask(name=value)
    if isinstance(value, Mapping) and value:
        return CurrentTask(
            name=_text(value.get("name") or value.get("title")) or "",
            started_at=parse_timestamp(_get(value, "startedAt", "started_at")),
        )
    return None


def _completed_tasks(value: Any) -> tuple[CompletedTask, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    tasks = []
    for item in value:
        if isinstance(item, Mapping):
            tasks.append(
                CompletedTask(
                    name=_text(item.get("name") or item.get("id")) or "",
                    evidence=_strings(item.get("evidence")),
                )
            )
        elif isinstance(item, str):
            tasks.append(CompletedTask(name=item))
    return tuple(tasks)


def _git_status(value: Any) -> GitStatus | None:
    if not isinstance(value, Mapping):
        return None
    return GitStatus(
        remote_repository=_text(_get(value, "remoteRepository", "remote_repository")),
        needs_commit=bool(_get(value, "needsCommit", "needs_commit")),
        uncommitted_changes=_strings(_get(value, "uncommittedChanges", "uncommitted_changes")),
        current_branch=_text(_get(value, "currentBranch", "current_branch")),
        last_commit=_text(_get(value, "lastCommit", "last_commit")),
        last_commit_time=parse_timestamp(_get(value, "lastCommitTime", "last_commit_time")),
    )
