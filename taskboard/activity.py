"""Board activity log and the endpoint that reads it back.

Each successful mutation appends one JSON line to ``activity.log`` in the
library root. Besides what ran and where, an entry keeps the task line as it
was before the change and as it was written, plus the next instance a
recurring completion inserted, so the board can show what moved.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from fastapi import Request

from taskboard.constants import ACTIVITY_LOG_FILENAME
from taskboard.errors import BoardError, success_response
from taskboard.payload import (
    _ensure_payload_dict,
    _optional_string,
    _reject_unknown_fields,
)
from taskboard.request_state import get_request_config
from taskboard.router import board_router


def _activity_log_path(library_root: Path) -> Path:
    return library_root / ACTIVITY_LOG_FILENAME


def _append_activity_log(library_root: Path, entry: dict[str, Any]) -> None:
    log_path = _activity_log_path(library_root)
    payload = json.dumps(entry, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    with log_path.open("a", encoding="utf-8") as log_file:
        log_file.write(payload + "\n")
        log_file.flush()
        os.fsync(log_file.fileno())


def _build_activity_entry(
    operation: str,
    path: str,
    summary: str,
    commit_sha: str | None,
    *,
    before: str | None = None,
    after: str | None = None,
    created: str | None = None,
    paths: Iterable[str] = (),
) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": operation,
        "path": path,
        "summary": summary,
        "before": before,
        "after": after,
        "created": created,
        "paths": sorted(paths) or [path],
        "commitSha": commit_sha,
    }


def _entry_matches(
    entry: dict[str, Any],
    since: datetime | None,
    operation: str | None,
    path: str | None,
) -> bool:
    if operation and entry.get("operation") != operation:
        return False
    if path and path != entry.get("path") and path not in entry.get("paths", []):
        return False
    if since:
        try:
            entry_time = datetime.fromisoformat(entry.get("timestamp"))
        except (TypeError, ValueError):
            return True
        return entry_time >= since
    return True


def _read_activity_entries(
    library_root: Path,
    since: datetime | None,
    limit: int,
    operation: str | None = None,
    path: str | None = None,
) -> list[dict[str, Any]]:
    log_path = _activity_log_path(library_root)
    if not log_path.exists():
        return []
    entries: list[dict[str, Any]] = []
    for line in log_path.read_text(encoding="utf-8").splitlines():
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if _entry_matches(entry, since, operation, path):
            entries.append(entry)
    return entries[-limit:]


@board_router.post("/tool:read_activity_log")
def read_activity_log(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Read the most recent board mutations, optionally for one operation or file."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"limit", "since", "operation", "path"})

    limit = payload.get("limit", 50)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
        raise BoardError(
            "INVALID_TYPE",
            "limit must be a positive integer.",
            {"limit": str(limit)},
        )

    since_value = payload.get("since")
    since = None
    if since_value is not None:
        try:
            since = datetime.fromisoformat(str(since_value))
        except ValueError:
            raise BoardError(
                "INVALID_DATE",
                "since must be ISO date-time.",
                {"since": since_value},
            )
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

    library_root = get_request_config(request).library_path
    entries = _read_activity_entries(
        library_root,
        since,
        limit,
        operation=_optional_string(payload, "operation"),
        path=_optional_string(payload, "path"),
    )
    return success_response({"entries": entries, "count": len(entries)})
