"""Payload validation helpers for board endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from taskboard.errors import BoardError
from taskboard.line_codec import TaskRecord, parse_line
from taskboard.paths import validate_markdown_path

TASK_REF_FIELDS = {"filePath", "lineNumber", "rawText"}
# Task dicts returned by list_tasks and board may be sent back unchanged.
TASK_RECORD_FIELDS = TASK_REF_FIELDS | {
    "id",
    "text",
    "completed",
    "dueDate",
    "scheduledDate",
    "doneDate",
    "archivedDate",
    "recurrence",
    "isRecurring",
    "tags",
    "status",
    "archived",
}


def _ensure_payload_dict(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise BoardError(
            "INVALID_TYPE",
            "Payload must be an object.",
            {"type": type(payload).__name__},
        )
    return payload


def _reject_unknown_fields(payload: dict[str, Any], allowed_fields: set[str]) -> None:
    unknown_fields = sorted(set(payload) - allowed_fields)
    if unknown_fields:
        raise BoardError(
            "UNKNOWN_FIELD",
            "Unknown fields are not allowed.",
            {"fields": unknown_fields},
        )


def _require_fields(payload: dict[str, Any], fields: list[str]) -> None:
    missing = [name for name in fields if name not in payload]
    if missing:
        raise BoardError(
            "MISSING_FIELD",
            "Required fields are missing.",
            {"fields": missing},
        )


def _require_string(payload: dict[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise BoardError(
            "INVALID_TYPE",
            f"{name} must be a non-empty string.",
            {name: str(value)},
        )
    return value.strip()


def _optional_string(payload: dict[str, Any], name: str) -> str | None:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BoardError(
            "INVALID_TYPE",
            f"{name} must be a string.",
            {name: str(value)},
        )
    return value


def _read_bool_field(payload: dict[str, Any], name: str, default: bool) -> bool:
    value = payload.get(name, default)
    if not isinstance(value, bool):
        raise BoardError(
            "INVALID_TYPE",
            f"{name} must be a boolean.",
            {name: str(value)},
        )
    return value


def _parse_task_ref(value: Any, library_root: Path) -> TaskRecord:
    """Turn a ``{"filePath", "lineNumber", "rawText"}`` reference into a record."""
    if not isinstance(value, dict):
        raise BoardError(
            "INVALID_TYPE",
            "task must be an object.",
            {"type": type(value).__name__},
        )
    _reject_unknown_fields(value, TASK_RECORD_FIELDS)
    _require_fields(value, sorted(TASK_REF_FIELDS))

    file_path = _require_string(value, "filePath")
    validate_markdown_path(library_root, file_path)

    line_number = value["lineNumber"]
    if not isinstance(line_number, int) or isinstance(line_number, bool) or line_number < 1:
        raise BoardError(
            "INVALID_TYPE",
            "lineNumber must be a positive integer.",
            {"lineNumber": str(line_number)},
        )

    raw_text = value["rawText"]
    task = parse_line(raw_text, file_path, line_number) if isinstance(raw_text, str) else None
    if task is None:
        raise BoardError(
            "INVALID_TASK",
            "rawText is not a task line.",
            {"rawText": str(raw_text)},
        )
    return task
