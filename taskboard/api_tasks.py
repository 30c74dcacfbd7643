"""Task board endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Request

from taskboard.activity import _append_activity_log, _build_activity_entry
from taskboard.columns import DONE_STATUS
from taskboard.config import AppConfig
from taskboard.constants import (
    ARCHIVE_FILE_HEADER,
    RECURRING_FILE_HEADER,
    TODO_FILE_HEADER,
)
from taskboard.date_utils import (
    TimeFilter,
    TimePreset,
    apply_time_filter,
    format_date,
    is_valid_date,
    parse_date,
)
from taskboard.errors import BoardError, success_response
from taskboard.history import commit_changes
from taskboard.line_codec import TaskRecord
from taskboard.mutator import MutationResult, TaskMutator
from taskboard.paths import validate_markdown_path
from taskboard.payload import (
    _ensure_payload_dict,
    _optional_string,
    _parse_task_ref,
    _read_bool_field,
    _reject_unknown_fields,
    _require_fields,
    _require_string,
)
from taskboard.recurrence import RecurrenceSpec, RecurrenceSpecError, describe
from taskboard.recurrence_phrases import next_occurrence_for_phrase, resolve
from taskboard.request_state import get_request_config, get_request_store
from taskboard.router import board_router
from taskboard.scanner import (
    TaskScanner,
    collect_tags,
    filter_by_tags,
    filter_tasks,
    filter_tasks_by_status,
)
from taskboard.store import LibraryStore


def _scanner(request: Request) -> TaskScanner:
    config = get_request_config(request)
    return TaskScanner(get_request_store(request), config.board)


def _mutator(request: Request) -> TaskMutator:
    return TaskMutator(get_request_store(request))


def _read_tags(payload: dict[str, Any]) -> list[str]:
    tags = payload.get("tags", [])
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise BoardError(
            "INVALID_TYPE",
            "tags must be a list of strings.",
            {"tags": str(tags)},
        )
    return tags


def _read_status(payload: dict[str, Any], config: AppConfig) -> str:
    status = _require_string(payload, "status").lower()
    column_ids = [column.id for column in config.board.columns]
    if status not in column_ids:
        raise BoardError(
            "INVALID_STATUS",
            "status must be a configured column id.",
            {"status": status, "columns": column_ids},
        )
    return status


def _read_due_date(payload: dict[str, Any], name: str = "dueDate") -> str | None:
    value = _optional_string(payload, name)
    if value and not is_valid_date(value):
        raise BoardError(
            "INVALID_DATE",
            f"{name} must be a YYYY-MM-DD date.",
            {name: value},
        )
    return value


def _record_mutation(
    request: Request,
    result: MutationResult,
    operation: str,
    task: TaskRecord | None,
    target: str,
) -> str | None:
    """Commit and log a mutation, or raise the failure it reported."""
    config = get_request_config(request)
    store = LibraryStore(config.library_path)

    commit_sha = None
    if result.written and config.git_history:
        commit_sha = commit_changes(store, result.written, operation, target)

    if not result.ok:
        raise BoardError.from_mutation(
            result.code,
            result.message,
            operation,
            target,
            line_number=task.line_number if task is not None else None,
            written=result.written,
        )

    summary = task.text if task is not None else operation.replace("_", " ")
    entry = _build_activity_entry(
        operation,
        target,
        summary,
        commit_sha,
        before=task.raw_text if task is not None else None,
        after=result.line,
        created=result.created_line,
        paths=result.written,
    )
    _append_activity_log(config.library_path, entry)
    return commit_sha


def _mutation_response(result: MutationResult, commit_sha: str | None) -> dict[str, Any]:
    return success_response(
        {
            "line": result.line,
            "createdLine": result.created_line,
            "paths": sorted(result.written),
            "commitSha": commit_sha,
        }
    )


@board_router.post("/tool:list_tasks")
def list_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """List tasks, optionally narrowed by a column filter and tags."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"filter", "includeCompleted", "tags"})

    config = get_request_config(request)
    include_completed = _read_bool_field(
        payload, "includeCompleted", config.board.include_completed
    )
    filter_text = _optional_string(payload, "filter")

    tasks = _scanner(request).get_tasks()
    if filter_text:
        tasks = filter_tasks(tasks, filter_text, include_completed)
    tasks = filter_by_tags(tasks, _read_tags(payload))
    return success_response(
        {"tasks": [task.to_dict() for task in tasks], "count": len(tasks)}
    )


@board_router.post("/tool:board")
def board(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Group tasks into the configured columns."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(
        payload,
        {"preset", "fromDate", "toDate", "tags", "showUnscheduled", "includeCompleted"},
    )

    config = get_request_config(request)
    include_completed = _read_bool_field(
        payload, "includeCompleted", config.board.include_completed
    )
    show_unscheduled = _read_bool_field(payload, "showUnscheduled", True)

    preset = _optional_string(payload, "preset") or TimePreset.ALL.value
    try:
        if preset == TimePreset.CUSTOM.value:
            _require_fields(payload, ["fromDate", "toDate"])
            time_filter = TimeFilter.custom(
                _require_string(payload, "fromDate"), _require_string(payload, "toDate")
            )
        else:
            time_filter = TimeFilter.create(preset)
    except ValueError as exc:
        raise BoardError(
            "INVALID_FILTER",
            "Time filter is not valid.",
            {"preset": preset, "reason": str(exc)},
        ) from exc

    scanner = _scanner(request)
    all_tasks = scanner.get_tasks()
    visible = apply_time_filter(all_tasks, time_filter, show_unscheduled)
    visible = filter_by_tags(visible, _read_tags(payload))

    columns = []
    for column in config.board.columns:
        column_tasks = filter_tasks_by_status(visible, column.id, include_completed)
        columns.append(
            {
                **column.to_dict(),
                "tasks": [task.to_dict() for task in column_tasks],
                "count": len(column_tasks),
            }
        )

    data: dict[str, Any] = {
        "columns": columns,
        "timeFilter": time_filter.to_dict(),
        "availableTags": collect_tags(all_tasks),
        "totalTasks": len(all_tasks),
        "visibleTasks": len(visible),
    }
    if config.board.use_three_file_system:
        data["archived"] = [task.to_dict() for task in scanner.scan_archive_file()]
    return success_response(data)


@board_router.post("/tool:move_task")
def move_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Move a task to a column; moving into the done column completes it."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task", "status", "markComplete"})
    _require_fields(payload, ["task", "status"])

    config = get_request_config(request)
    task = _parse_task_ref(payload["task"], config.library_path)
    status = _read_status(payload, config)
    mark_complete = _read_bool_field(payload, "markComplete", status == DONE_STATUS)

    result = _mutator(request).move_to(task, status, mark_complete)
    commit_sha = _record_mutation(request, result, "move_task", task, task.file_path)
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:set_task_status")
def set_task_status(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task", "status"})
    _require_fields(payload, ["task", "status"])

    config = get_request_config(request)
    task = _parse_task_ref(payload["task"], config.library_path)
    status = _read_status(payload, config)

    result = _mutator(request).set_status(task, status)
    commit_sha = _record_mutation(
        request, result, "set_task_status", task, task.file_path
    )
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:set_task_completion")
def set_task_completion(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task", "completed"})
    _require_fields(payload, ["task", "completed"])

    config = get_request_config(request)
    task = _parse_task_ref(payload["task"], config.library_path)
    completed = _read_bool_field(payload, "completed", False)

    result = _mutator(request).set_completion(task, completed)
    commit_sha = _record_mutation(
        request, result, "set_task_completion", task, task.file_path
    )
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:set_task_due_date")
def set_task_due_date(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task", "dueDate"})
    _require_fields(payload, ["task", "dueDate"])

    config = get_request_config(request)
    task = _parse_task_ref(payload["task"], config.library_path)
    due_date = _optional_string(payload, "dueDate") or ""

    result = _mutator(request).set_due_date(task, due_date)
    commit_sha = _record_mutation(
        request, result, "set_task_due_date", task, task.file_path
    )
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:update_task")
def update_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Edit a task's text and due date; an empty dueDate clears it."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task", "text", "dueDate"})
    _require_fields(payload, ["task", "text"])

    config = get_request_config(request)
    task = _parse_task_ref(payload["task"], config.library_path)
    text = _require_string(payload, "text")
    due_date = _read_due_date(payload)

    result = _mutator(request).update_text(task, text, due_date)
    commit_sha = _record_mutation(request, result, "update_task", task, task.file_path)
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:archive_task")
def archive_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Archive a task into the archive file, or tag it in place."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task"})
    _require_fields(payload, ["task"])

    config = get_request_config(request)
    task = _parse_task_ref(payload["task"], config.library_path)
    mutator = _mutator(request)

    if config.board.use_three_file_system:
        archive_path = config.board.archive_file
        validate_markdown_path(config.library_path, archive_path)
        result = mutator.archive_to_file(task, archive_path)
        target = archive_path
    else:
        result = mutator.archive_in_place(task)
        target = task.file_path

    commit_sha = _record_mutation(request, result, "archive_task", task, target)
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:unarchive_task")
def unarchive_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Move a task from the archive file back to the todo file."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"task"})
    _require_fields(payload, ["task"])

    config = get_request_config(request)
    if not config.board.use_three_file_system:
        raise BoardError(
            "UNSUPPORTED_OPERATION",
            "Unarchiving needs the three-file task layout.",
            {"setting": "TASKBOARD_THREE_FILE_SYSTEM"},
        )
    task = _parse_task_ref(payload["task"], config.library_path)
    todo_path = config.board.todo_file
    validate_markdown_path(config.library_path, todo_path)

    result = _mutator(request).unarchive_to_file(
        task, config.board.archive_file, todo_path
    )
    commit_sha = _record_mutation(request, result, "unarchive_task", task, todo_path)
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:add_task")
def add_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"text", "status", "dueDate", "filePath"})
    _require_fields(payload, ["text"])

    config = get_request_config(request)
    text = _require_string(payload, "text")
    status = _read_status(payload, config) if "status" in payload else None
    due_date = _read_due_date(payload)

    file_path = _optional_string(payload, "filePath")
    if file_path is None:
        if not config.board.use_three_file_system:
            raise BoardError(
                "MISSING_FIELD",
                "filePath is required unless the three-file layout is enabled.",
                {"fields": ["filePath"]},
            )
        file_path = config.board.todo_file
    validate_markdown_path(config.library_path, file_path)

    result = _mutator(request).add_task(file_path, text, status, due_date)
    commit_sha = _record_mutation(request, result, "add_task", None, file_path)
    return _mutation_response(result, commit_sha)


@board_router.post("/tool:create_task_files")
def create_task_files(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Create the recurring, todo and archive files when they are missing."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, set())

    config = get_request_config(request)
    files = {
        config.board.recurring_tasks_file: RECURRING_FILE_HEADER,
        config.board.todo_file: TODO_FILE_HEADER,
        config.board.archive_file: ARCHIVE_FILE_HEADER,
    }
    for path in files:
        validate_markdown_path(config.library_path, path)

    result = _mutator(request).create_task_files(files)
    commit_sha = None
    if result.written or not result.ok:
        commit_sha = _record_mutation(
            request, result, "create_task_files", None, config.board.todo_file
        )
    return success_response(
        {
            "created": sorted(result.written),
            "skipped": result.skipped,
            "commitSha": commit_sha,
        }
    )


@board_router.post("/tool:next_occurrence")
def next_occurrence(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Compute the next date of a recurrence phrase after a reference date."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"phrase", "reference"})
    _require_fields(payload, ["phrase"])

    phrase = _require_string(payload, "phrase")
    reference_value = _read_due_date(payload, "reference")
    reference = parse_date(reference_value) if reference_value else date.today()

    try:
        recurrence = resolve(phrase, reference)
    except RecurrenceSpecError as exc:
        raise BoardError(
            "INVALID_RECURRENCE",
            str(exc),
            {"phrase": phrase},
        ) from exc

    next_date = next_occurrence_for_phrase(phrase, reference)
    return success_response(
        {
            "phrase": phrase,
            "reference": format_date(reference),
            "recognized": recurrence is not None,
            "description": (
                describe(recurrence) if isinstance(recurrence, RecurrenceSpec) else None
            ),
            "nextDate": format_date(next_date) if next_date else None,
        }
    )
