import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from taskboard.activity import _append_activity_log, _build_activity_entry
from taskboard.errors import BoardError
from taskboard.handlers import ACTIVITY_LOG_FILENAME, read_activity_log


def _build_request(library_root):
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(library_path=library_root)),
    )


def test_build_activity_entry():
    entry = _build_activity_entry("move_task", "Tasks/todo.md", "Call bank", "abc123")

    assert entry["operation"] == "move_task"
    assert entry["path"] == "Tasks/todo.md"
    assert entry["summary"] == "Call bank"
    assert entry["commitSha"] == "abc123"
    datetime.fromisoformat(entry["timestamp"])
    assert entry["paths"] == ["Tasks/todo.md"]
    assert entry["before"] is None


def test_read_activity_log_returns_latest_entries(tmp_path):
    for index in range(3):
        _append_activity_log(
            tmp_path, _build_activity_entry("add_task", "todo.md", f"task {index}", None)
        )

    response = read_activity_log({"limit": 2}, _build_request(tmp_path))

    assert response["ok"] is True
    assert [entry["summary"] for entry in response["data"]["entries"]] == [
        "task 1",
        "task 2",
    ]


def test_read_activity_log_skips_bad_lines_and_filters_since(tmp_path):
    old = _build_activity_entry("add_task", "todo.md", "old", None)
    old["timestamp"] = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
    log_path = tmp_path / ACTIVITY_LOG_FILENAME
    log_path.write_text(json.dumps(old) + "\nnot json\n", encoding="utf-8")
    _append_activity_log(tmp_path, _build_activity_entry("add_task", "todo.md", "new", None))

    since = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = read_activity_log({"since": since}, _build_request(tmp_path))

    assert [entry["summary"] for entry in response["data"]["entries"]] == ["new"]


def test_read_activity_log_without_log(tmp_path):
    response = read_activity_log({}, _build_request(tmp_path))

    assert response == {"ok": True, "data": {"entries": [], "count": 0}}


def test_read_activity_log_validates_payload(tmp_path):
    with pytest.raises(BoardError) as excinfo:
        read_activity_log({"limit": 0}, _build_request(tmp_path))
    assert excinfo.value.error.code == "INVALID_TYPE"

    with pytest.raises(BoardError) as excinfo:
        read_activity_log({"since": "yesterday"}, _build_request(tmp_path))
    assert excinfo.value.error.code == "INVALID_DATE"

    with pytest.raises(BoardError) as excinfo:
        read_activity_log({"verbose": True}, _build_request(tmp_path))
    assert excinfo.value.error.code == "UNKNOWN_FIELD"


def test_activity_entry_keeps_line_changes():
    entry = _build_activity_entry(
        "archive_task",
        "Tasks/archive.md",
        "Ship",
        None,
        before="- [x] Ship #status/done",
        after="- [x] Ship #archived 📥 2025-03-15",
        paths=["Tasks/todo.md", "Tasks/archive.md"],
    )

    assert entry["before"] == "- [x] Ship #status/done"
    assert entry["after"] == "- [x] Ship #archived 📥 2025-03-15"
    assert entry["created"] is None
    assert entry["paths"] == ["Tasks/archive.md", "Tasks/todo.md"]


def test_read_activity_log_filters_by_operation_and_path(tmp_path):
    for operation, path in [
        ("add_task", "Tasks/todo.md"),
        ("archive_task", "Tasks/archive.md"),
        ("add_task", "inbox.md"),
    ]:
        _append_activity_log(
            tmp_path,
            _build_activity_entry(
                operation,
                path,
                operation,
                None,
                paths=["Tasks/todo.md", path] if operation == "archive_task" else [path],
            ),
        )
    request = _build_request(tmp_path)

    added = read_activity_log({"operation": "add_task"}, request)
    touching_todo = read_activity_log({"path": "Tasks/todo.md"}, request)

    assert [entry["path"] for entry in added["data"]["entries"]] == [
        "Tasks/todo.md",
        "inbox.md",
    ]
    assert [entry["operation"] for entry in touching_todo["data"]["entries"]] == [
        "add_task",
        "archive_task",
    ]
    assert touching_todo["data"]["count"] == 2
