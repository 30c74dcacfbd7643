import json
from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from dulwich.repo import Repo

from taskboard import handlers
from taskboard.config import AppConfig, BoardSettings
from taskboard.constants import ARCHIVE_FILE_HEADER, TODO_FILE_HEADER
from taskboard.errors import BoardError

RECURRING = "- [ ] Standup 🔁 every day 📅 2025-03-15 #status/todo"


def _build_request(library_root, git_history=True, **board):
    config = AppConfig(
        library_path=library_root,
        service_token=None,
        board=BoardSettings(**board),
        git_history=git_history,
    )
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(config=config, library_path=library_root)),
    )


def _write(root, relative_path, content):
    target = root / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


def _ref(relative_path, line_number, raw_text):
    return {"filePath": relative_path, "lineNumber": line_number, "rawText": raw_text}


def _activity(library_root):
    log_path = library_root / handlers.ACTIVITY_LOG_FILENAME
    return [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]


def test_list_tasks_with_filter_and_tags(tmp_path):
    _write(
        tmp_path,
        "inbox.md",
        "- [ ] Call bank #status/todo #admin\n- [ ] Fix bike #status/doing\n",
    )
    request = _build_request(tmp_path)

    everything = handlers.list_tasks({}, request)
    doing = handlers.list_tasks({"filter": "status:doing"}, request)
    admin = handlers.list_tasks({"tags": ["admin"]}, request)

    assert everything["data"]["count"] == 2
    assert [task["text"] for task in doing["data"]["tasks"]] == ["Fix bike"]
    assert [task["text"] for task in admin["data"]["tasks"]] == ["Call bank"]


def test_list_tasks_rejects_unknown_fields(tmp_path):
    with pytest.raises(BoardError) as excinfo:
        handlers.list_tasks({"sort": "due"}, _build_request(tmp_path))

    assert excinfo.value.error.code == "UNKNOWN_FIELD"
    assert excinfo.value.error.details == {"fields": ["sort"]}


def test_board_groups_tasks_into_columns(tmp_path):
    _write(
        tmp_path,
        "Tasks/todo.md",
        "\n".join(
            [
                "- [ ] Open #status/todo #home",
                "- [ ] Busy #status/doing",
                "- [x] Ticked without status",
                "- [x] Archived #archived",
                "",
            ]
        ),
    )
    _write(tmp_path, "Tasks/archive.md", "- [x] Old #archived 📥 2025-03-01\n")

    response = handlers.board({}, _build_request(tmp_path, use_three_file_system=True))

    data = response["data"]
    assert [(column["id"], column["count"]) for column in data["columns"]] == [
        ("todo", 1),
        ("doing", 1),
        ("done", 1),
    ]
    assert data["columns"][2]["tasks"][0]["text"] == "Ticked without status"
    assert data["availableTags"] == ["#home"]
    assert data["totalTasks"] == 4
    assert [task["text"] for task in data["archived"]] == ["Old"]
    assert data["timeFilter"]["preset"] == "all"


def test_board_time_filter(tmp_path):
    today = date.today()
    _write(
        tmp_path,
        "a.md",
        "\n".join(
            [
                f"- [ ] Due today 📅 {today.isoformat()} #status/todo",
                f"- [ ] Due later 📅 {(today + timedelta(days=400)).isoformat()} #status/todo",
                "- [ ] Unscheduled #status/todo",
                "",
            ]
        ),
    )
    request = _build_request(tmp_path)

    response = handlers.board({"preset": "today", "showUnscheduled": False}, request)

    todo = response["data"]["columns"][0]
    assert [task["text"] for task in todo["tasks"]] == ["Due today"]

    with pytest.raises(BoardError) as excinfo:
        handlers.board({"preset": "someday"}, request)
    assert excinfo.value.error.code == "INVALID_FILTER"


def test_move_recurring_task_to_done_commits_and_logs(tmp_path):
    target = _write(tmp_path, "daily.md", f"# Daily\n{RECURRING}\n")

    response = handlers.move_task(
        {"task": _ref("daily.md", 2, RECURRING), "status": "done"},
        _build_request(tmp_path),
    )

    data = response["data"]
    assert response["ok"] is True
    assert data["createdLine"] == "- [ ] Standup 🔁 every day 📅 2025-03-16 #status/todo"
    assert data["line"].startswith("- [x] Standup 🔁 every day 📅 2025-03-15 #status/done ✅")
    assert target.read_text(encoding="utf-8").splitlines()[1:] == [
        data["createdLine"],
        data["line"],
    ]

    repo = Repo(str(tmp_path))
    assert repo.head().decode("ascii") == data["commitSha"]
    assert repo[repo.head()].message.startswith(b"move_task: daily.md")

    entry = _activity(tmp_path)[-1]
    assert entry["operation"] == "move_task"
    assert entry["path"] == "daily.md"
    assert entry["summary"] == "Standup"
    assert entry["before"] == RECURRING
    assert entry["after"] == data["line"]
    assert entry["created"] == data["createdLine"]
    assert entry["commitSha"] == data["commitSha"]


def test_move_task_accepts_full_task_dict(tmp_path):
    _write(tmp_path, "a.md", "- [ ] Read book #status/todo\n")
    request = _build_request(tmp_path, git_history=False)
    task = handlers.list_tasks({}, request)["data"]["tasks"][0]

    response = handlers.move_task({"task": task, "status": "doing"}, request)

    assert response["data"]["line"] == "- [ ] Read book #status/doing"
    assert response["data"]["commitSha"] is None


def test_move_task_rejects_unknown_status(tmp_path):
    _write(tmp_path, "a.md", "- [ ] Read #status/todo\n")

    with pytest.raises(BoardError) as excinfo:
        handlers.move_task(
            {"task": _ref("a.md", 1, "- [ ] Read #status/todo"), "status": "later"},
            _build_request(tmp_path),
        )

    assert excinfo.value.error.code == "INVALID_STATUS"


def test_stale_task_reference_is_not_found(tmp_path):
    _write(tmp_path, "a.md", "- [ ] Read a different book #status/todo\n")

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_status(
            {"task": _ref("a.md", 1, "- [ ] Read #status/todo"), "status": "doing"},
            _build_request(tmp_path),
        )

    assert excinfo.value.error.code == "TASK_NOT_FOUND"


def test_task_reference_validation(tmp_path):
    request = _build_request(tmp_path)

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_status(
            {"task": _ref("../outside.md", 1, "- [ ] X"), "status": "todo"}, request
        )
    assert excinfo.value.error.code == "PATH_TRAVERSAL"

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_status(
            {"task": _ref("a.md", 1, "plain text"), "status": "todo"}, request
        )
    assert excinfo.value.error.code == "INVALID_TASK"

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_status(
            {"task": _ref("a.md", 0, "- [ ] X"), "status": "todo"}, request
        )
    assert excinfo.value.error.code == "INVALID_TYPE"


def test_set_task_due_date_rejects_invalid_date(tmp_path):
    line = "- [ ] Pay rent #status/todo"
    target = _write(tmp_path, "a.md", line + "\n")

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_due_date(
            {"task": _ref("a.md", 1, line), "dueDate": "2025-02-30"},
            _build_request(tmp_path),
        )

    assert excinfo.value.error.code == "INVALID_DATE"
    assert target.read_text(encoding="utf-8") == line + "\n"
    assert not (tmp_path / handlers.ACTIVITY_LOG_FILENAME).exists()


def test_set_task_completion_and_due_date(tmp_path):
    line = "- [ ] Pay rent #status/todo"
    target = _write(tmp_path, "a.md", line + "\n")
    request = _build_request(tmp_path, git_history=False)

    dated = handlers.set_task_due_date(
        {"task": _ref("a.md", 1, line), "dueDate": "2025-04-01"}, request
    )
    handlers.set_task_completion(
        {"task": _ref("a.md", 1, dated["data"]["line"]), "completed": True}, request
    )

    content = target.read_text(encoding="utf-8")
    assert content.startswith("- [x] Pay rent 📅 2025-04-01 #status/todo ✅ ")


def test_update_task(tmp_path):
    line = "- [ ] Pay rent 📅 2025-03-01 #status/todo"
    _write(tmp_path, "a.md", line + "\n")

    response = handlers.update_task(
        {"task": _ref("a.md", 1, line), "text": "Pay the rent", "dueDate": ""},
        _build_request(tmp_path, git_history=False),
    )

    assert response["data"]["line"] == "- [ ] Pay the rent #status/todo"


def test_archive_and_unarchive_in_three_file_mode(tmp_path):
    line = "- [x] Ship release #status/done"
    _write(tmp_path, "Tasks/todo.md", TODO_FILE_HEADER + line + "\n")
    request = _build_request(tmp_path, use_three_file_system=True)

    archived = handlers.archive_task({"task": _ref("Tasks/todo.md", 4, line)}, request)

    archive_path = tmp_path / "Tasks/archive.md"
    archived_line = archived["data"]["line"]
    assert archive_path.read_text(encoding="utf-8") == (
        ARCHIVE_FILE_HEADER + archived_line + "\n"
    )
    assert (tmp_path / "Tasks/todo.md").read_text(encoding="utf-8") == TODO_FILE_HEADER
    assert archived["data"]["paths"] == ["Tasks/archive.md", "Tasks/todo.md"]

    restored = handlers.unarchive_task(
        {"task": _ref("Tasks/archive.md", 4, archived_line)}, request
    )

    assert restored["data"]["line"] == "- [ ] Ship release #status/todo"
    assert archive_path.read_text(encoding="utf-8") == ARCHIVE_FILE_HEADER
    assert [entry["operation"] for entry in _activity(tmp_path)] == [
        "archive_task",
        "unarchive_task",
    ]


def test_archive_in_place_without_three_file_mode(tmp_path):
    line = "- [x] Ship #status/done"
    target = _write(tmp_path, "a.md", line + "\n")
    request = _build_request(tmp_path, git_history=False)

    handlers.archive_task({"task": _ref("a.md", 1, line)}, request)

    assert target.read_text(encoding="utf-8") == "- [x] Ship #archived\n"
    with pytest.raises(BoardError) as excinfo:
        handlers.unarchive_task({"task": _ref("a.md", 1, "- [x] Ship #archived")}, request)
    assert excinfo.value.error.code == "UNSUPPORTED_OPERATION"


def test_add_task_and_create_task_files(tmp_path):
    request = _build_request(tmp_path, use_three_file_system=True)

    created = handlers.create_task_files({}, request)
    again = handlers.create_task_files({}, request)
    added = handlers.add_task(
        {"text": "Buy stamps", "status": "doing", "dueDate": "2025-03-20"}, request
    )

    assert created["data"]["created"] == [
        "Tasks/archive.md",
        "Tasks/recurring.md",
        "Tasks/todo.md",
    ]
    assert again["data"]["created"] == []
    assert again["data"]["commitSha"] is None
    assert added["data"]["line"] == "- [ ] Buy stamps 📅 2025-03-20 #status/doing"
    assert (tmp_path / "Tasks/todo.md").read_text(encoding="utf-8") == (
        TODO_FILE_HEADER + added["data"]["line"] + "\n"
    )


def test_add_task_requires_path_without_three_file_mode(tmp_path):
    with pytest.raises(BoardError) as excinfo:
        handlers.add_task({"text": "Buy stamps"}, _build_request(tmp_path))

    assert excinfo.value.error.code == "MISSING_FIELD"


def test_next_occurrence_endpoint(tmp_path):
    request = _build_request(tmp_path)

    weekly = handlers.next_occurrence(
        {"phrase": "every 2 weeks", "reference": "2025-03-15"}, request
    )
    fallback = handlers.next_occurrence(
        {"phrase": "every month on the last friday", "reference": "2025-03-15"}, request
    )
    unknown = handlers.next_occurrence(
        {"phrase": "now and then", "reference": "2025-03-15"}, request
    )

    assert weekly["data"]["nextDate"] == "2025-03-29"
    assert weekly["data"]["description"] == "every 2 weeks"
    assert fallback["data"]["nextDate"] == "2025-03-28"
    assert fallback["data"]["description"] is None
    assert unknown["data"] == {
        "phrase": "now and then",
        "reference": "2025-03-15",
        "recognized": False,
        "description": None,
        "nextDate": None,
    }

    with pytest.raises(BoardError) as excinfo:
        handlers.next_occurrence({"phrase": "every 0 days"}, request)
    assert excinfo.value.error.code == "INVALID_RECURRENCE"


def test_git_failure_restores_files(tmp_path, monkeypatch):
    line = "- [ ] Read #status/todo"
    target = _write(tmp_path, "a.md", line + "\n")

    def _fail_commit(*_args, **_kwargs):
        raise RuntimeError("commit failed")

    monkeypatch.setattr("taskboard.history.porcelain.commit", _fail_commit)

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_status(
            {"task": _ref("a.md", 1, line), "status": "doing"}, _build_request(tmp_path)
        )

    assert excinfo.value.error.code == "GIT_ERROR"
    assert target.read_text(encoding="utf-8") == line + "\n"


def test_unreadable_task_file_is_a_board_error(tmp_path):
    line = "- [ ] Read #status/todo"
    (tmp_path / "a.md").write_bytes(b"\xff\xfe" + line.encode("utf-8") + b"\n")

    with pytest.raises(BoardError) as excinfo:
        handlers.set_task_status(
            {"task": _ref("a.md", 1, line), "status": "doing"},
            _build_request(tmp_path, git_history=False),
        )

    assert excinfo.value.error.code == "READ_FAILED"
    assert excinfo.value.error.details["path"] == "a.md"
