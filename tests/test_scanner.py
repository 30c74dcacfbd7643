from datetime import date

from taskboard.config import BoardSettings
from taskboard.line_codec import parse_line
from taskboard.scanner import (
    TaskScanner,
    collect_tags,
    filter_by_tags,
    filter_tasks,
    filter_tasks_by_status,
)
from taskboard.store import LibraryStore


def _write(root, relative_path, content):
    target = root / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def _tasks(*lines):
    return [parse_line(line, "board.md", index + 1) for index, line in enumerate(lines)]


def _seed_library(root):
    _write(root, "inbox.md", "# Inbox\n- [ ] Call bank #status/todo\nNot a task\n")
    _write(root, "projects/site.md", "- [ ] Fix header #status/doing #web\n")
    _write(root, "templates/task.md", "- [ ] Template task #status/todo\n")
    _write(root, ".obsidian/notes.md", "- [ ] Hidden #status/todo\n")
    _write(root, "projects/readme.txt", "- [ ] Not markdown\n")


def test_scan_library_respects_exclusions(tmp_path):
    _seed_library(tmp_path)
    scanner = TaskScanner(LibraryStore(tmp_path), BoardSettings())

    tasks = scanner.scan_library()

    assert [(task.file_path, task.line_number) for task in tasks] == [
        ("inbox.md", 2),
        ("projects/site.md", 1),
    ]


def test_scan_library_include_folders(tmp_path):
    _seed_library(tmp_path)
    settings = BoardSettings(include_folders=("projects",))

    tasks = TaskScanner(LibraryStore(tmp_path), settings).scan_library()

    assert [task.text for task in tasks] == ["Fix header"]


def test_scan_file_missing_returns_empty(tmp_path):
    scanner = TaskScanner(LibraryStore(tmp_path), BoardSettings())

    assert scanner.scan_file("nope.md") == []


def test_three_file_layout_scans_configured_files(tmp_path):
    _write(tmp_path, "Tasks/recurring.md", "- [ ] Standup 🔁 every day #status/todo\n")
    _write(tmp_path, "Tasks/todo.md", "- [ ] One-off #status/todo\n")
    _write(tmp_path, "Tasks/archive.md", "- [x] Old #archived 📥 2025-03-01\n")
    _write(tmp_path, "elsewhere.md", "- [ ] Ignored #status/todo\n")
    settings = BoardSettings(use_three_file_system=True)
    scanner = TaskScanner(LibraryStore(tmp_path), settings)

    assert [task.text for task in scanner.get_tasks()] == ["Standup", "One-off"]
    assert [task.text for task in scanner.scan_archive_file()] == ["Old"]


def test_checked_untagged_task_lands_in_done_column():
    tasks = _tasks(
        "- [x] Finished without tag",
        "- [ ] Open #status/todo",
        "- [x] Closed #status/done",
    )

    done = filter_tasks_by_status(tasks, "done")

    assert [task.text for task in done] == ["Finished without tag", "Closed"]


def test_archived_tasks_are_never_grouped():
    tasks = _tasks(
        "- [x] Archived done #status/done #archived",
        "- [ ] Archived open #status/todo #archived",
    )

    for status in ("todo", "doing", "done"):
        assert filter_tasks_by_status(tasks, status, include_completed=True) == []


def test_completed_tasks_hidden_outside_done_unless_requested():
    tasks = _tasks("- [x] Done but tagged todo #status/todo", "- [ ] Open #status/todo")

    assert [task.text for task in filter_tasks_by_status(tasks, "todo")] == ["Open"]
    assert len(filter_tasks_by_status(tasks, "todo", include_completed=True)) == 2


def test_filter_tasks_by_kind():
    tasks = _tasks(
        "- [ ] Today 📅 2025-03-15 #work",
        "- [ ] Tomorrow 📅 2025-03-16",
        "- [ ] Late 📅 2025-03-01 🔁 every week",
        "- [ ] Someday",
        "- [x] Done 📅 2025-03-15",
    )
    reference = date(2025, 3, 15)

    def texts(filter_text, **kwargs):
        return [
            task.text for task in filter_tasks(tasks, filter_text, reference=reference, **kwargs)
        ]

    assert texts("due:today") == ["Today"]
    assert texts("due:tomorrow") == ["Tomorrow"]
    assert texts("due:week") == ["Today", "Tomorrow"]
    assert texts("due:overdue") == ["Late"]
    assert texts("due:none") == ["Someday"]
    assert texts("tag:work") == ["Today"]
    assert texts("recurring:true") == ["Late"]
    assert texts("completed:true") == ["Done"]
    assert texts("due:today", include_completed=True) == ["Today", "Done"]
    assert texts("unknown") == ["Today", "Tomorrow", "Late", "Someday"]


def test_filter_by_tags_and_collect_tags():
    tasks = _tasks(
        "- [ ] A #home #status/todo",
        "- [ ] B #work",
        "- [ ] C #archived",
    )

    assert [task.text for task in filter_by_tags(tasks, ["home", "#work"])] == ["A", "B"]
    assert filter_by_tags(tasks, []) == tasks
    assert collect_tags(tasks) == ["#home", "#work"]
