"""Collect task records from the library and group them for the board."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

from taskboard.columns import DONE_STATUS
from taskboard.config import BoardSettings
from taskboard.date_utils import parse_date
from taskboard.line_codec import ARCHIVE_TAG, STATUS_TAG_PREFIX, TaskRecord, parse_line
from taskboard.locator import split_lines
from taskboard.store import LibraryStore

logger = logging.getLogger(__name__)


def _in_folder(path: str, folder: str) -> bool:
    folder = folder.strip("/")
    return path == folder or path.startswith(folder + "/")


class TaskScanner:
    """Find tasks either across the library or in the managed task files."""

    def __init__(self, store: LibraryStore, settings: BoardSettings) -> None:
        self.store = store
        self.settings = settings

    def is_excluded(self, path: str) -> bool:
        if any(part.startswith(".") for part in path.split("/")[:-1]):
            return True
        if any(_in_folder(path, folder) for folder in self.settings.exclude_folders):
            return True
        if self.settings.include_folders:
            return not any(
                _in_folder(path, folder) for folder in self.settings.include_folders
            )
        return False

    def scan_file(self, path: str) -> list[TaskRecord]:
        try:
            content = self.store.read(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return []
        if content is None:
            logger.warning("Task file %s does not exist", path)
            return []

        tasks: list[TaskRecord] = []
        for index, line in enumerate(split_lines(content)[0]):
            task = parse_line(line, path, index + 1)
            if task is not None:
                tasks.append(task)
        return tasks

    def scan_library(self) -> list[TaskRecord]:
        files = [
            path for path in self.store.list_markdown_files() if not self.is_excluded(path)
        ]
        tasks: list[TaskRecord] = []
        for path in files:
            tasks.extend(self.scan_file(path))
        logger.debug("Scanned %d files, found %d tasks", len(files), len(tasks))
        return tasks

    def scan_configured_files(self) -> list[TaskRecord]:
        """Scan the recurring and todo files of the three-file layout."""
        tasks: list[TaskRecord] = []
        for path in (self.settings.recurring_tasks_file, self.settings.todo_file):
            tasks.extend(self.scan_file(path))
        logger.debug("Scanned configured task files, found %d tasks", len(tasks))
        return tasks

    def scan_archive_file(self) -> list[TaskRecord]:
        if not self.store.exists(self.settings.archive_file):
            return []
        return self.scan_file(self.settings.archive_file)

    def get_tasks(self) -> list[TaskRecord]:
        if self.settings.use_three_file_system:
            return self.scan_configured_files()
        return self.scan_library()


def filter_tasks_by_status(
    tasks: Iterable[TaskRecord],
    status_id: str,
    include_completed: bool = False,
    done_status: str = DONE_STATUS,
) -> list[TaskRecord]:
    """Tasks belonging in the column ``status_id``.

    Archived tasks never appear. Completed tasks only appear when asked for or
    in the done column, which also takes ticked tasks without a status tag.
    """
    is_done_column = status_id == done_status
    show_completed = include_completed or is_done_column
    results: list[TaskRecord] = []
    for task in tasks:
        if task.archived:
            continue
        if task.completed and not show_completed:
            continue
        if task.status == status_id or (is_done_column and task.completed):
            results.append(task)
    return results


def _matches_due(task: TaskRecord, value: str, reference: date) -> bool:
    if not task.due_date:
        return value == "none"
    try:
        delta = (parse_date(task.due_date) - reference).days
    except ValueError:
        return value == "none"
    if value == "today":
        return delta == 0
    if value == "tomorrow":
        return delta == 1
    if value == "week":
        return 0 <= delta <= 7
    if value == "overdue":
        return delta < 0
    if value == "none":
        return False
    return True


def filter_tasks(
    tasks: Sequence[TaskRecord],
    filter_text: str,
    include_completed: bool = False,
    reference: date | None = None,
) -> list[TaskRecord]:
    """Apply a ``kind:value`` column filter such as ``tag:home`` or ``due:overdue``.

    Unknown kinds return every visible task.
    """
    kind, _, value = filter_text.partition(":")
    kind, value = kind.strip().lower(), value.strip()

    if kind == "status":
        return filter_tasks_by_status(tasks, value, include_completed)
    if kind == "completed":
        wanted = value.lower() == "true"
        return [task for task in tasks if task.completed == wanted]

    visible = [task for task in tasks if not task.archived]
    if not include_completed:
        visible = [task for task in visible if not task.completed]

    if kind == "tag":
        tag = value if value.startswith("#") else f"#{value}"
        return [task for task in visible if tag in task.tags]
    if kind == "due":
        today = reference or date.today()
        return [task for task in visible if _matches_due(task, value.lower(), today)]
    if kind == "recurring":
        wanted = value.lower() == "true"
        return [task for task in visible if task.is_recurring == wanted]
    return visible


def filter_by_tags(
    tasks: Iterable[TaskRecord], tags: Iterable[str]
) -> list[TaskRecord]:
    wanted = {tag if tag.startswith("#") else f"#{tag}" for tag in tags if tag}
    if not wanted:
        return list(tasks)
    return [task for task in tasks if wanted.intersection(task.tags)]


def collect_tags(tasks: Iterable[TaskRecord]) -> list[str]:
    """Distinct user tags across tasks, without status and archive tags."""
    tags = {
        tag
        for task in tasks
        for tag in task.tags
        if tag != ARCHIVE_TAG and not tag.startswith(STATUS_TAG_PREFIX)
    }
    return sorted(tags)
