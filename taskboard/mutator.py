"""Apply edits to task lines inside their markdown files.

Every operation re-reads the file, re-finds the task's line by its text,
transforms that line with pure codec functions and writes the file once.
Expected failures (missing file, vanished line, bad input, I/O errors) come
back as a failed ``MutationResult`` instead of an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Mapping

from taskboard import line_codec
from taskboard.columns import DEFAULT_STATUS
from taskboard.constants import ARCHIVE_FILE_HEADER, TODO_FILE_HEADER
from taskboard.date_utils import format_date, is_valid_date
from taskboard.line_codec import TaskRecord
from taskboard.locator import join_lines, locate, split_lines
from taskboard.recurrence_phrases import create_next_recurring_task_line
from taskboard.store import LibraryStore, append_line

logger = logging.getLogger(__name__)

FILE_NOT_FOUND = "FILE_NOT_FOUND"
TASK_NOT_FOUND = "TASK_NOT_FOUND"
INVALID_DATE = "INVALID_DATE"
INVALID_TASK = "INVALID_TASK"
READ_FAILED = "READ_FAILED"
WRITE_FAILED = "WRITE_FAILED"
SOURCE_REMOVAL_FAILED = "SOURCE_REMOVAL_FAILED"

LineTransform = Callable[[str], tuple[str, str | None]]


@dataclass
class MutationResult:
    """Outcome of one mutation.

    ``written`` maps every path the operation wrote to the content it had
    before (None when the operation created the file).
    """

    ok: bool
    code: str | None = None
    message: str = ""
    line: str | None = None
    created_line: str | None = None
    written: dict[str, str | None] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        written: dict[str, str | None] | None = None,
    ) -> "MutationResult":
        return cls(ok=False, code=code, message=message, written=dict(written or {}))


class TaskMutator:
    def __init__(
        self,
        store: LibraryStore,
        *,
        today: Callable[[], date] = date.today,
        default_status: str = DEFAULT_STATUS,
    ) -> None:
        self.store = store
        self._today = today
        self.default_status = default_status

    def today(self) -> str:
        return format_date(self._today())

    # Single-line edits

    def set_status(self, task: TaskRecord, status: str) -> MutationResult:
        return self._edit_line(
            task, lambda line: (line_codec.set_status(line, status), None), "set_status"
        )

    def set_completion(self, task: TaskRecord, completed: bool) -> MutationResult:
        return self._edit_line(
            task,
            lambda line: (self._completion(line, completed), None),
            "set_completion",
        )

    def move_to(
        self, task: TaskRecord, status: str, mark_complete: bool = False
    ) -> MutationResult:
        """Move a task to a column, completing it when ``mark_complete`` is set."""
        if mark_complete and task.is_recurring and task.due_date:
            return self.complete_recurring(task, status)

        def transform(line: str) -> tuple[str, str | None]:
            updated = line_codec.set_status(line, status)
            current = line_codec.parse_line(line, task.file_path, task.line_number)
            if current is not None and current.completed != mark_complete:
                updated = self._completion(updated, mark_complete)
            return updated, None

        return self._edit_line(task, transform, "move_to")

    def complete_recurring(self, task: TaskRecord, status: str) -> MutationResult:
        """Complete a recurring task and insert its next instance above it.

        The next instance is built from the line as it is in the file now, not
        from the scanned record. When no next date can be computed the task is
        completed like any other one.
        """

        def transform(line: str) -> tuple[str, str | None]:
            current = line_codec.parse_line(line, task.file_path, task.line_number)
            next_line = None
            if current is not None and current.recurrence and current.due_date:
                next_line = create_next_recurring_task_line(
                    line,
                    current.recurrence,
                    current.due_date,
                    default_status=self.default_status,
                )
            if next_line is None:
                logger.warning(
                    "Could not create next recurring instance for %s; completing it",
                    task.id,
                )
            completed = self._completion(line_codec.set_status(line, status), True)
            return completed, next_line

        return self._edit_line(task, transform, "complete_recurring")

    def archive_in_place(self, task: TaskRecord) -> MutationResult:
        def transform(line: str) -> tuple[str, str | None]:
            line = line_codec.set_status(line, None)
            return line_codec.add_tag(line, line_codec.ARCHIVE_TAG), None

        return self._edit_line(task, transform, "archive_in_place")

    def set_due_date(self, task: TaskRecord, due_date: str) -> MutationResult:
        if not is_valid_date(due_date):
            return self._fail(INVALID_DATE, f"Invalid due date: {due_date!r}", task)
        return self._edit_line(
            task,
            lambda line: (
                line_codec.set_date_marker(
                    line, line_codec.DUE_GLYPH, due_date.strip(), before_status=True
                ),
                None,
            ),
            "set_due_date",
        )

    def update_text(
        self, task: TaskRecord, text: str, due_date: str | None = None
    ) -> MutationResult:
        """Replace a task's text; an empty ``due_date`` removes the due date."""
        if not text or not text.strip():
            return self._fail(INVALID_TASK, "Task text must not be empty.", task)
        if due_date and not is_valid_date(due_date):
            return self._fail(INVALID_DATE, f"Invalid due date: {due_date!r}", task)

        def transform(line: str) -> tuple[str, str | None]:
            line = line_codec.replace_text(line, text)
            if due_date is not None:
                line = line_codec.set_date_marker(
                    line,
                    line_codec.DUE_GLYPH,
                    due_date.strip() or None,
                    before_status=True,
                )
            return line, None

        return self._edit_line(task, transform, "update_text")

    # Cross-file moves

    def archive_to_file(self, task: TaskRecord, archive_path: str) -> MutationResult:
        stamp = self.today()

        def archived(line: str) -> str:
            line = line_codec.set_status(line, None)
            line = line_codec.add_tag(line, line_codec.ARCHIVE_TAG)
            return line_codec.set_date_marker(line, line_codec.ARCHIVED_GLYPH, stamp)

        return self._move_line(
            task, archive_path, ARCHIVE_FILE_HEADER, archived, "archive_to_file"
        )

    def unarchive_to_file(
        self, task: TaskRecord, archive_path: str, todo_path: str
    ) -> MutationResult:
        task = replace(task, file_path=archive_path)

        def restored(line: str) -> str:
            line = line_codec.set_checkbox(line, False)
            line = line_codec.remove_tag(line, line_codec.ARCHIVE_TAG)
            line = line_codec.set_date_marker(line, line_codec.ARCHIVED_GLYPH, None)
            line = line_codec.set_date_marker(line, line_codec.DONE_GLYPH, None)
            return line_codec.set_status(line, self.default_status)

        return self._move_line(
            task, todo_path, TODO_FILE_HEADER, restored, "unarchive_to_file"
        )

    # File-level additions

    def add_task(
        self,
        path: str,
        text: str,
        status: str | None = None,
        due_date: str | None = None,
    ) -> MutationResult:
        if not text or not text.strip():
            return MutationResult.failure(INVALID_TASK, "Task text must not be empty.")
        if due_date and not is_valid_date(due_date):
            return MutationResult.failure(INVALID_DATE, f"Invalid due date: {due_date!r}")

        new_line = line_codec.render_task(
            text, status=status or self.default_status, due_date=due_date or None
        )
        written: dict[str, str | None] = {}
        try:
            self._append(path, new_line, TODO_FILE_HEADER, written)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to add task to %s: %s", path, exc)
            return MutationResult.failure(WRITE_FAILED, str(exc), written)
        logger.info("Added task to %s", path)
        return MutationResult(ok=True, line=new_line, written=written)

    def create_task_files(self, files: Mapping[str, str]) -> MutationResult:
        """Create each missing file with its header; existing files are skipped."""
        result = MutationResult(ok=True)
        for path, header in files.items():
            if self.store.exists(path):
                result.skipped.append(path)
                continue
            try:
                self.store.create(path, header)
            except OSError as exc:
                logger.warning("Failed to create %s: %s", path, exc)
                return MutationResult.failure(WRITE_FAILED, str(exc), result.written)
            result.written[path] = None
            logger.info("Created task file %s", path)
        return result

    # Internals

    def _completion(self, line: str, completed: bool) -> str:
        if not completed:
            line = line_codec.set_checkbox(line, False)
            return line_codec.set_date_marker(line, line_codec.DONE_GLYPH, None)
        line = line_codec.set_checkbox(line, True)
        if line_codec.DATE_PATTERNS[line_codec.DONE_GLYPH].search(line) is None:
            line = line_codec.set_date_marker(line, line_codec.DONE_GLYPH, self.today())
        return line

    def _fail(self, code: str, message: str, task: TaskRecord) -> MutationResult:
        logger.warning("%s for %s: %s", code, task.id, message)
        return MutationResult.failure(code, message)

    def _read_lines(
        self, task: TaskRecord
    ) -> tuple[str, list[str], str, int] | MutationResult:
        try:
            content = self.store.read(task.file_path)
        except (OSError, UnicodeDecodeError) as exc:
            return self._fail(
                READ_FAILED, f"Could not read {task.file_path}: {exc}", task
            )
        if content is None:
            return self._fail(FILE_NOT_FOUND, f"File not found: {task.file_path}", task)
        lines, newline = split_lines(content)
        index = locate(lines, task)
        if index is None:
            return self._fail(
                TASK_NOT_FOUND, f"Task line not found in {task.file_path}", task
            )
        return content, lines, newline, index

    def _edit_line(
        self, task: TaskRecord, transform: LineTransform, operation: str
    ) -> MutationResult:
        found = self._read_lines(task)
        if isinstance(found, MutationResult):
            return found
        content, lines, newline, index = found

        updated, inserted = transform(lines[index])
        lines[index] = updated
        if inserted is not None:
            lines.insert(index, inserted)

        try:
            self.store.write(task.file_path, join_lines(lines, newline))
        except OSError as exc:
            logger.warning("%s failed to write %s: %s", operation, task.file_path, exc)
            return MutationResult.failure(WRITE_FAILED, str(exc))

        logger.info("%s updated %s", operation, task.id)
        return MutationResult(
            ok=True,
            line=updated,
            created_line=inserted,
            written={task.file_path: content},
        )

    def _append(
        self, path: str, line: str, header: str, written: dict[str, str | None]
    ) -> None:
        existing = self.store.read(path)
        if existing is None:
            self.store.create(path, append_line(header, line))
            written[path] = None
        else:
            self.store.write(path, append_line(existing, line))
            written[path] = existing

    def _move_line(
        self,
        task: TaskRecord,
        destination: str,
        header: str,
        transform: Callable[[str], str],
        operation: str,
    ) -> MutationResult:
        """Copy a transformed line to ``destination``, then drop it from its file.

        The destination is written first. If removing the source line then
        fails, the task exists in both files and the result says so; nothing
        is rolled back.
        """
        found = self._read_lines(task)
        if isinstance(found, MutationResult):
            return found
        _, lines, _, index = found
        moved = transform(lines[index])

        written: dict[str, str | None] = {}
        try:
            self._append(destination, moved, header, written)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("%s failed to write %s: %s", operation, destination, exc)
            return MutationResult.failure(WRITE_FAILED, str(exc), written)

        removal = self._remove_line(task)
        if not removal.ok:
            logger.warning(
                "%s wrote %s but could not remove %s from %s: %s",
                operation,
                destination,
                task.id,
                task.file_path,
                removal.message,
            )
            return MutationResult.failure(
                SOURCE_REMOVAL_FAILED,
                f"Task copied to {destination} but not removed from "
                f"{task.file_path}: {removal.message}",
                written,
            )

        written.update(removal.written)
        logger.info("%s moved %s to %s", operation, task.id, destination)
        return MutationResult(ok=True, line=moved, written=written)

    def _remove_line(self, task: TaskRecord) -> MutationResult:
        found = self._read_lines(task)
        if isinstance(found, MutationResult):
            return found
        content, lines, newline, index = found
        del lines[index]
        try:
            self.store.write(task.file_path, join_lines(lines, newline))
        except OSError as exc:
            return MutationResult.failure(WRITE_FAILED, str(exc))
        return MutationResult(ok=True, written={task.file_path: content})
