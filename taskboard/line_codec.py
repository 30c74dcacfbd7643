"""Task line grammar: parse checkbox lines into records and edit their markers.

A task line is a markdown list item with a checkbox::

    - [ ] Pay rent 🔁 every month 📅 2025-03-01 #home #status/todo

Metadata lives inline as glyph markers (dates, recurrence) and ``#tags``.
Everything here is a pure function of the line; edits keep the leading
indentation, collapse the remaining whitespace and can be re-applied without
changing the result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

DUE_GLYPH = "📅"
SCHEDULED_GLYPH = "⏳"
DONE_GLYPH = "✅"
RECURRENCE_GLYPH = "🔁"
ARCHIVED_GLYPH = "📥"
DATE_GLYPHS = (DUE_GLYPH, SCHEDULED_GLYPH, DONE_GLYPH, ARCHIVED_GLYPH)

ARCHIVE_TAG = "#archived"
STATUS_TAG_PREFIX = "#status/"

_VARIATION = r"\ufe0f?"
_ALL_GLYPHS = "".join(DATE_GLYPHS) + RECURRENCE_GLYPH

CHECKBOX_PATTERN = re.compile(
    r"^(?P<indent>\s*)(?P<bullet>[-*+])\s*\[(?P<check>[ xX])\]\s*(?P<content>.*)$"
)
DATE_PATTERNS = {
    glyph: re.compile(rf"{glyph}{_VARIATION}\s*(\d{{4}}-\d{{2}}-\d{{2}})")
    for glyph in DATE_GLYPHS
}
RECURRENCE_PATTERN = re.compile(
    rf"{RECURRENCE_GLYPH}{_VARIATION}\s*([^{_ALL_GLYPHS}#]*)"
)
TAG_PATTERN = re.compile(r"(?<!\w)#[\w/-]+")
STATUS_TAG_PATTERN = re.compile(r"(?<!\w)#status/([\w-]+)(?![\w/-])")
MARKER_PATTERN = re.compile(
    "|".join(
        [
            rf"[{''.join(DATE_GLYPHS)}]{_VARIATION}\s*\d{{4}}-\d{{2}}-\d{{2}}",
            RECURRENCE_PATTERN.pattern,
            TAG_PATTERN.pattern,
        ]
    )
)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class TaskRecord:
    """A task as found on one line of one file at scan time."""

    file_path: str
    line_number: int
    raw_text: str
    text: str
    completed: bool
    due_date: str | None = None
    scheduled_date: str | None = None
    done_date: str | None = None
    archived_date: str | None = None
    recurrence: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None

    @property
    def id(self) -> str:
        return f"{self.file_path}:{self.line_number}"

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def archived(self) -> bool:
        return ARCHIVE_TAG in self.tags

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "rawText": self.raw_text,
            "text": self.text,
            "completed": self.completed,
            "dueDate": self.due_date,
            "scheduledDate": self.scheduled_date,
            "doneDate": self.done_date,
            "archivedDate": self.archived_date,
            "recurrence": self.recurrence,
            "isRecurring": self.is_recurring,
            "tags": list(self.tags),
            "status": self.status,
            "archived": self.archived,
        }


def is_task(line: str) -> bool:
    return CHECKBOX_PATTERN.match(line) is not None


def parse_line(line: str, file_path: str, line_number: int) -> TaskRecord | None:
    """Parse a line into a TaskRecord, or return None if it is not a task."""
    match = CHECKBOX_PATTERN.match(line)
    if match is None:
        return None

    content = match.group("content")
    recurrence_match = RECURRENCE_PATTERN.search(content)
    recurrence = recurrence_match.group(1).strip() if recurrence_match else None
    status_match = STATUS_TAG_PATTERN.search(content)

    return TaskRecord(
        file_path=file_path,
        line_number=line_number,
        raw_text=line,
        text=display_text(content),
        completed=match.group("check").lower() == "x",
        due_date=_find_date(content, DUE_GLYPH),
        scheduled_date=_find_date(content, SCHEDULED_GLYPH),
        done_date=_find_date(content, DONE_GLYPH),
        archived_date=_find_date(content, ARCHIVED_GLYPH),
        recurrence=recurrence or None,
        tags=tuple(dict.fromkeys(TAG_PATTERN.findall(content))),
        status=status_match.group(1) if status_match else None,
    )


def display_text(content: str) -> str:
    """Strip every recognized marker from task content."""
    for pattern in DATE_PATTERNS.values():
        content = pattern.sub("", content)
    content = RECURRENCE_PATTERN.sub("", content)
    content = TAG_PATTERN.sub("", content)
    return _collapse(content)


def _find_date(content: str, glyph: str) -> str | None:
    match = DATE_PATTERNS[glyph].search(content)
    return match.group(1) if match else None


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _split(line: str) -> tuple[str, str]:
    match = CHECKBOX_PATTERN.match(line)
    if match is not None:
        head = (
            f"{match.group('indent')}{match.group('bullet')} "
            f"[{match.group('check')}] "
        )
        return head, match.group("content")
    body = line.lstrip()
    return line[: len(line) - len(body)], body


def _join(head: str, content: str) -> str:
    content = _collapse(content)
    if not content:
        return head.rstrip()
    return head + content


def normalize_line(line: str) -> str:
    return _join(*_split(line))


def set_checkbox(line: str, checked: bool) -> str:
    match = CHECKBOX_PATTERN.match(line)
    if match is None:
        return normalize_line(line)
    check = match.group("check")
    if checked and check == " ":
        check = "x"
    elif not checked:
        check = " "
    head = f"{match.group('indent')}{match.group('bullet')} [{check}] "
    return _join(head, match.group("content"))


def set_date_marker(
    line: str, glyph: str, value: str | None, *, before_status: bool = False
) -> str:
    """Replace, insert or (with ``value=None``) remove a date marker."""
    pattern = DATE_PATTERNS[glyph]
    head, content = _split(line)

    if value is None:
        return _join(head, pattern.sub("", content))

    marker = f"{glyph} {value}"
    if pattern.search(content):
        content = pattern.sub(lambda _: marker, content, count=1)
        first_end = content.index(marker) + len(marker)
        content = content[:first_end] + pattern.sub("", content[first_end:])
        return _join(head, content)

    status_match = STATUS_TAG_PATTERN.search(content) if before_status else None
    if status_match is not None:
        index = status_match.start()
        content = f"{content[:index]}{marker} {content[index:]}"
    else:
        content = f"{content} {marker}"
    return _join(head, content)


def set_recurrence(line: str, phrase: str | None) -> str:
    head, content = _split(line)
    if phrase is None or not phrase.strip():
        return _join(head, RECURRENCE_PATTERN.sub("", content))
    marker = f"{RECURRENCE_GLYPH} {_collapse(phrase)} "
    if RECURRENCE_PATTERN.search(content):
        return _join(head, RECURRENCE_PATTERN.sub(lambda _: marker, content, count=1))
    return _join(head, f"{content} {marker}")


def _tag_pattern(tag: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(tag)}(?![\w/-])")


def has_tag(line: str, tag: str) -> bool:
    return _tag_pattern(tag).search(_split(line)[1]) is not None


def add_tag(line: str, tag: str) -> str:
    head, content = _split(line)
    if _tag_pattern(tag).search(content):
        return _join(head, content)
    return _join(head, f"{content} {tag}")


def remove_tag(line: str, tag: str) -> str:
    head, content = _split(line)
    return _join(head, _tag_pattern(tag).sub("", content))


def set_status(line: str, status: str | None) -> str:
    """Drop every status tag and, when given, append ``#status/<status>``."""
    head, content = _split(line)
    content = STATUS_TAG_PATTERN.sub("", content)
    if status:
        content = f"{content} {STATUS_TAG_PREFIX}{status}"
    return _join(head, content)


def replace_text(line: str, text: str) -> str:
    """Swap the display text of a task while keeping all of its markers."""
    head, content = _split(line)
    markers = [match.group(0).strip() for match in MARKER_PATTERN.finditer(content)]
    return _join(head, " ".join([text, *markers]))


def render_task(
    text: str,
    *,
    status: str | None = None,
    due_date: str | None = None,
    scheduled_date: str | None = None,
    recurrence: str | None = None,
    tags: Iterable[str] = (),
    completed: bool = False,
) -> str:
    """Build a fresh task line in the canonical marker order."""
    parts = [f"- [{'x' if completed else ' '}]", _collapse(text)]
    if recurrence:
        parts.append(f"{RECURRENCE_GLYPH} {_collapse(recurrence)}")
    if scheduled_date:
        parts.append(f"{SCHEDULED_GLYPH} {scheduled_date}")
    if due_date:
        parts.append(f"{DUE_GLYPH} {due_date}")
    parts.extend(tag if tag.startswith("#") else f"#{tag}" for tag in tags)
    if status:
        parts.append(f"{STATUS_TAG_PREFIX}{status}")
    return " ".join(part for part in parts if part)
