"""Re-find a task's current line in freshly read file content.

The line text captured at scan time is the fingerprint: the remembered line
number is only a hint, checked first, before a top-to-bottom scan for the
first line with the same text. A task whose own line has since been edited
is reported as missing rather than guessed at.
"""

from __future__ import annotations

import re
from typing import Sequence

from taskboard.line_codec import TaskRecord


_LINE_BREAK = re.compile(r"\r?\n")


def detect_newline(content: str) -> str:
    return "\r\n" if "\r\n" in content else "\n"


def split_lines(content: str) -> tuple[list[str], str]:
    """Split file content into lines and report its newline sequence.

    Both CRLF and LF end a line, so a file with mixed endings still splits
    into one element per line. Joining writes CRLF when any line used it.
    """
    return _LINE_BREAK.split(content), detect_newline(content)


def join_lines(lines: Sequence[str], newline: str = "\n") -> str:
    return newline.join(lines)


def locate(content: str | Sequence[str], task: TaskRecord) -> int | None:
    """Return the 0-based index of the task's line, or None if it is gone."""
    lines = split_lines(content)[0] if isinstance(content, str) else content
    fingerprint = task.raw_text.strip()
    if not fingerprint:
        return None

    hint = task.line_number - 1
    if 0 <= hint < len(lines) and lines[hint].strip() == fingerprint:
        return hint

    for index, line in enumerate(lines):
        if line.strip() == fingerprint:
            return index
    return None
