"""Shared constants for the task board service."""

from __future__ import annotations

ALLOWED_MARKDOWN_EXTENSIONS = {".md", ".markdown"}
ACTIVITY_LOG_FILENAME = "activity.log"
TODO_FILE_HEADER = "# To Do\n\nActive tasks go here.\n"
ARCHIVE_FILE_HEADER = "# Archive\n\nCompleted and archived tasks are stored here.\n"
RECURRING_FILE_HEADER = "# Recurring Tasks\n\nTasks with recurrence patterns (🔁) go here.\n"
