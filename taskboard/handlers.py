"""Board handler registration."""

# ruff: noqa: F401

from __future__ import annotations

from fastapi import FastAPI

from taskboard.constants import ACTIVITY_LOG_FILENAME
from taskboard.router import board_router

# Import modules to register routes with the shared router.
from taskboard import activity, api_tasks

# Re-export endpoints for tests and direct imports.
from taskboard.activity import read_activity_log
from taskboard.api_tasks import (
    add_task,
    archive_task,
    board,
    create_task_files,
    list_tasks,
    move_task,
    next_occurrence,
    set_task_completion,
    set_task_due_date,
    set_task_status,
    unarchive_task,
    update_task,
)


def register_board_handlers(app: FastAPI) -> None:
    """Attach board routes to the FastAPI application."""
    app.include_router(board_router)
