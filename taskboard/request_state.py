"""Per-request access to the loaded configuration and storage."""

from __future__ import annotations

from pathlib import Path

from fastapi import Request

from taskboard.config import AppConfig, BoardSettings
from taskboard.store import LibraryStore


def get_request_config(request: Request) -> AppConfig:
    """Return the app configuration, falling back to a bare library path."""
    config = getattr(request.app.state, "config", None)
    if config is not None:
        return config
    return AppConfig(
        library_path=Path(request.app.state.library_path),
        service_token=None,
        board=BoardSettings(),
    )


def get_request_store(request: Request) -> LibraryStore:
    library_root = get_request_config(request).library_path
    library_root.mkdir(parents=True, exist_ok=True)
    return LibraryStore(library_root)
