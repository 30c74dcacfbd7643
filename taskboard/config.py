"""Configuration loading for the task board service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from taskboard.columns import DEFAULT_COLUMNS, ColumnConfig, validate_column_id


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


DEFAULT_EXCLUDE_FOLDERS = (".obsidian", "templates")
DEFAULT_RECURRING_FILE = "Tasks/recurring.md"
DEFAULT_TODO_FILE = "Tasks/todo.md"
DEFAULT_ARCHIVE_FILE = "Tasks/archive.md"


@dataclass(frozen=True)
class BoardSettings:
    columns: tuple[ColumnConfig, ...] = DEFAULT_COLUMNS
    include_folders: tuple[str, ...] = ()
    exclude_folders: tuple[str, ...] = DEFAULT_EXCLUDE_FOLDERS
    include_completed: bool = False
    use_three_file_system: bool = False
    recurring_tasks_file: str = DEFAULT_RECURRING_FILE
    todo_file: str = DEFAULT_TODO_FILE
    archive_file: str = DEFAULT_ARCHIVE_FILE


@dataclass(frozen=True)
class AppConfig:
    library_path: Path
    service_token: str | None
    board: BoardSettings
    git_history: bool = True
    log_level: str = "INFO"


def _read_dotenv_value(dotenv_path: Path, key: str) -> str | None:
    """Read a single key from a .env file without mutating the environment."""
    if not dotenv_path.is_file():
        return None
    try:
        content = dotenv_path.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].strip()
        if "=" not in stripped:
            continue
        name, value = stripped.split("=", 1)
        if name.strip() != key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        return value or None
    return None


def _read_setting(dotenv_path: Path, key: str) -> str | None:
    value = os.environ.get(key)
    if value is None:
        value = _read_dotenv_value(dotenv_path, key)
    return value


def _read_bool(raw_value: str | None, *, default: bool, key: str) -> bool:
    if raw_value is None:
        return default
    normalized = raw_value.strip().lower()
    if not normalized:
        return default
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{key} must be a boolean value.")


def _read_list(raw_value: str | None, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if raw_value is None:
        return default
    items = [item.strip().strip("/") for item in raw_value.split(",")]
    return tuple(item for item in items if item)


def _read_path(raw_value: str | None, *, default: str) -> str:
    if raw_value is None or not raw_value.strip():
        return default
    return raw_value.strip().replace("\\", "/").strip("/")


def parse_columns(raw_value: str | None) -> tuple[ColumnConfig, ...]:
    """Parse ``id:Name,id:Name`` into column definitions."""
    if raw_value is None or not raw_value.strip():
        return DEFAULT_COLUMNS

    columns: list[ColumnConfig] = []
    for chunk in raw_value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        column_id, _, name = chunk.partition(":")
        error = validate_column_id(column_id, [column.id for column in columns])
        if error:
            raise ConfigError(f"TASKBOARD_COLUMNS: {error} ({column_id.strip()!r}).")
        normalized_id = column_id.strip().lower()
        columns.append(
            ColumnConfig(id=normalized_id, name=name.strip() or normalized_id)
        )
    if not columns:
        raise ConfigError("TASKBOARD_COLUMNS must define at least one column.")
    return tuple(columns)


def load_config() -> AppConfig:
    """Load required configuration from the environment."""
    dotenv_path = Path.cwd() / ".env"

    env_key = "TASKBOARD_LIBRARY_PATH"
    raw_path = (_read_setting(dotenv_path, env_key) or "").strip()
    if not raw_path:
        raise ConfigError(
            "TASKBOARD_LIBRARY_PATH is required; set it to the library root path."
        )

    service_token = _read_setting(dotenv_path, "TASKBOARD_SERVICE_TOKEN")
    service_token = service_token.strip() if isinstance(service_token, str) else None
    if not service_token:
        service_token = None

    board = BoardSettings(
        columns=parse_columns(_read_setting(dotenv_path, "TASKBOARD_COLUMNS")),
        include_folders=_read_list(
            _read_setting(dotenv_path, "TASKBOARD_INCLUDE_FOLDERS"), default=()
        ),
        exclude_folders=_read_list(
            _read_setting(dotenv_path, "TASKBOARD_EXCLUDE_FOLDERS"),
            default=DEFAULT_EXCLUDE_FOLDERS,
        ),
        include_completed=_read_bool(
            _read_setting(dotenv_path, "TASKBOARD_INCLUDE_COMPLETED"),
            default=False,
            key="TASKBOARD_INCLUDE_COMPLETED",
        ),
        use_three_file_system=_read_bool(
            _read_setting(dotenv_path, "TASKBOARD_THREE_FILE_SYSTEM"),
            default=False,
            key="TASKBOARD_THREE_FILE_SYSTEM",
        ),
        recurring_tasks_file=_read_path(
            _read_setting(dotenv_path, "TASKBOARD_RECURRING_FILE"),
            default=DEFAULT_RECURRING_FILE,
        ),
        todo_file=_read_path(
            _read_setting(dotenv_path, "TASKBOARD_TODO_FILE"),
            default=DEFAULT_TODO_FILE,
        ),
        archive_file=_read_path(
            _read_setting(dotenv_path, "TASKBOARD_ARCHIVE_FILE"),
            default=DEFAULT_ARCHIVE_FILE,
        ),
    )

    git_history = _read_bool(
        _read_setting(dotenv_path, "TASKBOARD_GIT_HISTORY"),
        default=True,
        key="TASKBOARD_GIT_HISTORY",
    )

    log_level = (_read_setting(dotenv_path, "TASKBOARD_LOG_LEVEL") or "INFO").strip()
    log_level = log_level.upper() or "INFO"
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError("TASKBOARD_LOG_LEVEL must be a logging level name.")

    return AppConfig(
        library_path=Path(raw_path).resolve(),
        service_token=service_token,
        board=board,
        git_history=git_history,
        log_level=log_level,
    )
