"""Board column definitions and column id validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

COLUMN_ID_PATTERN = re.compile(r"^[a-z0-9_-]+$")
RESERVED_COLUMN_IDS = frozenset({"archived"})
DEFAULT_STATUS = "todo"
DONE_STATUS = "done"


@dataclass(frozen=True)
class ColumnConfig:
    id: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


DEFAULT_COLUMNS: tuple[ColumnConfig, ...] = (
    ColumnConfig(id="todo", name="To Do"),
    ColumnConfig(id="doing", name="Doing"),
    ColumnConfig(id="done", name="Done"),
)


def validate_column_id(
    column_id: str,
    existing_ids: Iterable[str],
    current_id: str | None = None,
) -> str | None:
    """Return an error message for an invalid column id, or None when valid.

    The id is trimmed and lowercased before checking. When editing an existing
    column, pass its id as ``current_id`` so it does not count as a duplicate.
    """
    normalized = column_id.strip().lower()
    if not normalized:
        return "Column ID cannot be empty"
    if not COLUMN_ID_PATTERN.match(normalized):
        return "Column ID can only contain letters, numbers, underscores, and hyphens"
    if normalized in RESERVED_COLUMN_IDS:
        return f'"{normalized}" is a reserved ID'
    other_ids = [item for item in existing_ids if item != current_id]
    if normalized in other_ids:
        return "Column ID must be unique"
    return None
