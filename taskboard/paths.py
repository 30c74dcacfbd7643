"""Path validation utilities for enforcing the library boundary."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from taskboard.constants import ALLOWED_MARKDOWN_EXTENSIONS
from taskboard.errors import BoardError


def validate_path(library_root: Path, raw_path: str) -> Path:
    """Validate a user-supplied path and return a normalized absolute path."""
    if not isinstance(raw_path, str):
        raise BoardError(
            "INVALID_TYPE",
            "Path must be a string.",
            {"path": str(raw_path), "type": type(raw_path).__name__},
        )

    normalized = raw_path.strip().replace("\\", "/")
    candidate = PurePosixPath(normalized)

    if not normalized or not candidate.parts:
        raise BoardError("INVALID_PATH", "Path must not be empty.", {"path": raw_path})

    if candidate.is_absolute():
        raise BoardError(
            "ABSOLUTE_PATH",
            "Absolute paths are not allowed.",
            {"path": raw_path},
        )

    if ".." in candidate.parts:
        raise BoardError(
            "PATH_TRAVERSAL",
            "Path traversal is not allowed.",
            {"path": raw_path},
        )

    if _contains_symlink(library_root, candidate):
        raise BoardError(
            "PATH_SYMLINK",
            "Symlinked paths are not allowed.",
            {"path": raw_path},
        )

    return library_root.joinpath(*candidate.parts)


def validate_markdown_path(library_root: Path, raw_path: str) -> Path:
    """Validate a path that must point at a markdown document."""
    target = validate_path(library_root, raw_path)
    if target.suffix.lower() not in ALLOWED_MARKDOWN_EXTENSIONS:
        raise BoardError(
            "INVALID_EXTENSION",
            "Only markdown files are supported.",
            {"path": raw_path},
        )
    return target


def _contains_symlink(library_root: Path, relative_path: PurePosixPath) -> bool:
    current = library_root
    for segment in relative_path.parts:
        current = current / segment
        if current.is_symlink():
            return True
    return False
