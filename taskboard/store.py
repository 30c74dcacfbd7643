"""Whole-file document storage over a library folder."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path, PurePosixPath

from taskboard.constants import ALLOWED_MARKDOWN_EXTENSIONS
from taskboard.paths import validate_path


def _atomic_write(target_path: Path, content: str) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target_path.parent, delete=False, newline=""
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target_path)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass


class LibraryStore:
    """Read, write and list markdown documents under a library root.

    Paths are library-relative POSIX strings. Every write replaces the whole
    file atomically; a failed write raises ``OSError`` and leaves the previous
    content in place.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def resolve(self, path: str) -> Path:
        return validate_path(self.root, path)

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def read(self, path: str) -> str | None:
        """Return the file content, or None when the file does not exist."""
        target = self.resolve(path)
        if not target.is_file():
            return None
        with target.open("r", encoding="utf-8", newline="") as handle:
            return handle.read()

    def write(self, path: str, content: str) -> None:
        target = self.resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        _atomic_write(target, content)

    def create(self, path: str, content: str) -> None:
        target = self.resolve(path)
        if target.exists():
            raise FileExistsError(path)
        parent = PurePosixPath(path).parent.as_posix()
        if parent not in {"", "."}:
            self.create_folder(parent)
        _atomic_write(target, content)

    def delete(self, path: str) -> None:
        self.resolve(path).unlink(missing_ok=True)

    def create_folder(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)

    def list_markdown_files(self) -> list[str]:
        """List markdown files below the root, skipping hidden directories."""
        results: list[str] = []
        if not self.root.is_dir():
            return results
        for current, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not name.startswith(".")
                and not (Path(current) / name).is_symlink()
            )
            for filename in sorted(filenames):
                file_path = Path(current) / filename
                if file_path.suffix.lower() not in ALLOWED_MARKDOWN_EXTENSIONS:
                    continue
                if file_path.is_symlink():
                    continue
                results.append(file_path.relative_to(self.root).as_posix())
        return results


def append_line(content: str, line: str) -> str:
    """Append a line to file content, keeping exactly one trailing newline.

    The appended line ends the way the content's lines already do.
    """
    newline = "\r\n" if "\r\n" in content else "\n"
    if content and not content.endswith("\n"):
        content += newline
    return content + line + newline
