"""Git history for board mutations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from dulwich import porcelain
from dulwich.repo import Repo

from taskboard.errors import BoardError
from taskboard.store import LibraryStore

logger = logging.getLogger(__name__)


def _ensure_git_repo(library_root: Path) -> Repo:
    try:
        if (library_root / ".git").exists():
            return Repo(str(library_root))
        return porcelain.init(str(library_root))
    except Exception as exc:
        raise BoardError(
            "GIT_ERROR",
            "Git repository could not be initialized.",
            {"path": str(library_root)},
        ) from exc


def _read_head(repo: Repo) -> bytes | None:
    try:
        return repo.refs[b"HEAD"]
    except KeyError:
        return None


def _restore_head(repo: Repo, previous_head: bytes | None) -> None:
    if previous_head is None or _read_head(repo) == previous_head:
        return
    try:
        repo.refs[b"HEAD"] = previous_head
    except Exception:
        logger.exception("Could not restore git HEAD")


def _restore_files(store: LibraryStore, written: Mapping[str, str | None]) -> None:
    for path, previous in written.items():
        try:
            if previous is None:
                store.delete(path)
            else:
                store.write(path, previous)
        except OSError:
            logger.exception("Could not restore %s after failed commit", path)


def commit_changes(
    store: LibraryStore,
    written: Mapping[str, str | None],
    operation: str,
    target: str,
) -> str:
    """Commit every written file as one commit and return its sha.

    On failure the files go back to their content before the mutation and
    ``GIT_ERROR`` is raised.
    """
    repo = _ensure_git_repo(store.root)
    previous_head = _read_head(repo)
    try:
        repo.get_worktree().stage(sorted(written))
        commit_sha = porcelain.commit(repo, message=f"{operation}: {target}")
    except Exception as exc:
        _restore_files(store, written)
        _restore_head(repo, previous_head)
        try:
            repo.get_worktree().stage(sorted(written))
        except Exception:
            logger.exception("Could not re-stage restored files")
        raise BoardError(
            "GIT_ERROR",
            "Git commit failed; mutation rolled back.",
            {"path": target, "operation": operation},
        ) from exc
    finally:
        repo.close()

    if isinstance(commit_sha, bytes):
        return commit_sha.decode("ascii")
    return str(commit_sha)
