"""Structured error types for board responses.

Handlers raise ``BoardError``; the app turns it into a 400 response with the
``{"ok": false, "error": {...}}`` envelope. Failed task mutations are
converted with ``BoardError.from_mutation`` so callers see which file and
line the failure concerned, and which files were already written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class ErrorResponse:
    """Serializable error payload returned by board handlers."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class BoardError(RuntimeError):
    """Exception carrying a structured error response."""

    def __init__(
        self, code: str, message: str, details: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.error = ErrorResponse(
            code=code, message=message, details=dict(details or {})
        )

    @classmethod
    def from_mutation(
        cls,
        code: str | None,
        message: str,
        operation: str,
        path: str,
        line_number: int | None = None,
        written: Iterable[str] = (),
    ) -> "BoardError":
        details: dict[str, Any] = {"operation": operation, "path": path}
        if line_number is not None:
            details["lineNumber"] = line_number
        written_paths = sorted(written)
        if written_paths:
            details["written"] = written_paths
        return cls(code or "MUTATION_FAILED", message, details)


def success_response(payload: dict[str, Any]) -> dict[str, Any]:
    """Wrap a successful response in the standard envelope."""
    return {"ok": True, "data": payload}


def error_response(error: ErrorResponse) -> dict[str, Any]:
    """Wrap an error response in the standard envelope."""
    return {"ok": False, "error": error.to_dict()}
