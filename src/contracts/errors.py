from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """
    Fatal pipeline error with a stable machine-readable code.

    A batch run is atomic: any of these aborts before output tables are
    written. `detail` carries enough context (row index, column key,
    conflicting values) to locate the bad record in the source file.
    """

    def __init__(self, code: str, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.detail = dict(detail or {})

    def __str__(self) -> str:
        if not self.detail:
            return f"{self.code}: {self.message}"
        parts = ", ".join(f"{k}={self.detail[k]!r}" for k in sorted(self.detail))
        return f"{self.code}: {self.message} ({parts})"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "detail": dict(self.detail)}


class ParseError(PipelineError):
    """Malformed JSON in a classification, or an annotation node of unknown shape."""


class SchemaIntegrityError(PipelineError):
    """A value's shape disagrees with its column, or a subject id cell is not a Same value."""
