"""Exception hierarchy shared across the fiscal core."""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised when a document line or modifier holds an out-of-domain value.

    ``line_index`` is ``None`` for document-level modifiers.
    """

    def __init__(
        self,
        message: str,
        *,
        line_index: int | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.line_index = line_index
        self.field = field

    def __str__(self) -> str:
        if self.line_index is None:
            location = self.field or "document"
        else:
            location = f"ligne {self.line_index}"
            if self.field:
                location = f"{location}, {self.field}"
        return f"{self.message} ({location})"


class SequencePersistenceError(RuntimeError):
    """Raised when a sequence counter cannot be durably updated."""


class SettingsError(RuntimeError):
    """Raised when the tenant settings file cannot be parsed."""


__all__ = ["SequencePersistenceError", "SettingsError", "ValidationError"]
