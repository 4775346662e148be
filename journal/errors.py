"""Structured errors raised by the journal data-access layer."""

from __future__ import annotations

from typing import Optional


class JournalError(RuntimeError):
    """Root of recoverable journal errors."""


class ConstraintViolationError(JournalError):
    """Raised when a write breaks a schema constraint.

    No partial mutation is left behind: the surrounding transaction is
    rolled back before this is raised.
    """

    def __init__(self, field: str, message: str, constraint: Optional[str] = None) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.constraint = constraint


class NotPermittedError(JournalError):
    """Raised when an ownership policy rejects an operation.

    The message is deliberately identical for missing rows and rows owned by
    someone else.
    """

    def __init__(self) -> None:
        super().__init__("Operation not permitted.")
