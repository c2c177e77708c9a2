"""Typed failures surfaced to engine callers."""

from __future__ import annotations

from typing import Any


class ClueEngineError(Exception):
    """Base failure carrying structured context (clue id, game id, actor id)."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{self.message} ({details})"


class NotFoundError(ClueEngineError, KeyError):
    """Unknown clue id or game id."""

    # KeyError quotes its message; keep the plain form.
    __str__ = ClueEngineError.__str__


class PreconditionError(ClueEngineError):
    """The requested transition is not allowed in the current state."""


class AlreadyRevealedError(PreconditionError):
    pass


class ClueExpiredError(PreconditionError):
    pass


class StorageError(ClueEngineError):
    """The key-value backend failed; callers own the retry policy."""
