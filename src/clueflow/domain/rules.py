"""Invariant checks shared by the engine services."""

from __future__ import annotations

from typing import Optional, TypeVar

from clueflow.domain.errors import NotFoundError

T = TypeVar("T")


def ensure_found(value: Optional[T], label: str, **context: str) -> T:
    if value is None:
        raise NotFoundError(f"Unknown {label}", **context)
    return value
