"""Text tidying for generated clue and reveal prose."""

from __future__ import annotations

import re
from typing import Optional

_LEADING_LOWER = re.compile(r"^([^A-Za-z]*)([a-z])")


def clean_text(text: str, limit: Optional[int] = None) -> str:
    """Collapse whitespace, open on a capital letter and cut to `limit` characters.

    Shouted text is left in capitals; punctuation before the first letter is kept.
    """
    words = " ".join(text.split())
    if not words.isupper():
        words = _LEADING_LOWER.sub(lambda m: m.group(1) + m.group(2).upper(), words, count=1)
    if limit is not None and len(words) > limit:
        words = words[:limit].rstrip()
    return words


def join_sentences(parts: list[str]) -> str:
    """Join finding texts into one passage, separated by '. '."""
    return ". ".join(part.strip().rstrip(".") for part in parts if part.strip())


def label(value: str) -> str:
    return value.replace("_", " ").strip()
