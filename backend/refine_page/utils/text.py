"""Text processing helpers."""

from __future__ import annotations

import re


WHITESPACE_RE = re.compile(r"\s+")
_LOWER_UPPER_RE = re.compile(r"([a-z])([A-Z])")
_DIGIT_ALPHA_RE = re.compile(r"([0-9])([A-Za-z])")
_ALPHA_DIGIT_RE = re.compile(r"([A-Za-z])([0-9])")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def split_joined_words(text: str) -> str:
    """Re-insert spaces lost when a selection spans adjacent elements.

    ``"HomeNews"`` becomes ``"Home News"`` and ``"Top10"`` becomes ``"Top 10"``.
    """
    text = _LOWER_UPPER_RE.sub(r"\1 \2", text)
    text = _DIGIT_ALPHA_RE.sub(r"\1 \2", text)
    return _ALPHA_DIGIT_RE.sub(r"\1 \2", text)


__all__ = ["normalize", "split_joined_words"]
