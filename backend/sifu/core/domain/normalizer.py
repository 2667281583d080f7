"""Question text -> cache key."""

from __future__ import annotations

import hashlib
import re

_STRIPPED_PUNCTUATION = re.compile(r"[?.,!]")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_question(text: str) -> str:
    """Lowercase, drop ``?.,!``, collapse whitespace runs, trim."""
    lowered = text.lower()
    stripped = _STRIPPED_PUNCTUATION.sub("", lowered)
    return _WHITESPACE_RUN.sub(" ", stripped).strip()


def question_key(text: str) -> str:
    """SHA-256 hex digest of the normalized question (64 lowercase hex chars)."""
    return hashlib.sha256(normalize_question(text).encode("utf-8")).hexdigest()
