"""AnswerEngine Protocol -- core contract for answer generation adapters."""

from __future__ import annotations

from typing import Protocol

from sifu.core.domain.schemas import AnswerPayload


class AnswerEngine(Protocol):
    """Every answer backend must implement this interface."""

    async def generate(self, question_text: str) -> AnswerPayload:
        """Return a structured answer; raise GenerationError once retries are spent."""
        ...
