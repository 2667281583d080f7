"""Answer engine factory -- build the configured engine from settings."""

from __future__ import annotations

from sifu.config import settings

from .anthropic_engine import AnthropicAnswerEngine
from .base import AnswerEngine


def get_answer_engine() -> AnswerEngine:
    if not settings.anthropic_api_key:
        raise ValueError(
            "No API key found for the answer engine. "
            "Set ANTHROPIC_API_KEY in your .env file."
        )
    return AnthropicAnswerEngine(
        api_key=settings.anthropic_api_key,
        model_name=settings.answer_model_name,
        timeout=settings.answer_timeout_s,
        retries=settings.answer_max_retries,
        max_tokens=settings.answer_max_tokens,
    )
