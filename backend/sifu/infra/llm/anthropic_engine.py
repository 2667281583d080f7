from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import anthropic
from pydantic import ValidationError

from sifu.core.domain.exceptions import GenerationError
from sifu.core.domain.schemas import AnswerPayload

from .prompts import SIFU_SYSTEM_PROMPT, build_question_prompt

logger = logging.getLogger(__name__)


def _strip_fences(content: str) -> str:
    stripped = content.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def parse_answer(content: str) -> AnswerPayload:
    """Parse the model's JSON object; raises ValueError on malformed output."""
    try:
        data: Any = json.loads(_strip_fences(content))
    except json.JSONDecodeError as exc:
        raise ValueError(f"answer is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("answer JSON must be an object")
    try:
        return AnswerPayload.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"answer JSON has wrong shape: {exc.error_count()} error(s)") from exc


class AnthropicAnswerEngine:

    def __init__(
        self,
        *,
        api_key: str,
        model_name: str,
        timeout: float = 60,
        retries: int = 2,
        max_tokens: int = 2048,
    ) -> None:
        self.model_name = model_name
        self._timeout = timeout
        self._retries = retries
        self._max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    @staticmethod
    def _backoff(attempt: int) -> float:
        return min(2 ** attempt, 8)

    async def generate(self, question_text: str) -> AnswerPayload:
        attempts = self._retries + 1
        last_err: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                t0 = time.perf_counter()
                resp = await asyncio.wait_for(
                    self._client.messages.create(
                        model=self.model_name,
                        max_tokens=self._max_tokens,
                        temperature=0.7,
                        system=SIFU_SYSTEM_PROMPT,
                        messages=[{"role": "user", "content": build_question_prompt(question_text)}],
                    ),
                    timeout=self._timeout,
                )
                latency = int((time.perf_counter() - t0) * 1000)
                payload = parse_answer(resp.content[0].text)
                logger.debug("answer generated in %dms (attempt %d)", latency, attempt)
                return payload
            except (anthropic.APIError, asyncio.TimeoutError, ValueError, IndexError) as exc:
                last_err = exc
                wait = self._backoff(attempt)
                logger.warning("Answer attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt < attempts:
                    await asyncio.sleep(wait)

        logger.error("Answer generation exhausted %d attempt(s): %s", attempts, last_err)
        raise GenerationError(str(last_err), attempts=attempts) from last_err
