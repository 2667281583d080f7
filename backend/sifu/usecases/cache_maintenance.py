"""Response cache maintenance: expiry sweep and warming of popular questions.

Warming pre-generates answers for questions real (non-admin) users keep
asking, and stores them with the longer warm TTL through the same
``ResponseCache.put`` the ask path uses.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Optional

from sifu.config import settings
from sifu.core.domain.exceptions import GenerationError
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.llm.base import AnswerEngine

logger = logging.getLogger(__name__)


@dataclass
class WarmingSummary:
    total: int = 0
    cached: int = 0
    skipped: int = 0
    failed: int = 0
    total_generation_ms: int = 0

    @property
    def avg_generation_ms(self) -> Optional[int]:
        if not self.cached:
            return None
        return round(self.total_generation_ms / self.cached)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("total_generation_ms")
        data["avg_generation_ms"] = self.avg_generation_ms
        return data


async def run_cache_sweep(cache: ResponseCache) -> int:
    deleted = await cache.sweep_expired()
    logger.info("Cache sweep removed %d expired entr%s", deleted, "y" if deleted == 1 else "ies")
    return deleted


async def precache_question(
    question_text: str,
    *,
    cache: ResponseCache,
    engine: AnswerEngine,
    ttl_days: int,
) -> tuple[str, int]:
    """Returns (outcome, generation_ms); outcome is cached, skipped or failed."""
    existing = await cache.get(question_text, count_hit=False)
    if existing is not None:
        logger.info("Pre-cache skipped, already live: %r", question_text[:80])
        return "skipped", 0

    t0 = time.perf_counter()
    try:
        answer = await engine.generate(question_text)
    except GenerationError:
        logger.warning("Pre-cache generation failed: %r", question_text[:80], exc_info=True)
        return "failed", 0
    elapsed = int((time.perf_counter() - t0) * 1000)

    stored = await cache.put(question_text, answer.model_dump(), ttl_days=ttl_days)
    if stored is None:
        return "failed", elapsed
    logger.info("Pre-cached %r (%dms)", question_text[:80], elapsed)
    return "cached", elapsed


async def run_cache_warming(
    *,
    cache: ResponseCache,
    analytics: AnalyticsRecorder,
    engine: AnswerEngine,
    limit: Optional[int] = None,
) -> WarmingSummary:
    candidates = await analytics.warm_candidates(
        limit=limit or settings.warm_top_n,
        window_days=settings.warm_window_days,
        min_ask_count=settings.warm_min_ask_count,
        min_length=settings.warm_min_length,
        max_length=settings.warm_max_length,
        excluded_terms=settings.warm_excluded_terms_list,
    )
    summary = WarmingSummary(total=len(candidates))
    if not candidates:
        logger.info("No popular questions to warm")
        return summary

    for idx, c in enumerate(candidates, start=1):
        logger.info("  %d. %r (asked %d times)", idx, c["question_text"][:80], c["ask_count"])

    semaphore = asyncio.Semaphore(settings.warm_max_parallel)

    async def warm_one(question_text: str) -> tuple[str, int]:
        async with semaphore:
            return await precache_question(
                question_text,
                cache=cache,
                engine=engine,
                ttl_days=settings.warm_cache_ttl_days,
            )

    results = await asyncio.gather(*(warm_one(c["question_text"]) for c in candidates))
    for outcome, elapsed in results:
        if outcome == "cached":
            summary.cached += 1
            summary.total_generation_ms += elapsed
        elif outcome == "skipped":
            summary.skipped += 1
        else:
            summary.failed += 1

    logger.info(
        "Cache warming complete: %d cached, %d skipped, %d failed",
        summary.cached, summary.skipped, summary.failed,
    )
    return summary
