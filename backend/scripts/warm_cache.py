"""
Cache maintenance: sweep expired answers, then pre-generate answers for the
questions users ask most.

Talks to the database directly; needs DATABASE_URL and ANTHROPIC_API_KEY.
Usage:
    cd backend
    python -m scripts.warm_cache
    python -m scripts.warm_cache [--limit N] [--skip-sweep]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from sifu.config import settings
from sifu.core.domain.exceptions import CacheUnavailableError
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.db.session import build_engine, build_session_factory
from sifu.infra.llm.factory import get_answer_engine
from sifu.infra.logging_config import configure_logging
from sifu.usecases.cache_maintenance import run_cache_sweep, run_cache_warming

log = logging.getLogger("warm_cache")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AI Sifu – cache sweep and warming")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.warm_top_n,
        help=f"Number of popular questions to warm (default: {settings.warm_top_n})",
    )
    parser.add_argument(
        "--skip-sweep",
        action="store_true",
        help="Do not delete expired entries before warming",
    )
    return parser.parse_args()


async def _run(limit: int, skip_sweep: bool) -> int:
    try:
        answer_engine = get_answer_engine()
    except ValueError as exc:
        log.error("%s", exc)
        return 2

    engine = build_engine()
    sessions = build_session_factory(engine)
    cache = ResponseCache(sessions)
    try:
        if not skip_sweep:
            try:
                await run_cache_sweep(cache)
            except CacheUnavailableError:
                log.exception("Sweep failed, continuing with warming")

        summary = await run_cache_warming(
            cache=cache,
            analytics=AnalyticsRecorder(sessions),
            engine=answer_engine,
            limit=limit,
        )
    finally:
        await engine.dispose()

    result = summary.to_dict()
    log.info("=" * 50)
    log.info("Warming summary")
    log.info("  candidates:  %d", result["total"])
    log.info("  cached:      %d", result["cached"])
    log.info("  skipped:     %d", result["skipped"])
    log.info("  failed:      %d", result["failed"])
    if result["avg_generation_ms"] is not None:
        log.info("  avg gen ms:  %d", result["avg_generation_ms"])
    return 1 if result["failed"] and not result["cached"] else 0


def main() -> None:
    configure_logging(settings.log_level_int)
    args = _parse_args()
    sys.exit(asyncio.run(_run(args.limit, args.skip_sweep)))


if __name__ == "__main__":
    main()
