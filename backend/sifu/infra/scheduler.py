"""APScheduler wrapper for cache maintenance.

Jobs:
- Expired-entry sweep (daily)
- Cache warming from popular questions (weekly)
"""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from sifu.config import settings
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.db.session import SessionFactory
from sifu.infra.llm.base import AnswerEngine
from sifu.infra.timezone_utils import get_app_tz

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None

_SWEEP_JOB_ID = "ai_sifu_cache_sweep"
_WARM_JOB_ID = "ai_sifu_cache_warm"


async def _sweep_job(session_factory: SessionFactory) -> None:
    from sifu.usecases.cache_maintenance import run_cache_sweep

    try:
        await run_cache_sweep(ResponseCache(session_factory))
    except Exception:
        logger.exception("Scheduled cache sweep failed")


async def _warm_job(session_factory: SessionFactory, engine: AnswerEngine) -> None:
    from sifu.usecases.cache_maintenance import run_cache_warming

    try:
        summary = await run_cache_warming(
            cache=ResponseCache(session_factory),
            analytics=AnalyticsRecorder(session_factory),
            engine=engine,
        )
        logger.info("Scheduled warming result: %s", summary.to_dict())
    except Exception:
        logger.exception("Scheduled cache warming failed")


def start_scheduler(session_factory: SessionFactory, engine: Optional[AnswerEngine]) -> None:
    global _scheduler
    if not settings.maintenance_scheduler_enabled:
        logger.info("Maintenance scheduler disabled")
        return
    if _scheduler is not None:
        return

    tz = get_app_tz()
    _scheduler = AsyncIOScheduler(timezone=tz)

    _scheduler.add_job(
        _sweep_job,
        trigger=CronTrigger(hour=settings.sweep_cron_hour, minute=0, timezone=tz),
        args=[session_factory],
        id=_SWEEP_JOB_ID,
        replace_existing=True,
        max_instances=1,
    )
    logger.info(
        "Cache sweep scheduled (daily at %02d:00 %s)",
        settings.sweep_cron_hour, settings.app_timezone,
    )

    if engine is not None:
        _scheduler.add_job(
            _warm_job,
            trigger=CronTrigger(
                day_of_week=settings.warm_cron_day_of_week,
                hour=settings.warm_cron_hour,
                minute=0,
                timezone=tz,
            ),
            args=[session_factory, engine],
            id=_WARM_JOB_ID,
            replace_existing=True,
            max_instances=1,
        )
        logger.info(
            "Cache warming scheduled (%s at %02d:00 %s)",
            settings.warm_cron_day_of_week, settings.warm_cron_hour, settings.app_timezone,
        )
    else:
        logger.warning("No answer engine configured; cache warming job not scheduled")

    _scheduler.start()


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
