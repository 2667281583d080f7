from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from sifu.api.deps import (
    get_analytics,
    get_answer_engine,
    get_identity_facts,
    get_response_cache,
    get_usage_accounts,
)
from sifu.api.schemas import (
    CleanCacheResponse,
    HistoryItem,
    UserUsageResponse,
    WarmCacheResponse,
)
from sifu.api.security import require_admin
from sifu.config import settings
from sifu.core.domain.exceptions import CacheUnavailableError, UserNotFoundError
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.db.identity import IdentityFacts
from sifu.infra.db.usage_store import UsageAccounts
from sifu.infra.llm.base import AnswerEngine
from sifu.usecases.ask_question import current_limits
from sifu.usecases.cache_maintenance import run_cache_sweep, run_cache_warming
from sifu.usecases.usage_summary import get_usage_summary

router = APIRouter(
    prefix="/admin/ai-sifu",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
_log = logging.getLogger(__name__)

_RECENT_QUESTIONS_LIMIT = 50


@router.get("/analytics")
async def analytics_overview(
    analytics: AnalyticsRecorder = Depends(get_analytics),
    cache: ResponseCache = Depends(get_response_cache),
):
    window = settings.analytics_window_days
    return {
        "window_days": window,
        "overview": await analytics.overview(window_days=window),
        "popular_questions": await analytics.popular_questions(limit=10, window_days=window),
        "cache_stats": await cache.stats(),
        "daily_costs": await analytics.daily_costs(window_days=window),
    }


@router.get("/popular-questions")
async def popular_questions(
    limit: int = Query(20, ge=1, le=100),
    analytics: AnalyticsRecorder = Depends(get_analytics),
):
    return {
        "questions": await analytics.popular_questions(
            limit=limit, window_days=settings.analytics_window_days,
        ),
    }


@router.post("/clean-cache", response_model=CleanCacheResponse)
async def clean_cache(cache: ResponseCache = Depends(get_response_cache)):
    try:
        deleted = await run_cache_sweep(cache)
    except CacheUnavailableError as exc:
        _log.exception("cache sweep failed")
        raise HTTPException(503, "Response cache is unavailable") from exc
    return {"message": "Cache cleaned successfully", "deleted_entries": deleted}


@router.post("/warm-cache", response_model=WarmCacheResponse)
async def warm_cache(
    limit: int | None = Query(None, ge=1, le=100),
    cache: ResponseCache = Depends(get_response_cache),
    analytics: AnalyticsRecorder = Depends(get_analytics),
    engine: AnswerEngine = Depends(get_answer_engine),
):
    summary = await run_cache_warming(
        cache=cache, analytics=analytics, engine=engine, limit=limit,
    )
    return summary.to_dict()


@router.get("/user-usage/{user_id}", response_model=UserUsageResponse)
async def user_usage(
    user_id: int,
    accounts: UsageAccounts = Depends(get_usage_accounts),
    facts: IdentityFacts = Depends(get_identity_facts),
    analytics: AnalyticsRecorder = Depends(get_analytics),
):
    try:
        usage = await get_usage_summary(
            user_id, accounts=accounts, facts=facts, limits=current_limits(),
        )
    except UserNotFoundError as exc:
        raise HTTPException(404, f"User {user_id} not found") from exc
    rows = await analytics.history(user_id, limit=_RECENT_QUESTIONS_LIMIT)
    return {
        "usage": usage,
        "recent_questions": [HistoryItem.model_validate(r) for r in rows],
    }
