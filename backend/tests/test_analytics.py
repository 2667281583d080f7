from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import update

from sifu.core.domain.schemas import AnalyticsEvent
from sifu.infra.db.models import QuestionAnalyticsRow
from sifu.infra.timezone_utils import utcnow_naive


def _event(user_id: int = 10, question: str = "How do I train neigong?", **kw) -> AnalyticsEvent:
    fields = dict(
        user_id=user_id,
        question_text=question,
        response_cached=False,
        cost_cents=2,
        response_time_ms=1200,
    )
    fields.update(kw)
    return AnalyticsEvent(**fields)


async def _age(sessions, row_id: int, days: int) -> None:
    async with sessions() as session:
        await session.execute(
            update(QuestionAnalyticsRow)
            .where(QuestionAnalyticsRow.id == row_id)
            .values(created_at=utcnow_naive() - timedelta(days=days))
        )
        await session.commit()


@pytest.mark.asyncio
async def test_record_returns_id(analytics):
    first = await analytics.record(_event())
    second = await analytics.record(_event())
    assert second > first


@pytest.mark.asyncio
async def test_overview_counts_window(analytics, sessions):
    await analytics.record(_event(user_id=10, cost_cents=3))
    await analytics.record(_event(user_id=11, response_cached=True, cost_cents=0, course_context=7))
    await analytics.record(_event(user_id=11, failed=True, cost_cents=0))
    old = await analytics.record(_event(user_id=12, cost_cents=50))
    await _age(sessions, old, days=45)

    overview = await analytics.overview(window_days=30)
    assert overview["active_users"] == 2
    assert overview["total_questions"] == 3
    assert overview["total_cost_cents"] == 3
    assert overview["cached_responses"] == 1
    assert overview["course_context_questions"] == 1
    assert overview["failed_questions"] == 1
    assert overview["cache_hit_rate"] == pytest.approx(1 / 3, abs=1e-4)


@pytest.mark.asyncio
async def test_overview_empty_window(analytics):
    overview = await analytics.overview(window_days=30)
    assert overview["total_questions"] == 0
    assert overview["cache_hit_rate"] == 0.0


@pytest.mark.asyncio
async def test_popular_questions_ordered_by_count(analytics):
    for _ in range(3):
        await analytics.record(_event(question="What is jin?"))
    await analytics.record(_event(question="What is qi?"))

    popular = await analytics.popular_questions(limit=10, window_days=30)
    assert [p["question_text"] for p in popular] == ["What is jin?", "What is qi?"]
    assert popular[0]["ask_count"] == 3


@pytest.mark.asyncio
async def test_warm_candidates_filters(analytics):
    common = dict(limit=10, window_days=30, min_ask_count=2, min_length=10, max_length=200)
    for _ in range(3):
        await analytics.record(_event(question="How do I stand in the pole posture?"))
    for _ in range(2):
        await analytics.record(_event(question="How should I breathe during forms?", response_time_ms=5000))
    # asked once only
    await analytics.record(_event(question="What is the meaning of jin?"))
    # too short
    for _ in range(3):
        await analytics.record(_event(question="Qi?"))
    # excluded term
    for _ in range(3):
        await analytics.record(_event(question="Debug: does the cache work here?"))
    # admin traffic does not count
    for _ in range(5):
        await analytics.record(_event(user_id=1, question="Admin smoke question here", asked_by_admin=True))

    candidates = await analytics.warm_candidates(excluded_terms=["test", "debug"], **common)
    assert [c["question_text"] for c in candidates] == [
        "How do I stand in the pole posture?",
        "How should I breathe during forms?",
    ]


@pytest.mark.asyncio
async def test_warm_candidates_tie_broken_by_latency(analytics):
    for _ in range(2):
        await analytics.record(_event(question="Fast question about qi", response_time_ms=100))
        await analytics.record(_event(question="Slow question about jin", response_time_ms=9000))

    candidates = await analytics.warm_candidates(
        limit=10, window_days=30, min_ask_count=2, min_length=10, max_length=200,
    )
    assert candidates[0]["question_text"] == "Slow question about jin"


@pytest.mark.asyncio
async def test_history_newest_first_and_capped(analytics):
    for i in range(5):
        await analytics.record(_event(user_id=10, question=f"Question number {i}"))
    await analytics.record(_event(user_id=99))

    rows = await analytics.history(10, limit=3)
    assert [r.question_text for r in rows] == [
        "Question number 4", "Question number 3", "Question number 2",
    ]


@pytest.mark.asyncio
async def test_daily_costs_groups_by_day(analytics, sessions):
    await analytics.record(_event(cost_cents=2))
    await analytics.record(_event(cost_cents=3, response_cached=True))
    old = await analytics.record(_event(cost_cents=10))
    await _age(sessions, old, days=2)

    days = await analytics.daily_costs(window_days=30)
    assert len(days) == 2
    assert days[0]["daily_cost_cents"] == 5
    assert days[0]["questions_count"] == 2
    assert days[0]["cached_count"] == 1
