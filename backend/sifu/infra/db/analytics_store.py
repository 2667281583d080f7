"""Append-only question log and the read-side rollups built on it."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Sequence

from sqlalchemy import and_, case, desc, func, select

from sifu.core.domain.schemas import AnalyticsEvent
from sifu.infra.timezone_utils import utcnow_naive

from .models import QuestionAnalyticsRow
from .session import SessionFactory

logger = logging.getLogger(__name__)

_MAX_LIST_LIMIT = 100


def _cutoff(window_days: int):
    return utcnow_naive() - timedelta(days=window_days)


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


class AnalyticsRecorder:

    def __init__(self, session_factory: SessionFactory) -> None:
        self._sessions = session_factory

    async def record(self, event: AnalyticsEvent) -> int:
        row = QuestionAnalyticsRow(
            user_id=event.user_id,
            question_text=event.question_text,
            response_cached=event.response_cached,
            cost_cents=event.cost_cents,
            response_time_ms=event.response_time_ms,
            course_context=event.course_context,
            asked_by_admin=event.asked_by_admin,
            failed=event.failed,
        )
        async with self._sessions() as session:
            session.add(row)
            await session.flush()
            row_id = row.id
            await session.commit()
        return row_id

    # --- read side ---

    async def popular_questions(
        self,
        *,
        limit: int = 10,
        window_days: int = 30,
        min_ask_count: int = 1,
    ) -> list[dict]:
        ask_count = func.count().label("ask_count")
        stmt = (
            select(
                QuestionAnalyticsRow.question_text,
                ask_count,
                func.avg(QuestionAnalyticsRow.response_time_ms).label("avg_response_time"),
                func.coalesce(func.sum(QuestionAnalyticsRow.cost_cents), 0).label("total_cost"),
            )
            .where(QuestionAnalyticsRow.created_at >= _cutoff(window_days))
            .group_by(QuestionAnalyticsRow.question_text)
            .having(func.count() >= min_ask_count)
            .order_by(desc("ask_count"), QuestionAnalyticsRow.question_text)
            .limit(min(limit, _MAX_LIST_LIMIT))
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [dict(r._mapping) for r in result.all()]

    async def warm_candidates(
        self,
        *,
        limit: int,
        window_days: int,
        min_ask_count: int,
        min_length: int,
        max_length: int,
        excluded_terms: Sequence[str] = (),
    ) -> list[dict]:
        """Frequently asked, non-trivial questions from non-admin users."""
        conditions = [
            QuestionAnalyticsRow.created_at >= _cutoff(window_days),
            QuestionAnalyticsRow.asked_by_admin.is_(False),
            func.length(QuestionAnalyticsRow.question_text).between(min_length, max_length),
        ]
        for term in excluded_terms:
            conditions.append(~QuestionAnalyticsRow.question_text.ilike(f"%{term}%"))

        ask_count = func.count().label("ask_count")
        avg_time = func.avg(QuestionAnalyticsRow.response_time_ms).label("avg_response_time")
        stmt = (
            select(
                QuestionAnalyticsRow.question_text,
                ask_count,
                avg_time,
                func.max(QuestionAnalyticsRow.created_at).label("last_asked"),
            )
            .where(and_(*conditions))
            .group_by(QuestionAnalyticsRow.question_text)
            .having(func.count() >= min_ask_count)
            .order_by(desc("ask_count"), desc("avg_response_time"))
            .limit(limit)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [dict(r._mapping) for r in result.all()]

    async def overview(self, *, window_days: int = 30) -> dict:
        stmt = select(
            func.count(func.distinct(QuestionAnalyticsRow.user_id)).label("active_users"),
            func.count().label("total_questions"),
            func.coalesce(func.sum(QuestionAnalyticsRow.cost_cents), 0).label("total_cost_cents"),
            func.avg(QuestionAnalyticsRow.response_time_ms).label("avg_response_time"),
            _count_where(QuestionAnalyticsRow.response_cached.is_(True)).label("cached_responses"),
            _count_where(QuestionAnalyticsRow.course_context.is_not(None)).label("course_context_questions"),
            _count_where(QuestionAnalyticsRow.failed.is_(True)).label("failed_questions"),
        ).where(QuestionAnalyticsRow.created_at >= _cutoff(window_days))
        async with self._sessions() as session:
            row = (await session.execute(stmt)).one()

        data = dict(row._mapping)
        total = int(data["total_questions"] or 0)
        cached = int(data["cached_responses"] or 0)
        data["cache_hit_rate"] = round(cached / total, 4) if total else 0.0
        return data

    async def daily_costs(self, *, window_days: int = 30) -> list[dict]:
        day = func.date(QuestionAnalyticsRow.created_at)
        stmt = (
            select(
                day.label("date"),
                func.count().label("questions_count"),
                func.coalesce(func.sum(QuestionAnalyticsRow.cost_cents), 0).label("daily_cost_cents"),
                _count_where(QuestionAnalyticsRow.response_cached.is_(True)).label("cached_count"),
            )
            .where(QuestionAnalyticsRow.created_at >= _cutoff(window_days))
            .group_by(day)
            .order_by(desc(day))
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [dict(r._mapping) for r in result.all()]

    async def history(self, user_id: int, *, limit: int = 20) -> list[QuestionAnalyticsRow]:
        stmt = (
            select(QuestionAnalyticsRow)
            .where(QuestionAnalyticsRow.user_id == user_id)
            .order_by(QuestionAnalyticsRow.created_at.desc(), QuestionAnalyticsRow.id.desc())
            .limit(min(limit, _MAX_LIST_LIMIT))
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
