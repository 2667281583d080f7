"""Per-user, per-period question counters.

Both the lazy account creation and every increment are single
``INSERT .. ON CONFLICT`` statements, so concurrent first access never
yields two rows and concurrent increments never lose an update.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sifu.core.domain.exceptions import AccountingFailureError
from sifu.core.domain.schemas import UsageAccount, UsagePath
from sifu.infra.timezone_utils import utcnow_naive

from .dialect import upsert_insert
from .models import CourseUsageRow, UsageAccountRow
from .session import SessionFactory

logger = logging.getLogger(__name__)


class UsageAccounts:

    def __init__(self, session_factory: SessionFactory) -> None:
        self._sessions = session_factory

    async def get_or_create(self, user_id: int, period_start: date) -> UsageAccount:
        async with self._sessions() as session:
            stmt = upsert_insert(session, UsageAccountRow).values(
                user_id=user_id,
                period_start=period_start,
                subscription_usage=0,
                total_cost_cents=0,
            ).on_conflict_do_nothing(index_elements=["user_id", "period_start"])
            await session.execute(stmt)
            account = await self._load(session, user_id, period_start)
            await session.commit()
        if account is None:
            raise AccountingFailureError(user_id, f"usage account for {period_start} missing after upsert")
        return account

    async def get(self, user_id: int, period_start: date) -> Optional[UsageAccount]:
        """Read-only lookup; None when the user has not asked anything this period."""
        async with self._sessions() as session:
            return await self._load(session, user_id, period_start)

    async def increment(
        self,
        user_id: int,
        period_start: date,
        *,
        path: UsagePath,
        cost_cents: int,
        course_id: Optional[int] = None,
    ) -> None:
        """Count one question along *path* and add its cost.

        ``COURSE`` bumps the per-course counter, ``SUBSCRIPTION`` the
        subscription counter, ``COST_ONLY`` (admins) only adds cost.
        """
        if cost_cents < 0:
            raise ValueError(f"cost_cents must be non-negative, got {cost_cents}")
        if path == UsagePath.COURSE and course_id is None:
            raise ValueError("course_id is required for course usage")

        now = utcnow_naive()
        sub_inc = 1 if path == UsagePath.SUBSCRIPTION else 0
        try:
            async with self._sessions() as session:
                acct = upsert_insert(session, UsageAccountRow).values(
                    user_id=user_id,
                    period_start=period_start,
                    subscription_usage=sub_inc,
                    total_cost_cents=cost_cents,
                    created_at=now,
                    updated_at=now,
                )
                acct = acct.on_conflict_do_update(
                    index_elements=["user_id", "period_start"],
                    set_={
                        "subscription_usage": UsageAccountRow.subscription_usage + sub_inc,
                        "total_cost_cents": UsageAccountRow.total_cost_cents + cost_cents,
                        "updated_at": now,
                    },
                )
                await session.execute(acct)

                if path == UsagePath.COURSE:
                    course = upsert_insert(session, CourseUsageRow).values(
                        user_id=user_id,
                        period_start=period_start,
                        course_id=course_id,
                        question_count=1,
                        updated_at=now,
                    )
                    course = course.on_conflict_do_update(
                        index_elements=["user_id", "period_start", "course_id"],
                        set_={
                            "question_count": CourseUsageRow.question_count + 1,
                            "updated_at": now,
                        },
                    )
                    await session.execute(course)

                await session.commit()
        except SQLAlchemyError as exc:
            logger.exception(
                "usage increment failed: user=%s period=%s path=%s course=%s",
                user_id, period_start, path.value, course_id,
            )
            raise AccountingFailureError(user_id, str(exc)) from exc

    async def _load(
        self, session: AsyncSession, user_id: int, period_start: date,
    ) -> Optional[UsageAccount]:
        stmt = select(UsageAccountRow).where(and_(
            UsageAccountRow.user_id == user_id,
            UsageAccountRow.period_start == period_start,
        ))
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None

        course_stmt = select(CourseUsageRow.course_id, CourseUsageRow.question_count).where(and_(
            CourseUsageRow.user_id == user_id,
            CourseUsageRow.period_start == period_start,
        ))
        course_rows = (await session.execute(course_stmt)).all()
        return UsageAccount(
            user_id=row.user_id,
            period_start=row.period_start,
            subscription_usage=row.subscription_usage,
            total_cost_cents=row.total_cost_cents,
            course_usage={r.course_id: r.question_count for r in course_rows},
        )
