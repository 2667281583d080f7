"""SQLAlchemy 2.x async ORM models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sifu.infra.timezone_utils import utcnow_naive


class Base(DeclarativeBase):
    pass


# --- usage accounting ---

class UsageAccountRow(Base):
    __tablename__ = "ai_usage_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    subscription_usage: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
    total_cost_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)

    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_usage_user_period"),
        Index("ix_usage_period", "period_start"),
    )


# one row per (user, period, course) so the keyed increment is a single upsert
class CourseUsageRow(Base):
    __tablename__ = "ai_course_usage"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    question_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "period_start", "course_id",
            name="uq_course_usage_user_period_course",
        ),
    )


# --- response cache ---

class ResponseCacheRow(Base):
    __tablename__ = "ai_response_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    response_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    usage_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1",
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_ai_cache_expires", "expires_at"),
    )


# --- analytics ---

class QuestionAnalyticsRow(Base):
    __tablename__ = "ai_question_analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    response_cached: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false",
    )
    cost_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    course_context: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    asked_by_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false",
    )
    failed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false",
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)

    __table_args__ = (
        Index("ix_ai_analytics_created_at", "created_at"),
        Index("ix_ai_analytics_user_created", "user_id", "created_at"),
    )
