"""Pydantic v2 / dataclass domain models -- no IO deps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


# --- enums ---

class QuotaReason(str, Enum):
    ADMIN_UNLIMITED = "admin_unlimited"
    SUBSCRIPTION_ACCESS = "subscription_access"
    SUBSCRIPTION_LIMIT_REACHED = "subscription_limit_reached"
    COURSE_PURCHASE_ACCESS = "course_purchase_access"
    COURSE_LIMIT_REACHED = "course_limit_reached"
    NO_ACCESS = "no_access"


class UsagePath(str, Enum):
    """Which counter absorbs an allowed question."""

    COST_ONLY = "cost_only"
    SUBSCRIPTION = "subscription"
    COURSE = "course"


# --- answer engine output ---

class AnswerPayload(BaseModel):
    """Structured answer returned by the answer engine and stored in the cache."""

    response_text: str = Field(min_length=1)
    terms_used: list[Any] = Field(default_factory=list)
    sections_referenced: list[Any] = Field(default_factory=list)
    classical_references: list[Any] = Field(default_factory=list)


# --- usage accounting ---

@dataclass(frozen=True)
class QuotaLimits:
    subscription_monthly: int = 100
    course_monthly: int = 10


@dataclass
class UsageAccount:
    """Counters for one (user, period) pair."""

    user_id: int
    period_start: date
    subscription_usage: int = 0
    total_cost_cents: int = 0
    course_usage: dict[int, int] = field(default_factory=dict)

    def used_for_course(self, course_id: int) -> int:
        return self.course_usage.get(course_id, 0)


@dataclass(frozen=True)
class AccessFacts:
    """Externally resolved identity facts for one quota check."""

    is_admin: bool
    has_active_subscription: bool = False
    has_completed_purchase: bool = False


# --- response cache ---

@dataclass
class CacheEntry:
    question_hash: str
    question_text: str
    response_data: dict[str, Any]
    usage_count: int
    created_at: datetime
    expires_at: datetime


# --- analytics ---

@dataclass(frozen=True)
class AnalyticsEvent:
    user_id: int
    question_text: str
    response_cached: bool
    cost_cents: int
    response_time_ms: Optional[int]
    course_context: Optional[int] = None
    asked_by_admin: bool = False
    failed: bool = False
