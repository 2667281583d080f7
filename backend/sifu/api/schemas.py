"""Pydantic v2 request / response schemas for the AI Sifu endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_text: str = Field(alias="question", min_length=5, max_length=500)
    course_id: Optional[int] = Field(default=None, gt=0)


class AskResponse(BaseModel):
    response_text: str
    terms_used: list[Any] = []
    sections_referenced: list[Any] = []
    classical_references: list[Any] = []
    cached: bool
    response_time_ms: int
    cost_cents: int


class SubscriptionUsage(BaseModel):
    used: int
    limit: int
    remaining: int
    active: bool


class CourseUsage(BaseModel):
    course_id: int
    used: int
    limit: int
    remaining: int


class UsageResponse(BaseModel):
    period_start: str
    is_admin: bool
    subscription: SubscriptionUsage
    courses: list[CourseUsage]
    total_cost_cents: int


class HistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_text: str
    response_cached: bool
    cost_cents: int
    response_time_ms: Optional[int] = None
    course_context: Optional[int] = None
    failed: bool = False
    created_at: datetime


class HistoryResponse(BaseModel):
    questions: list[HistoryItem]


class CleanCacheResponse(BaseModel):
    message: str
    deleted_entries: int


class WarmCacheResponse(BaseModel):
    total: int
    cached: int
    skipped: int
    failed: int
    avg_generation_ms: Optional[int] = None


class UserUsageResponse(BaseModel):
    usage: UsageResponse
    recent_questions: list[HistoryItem]
