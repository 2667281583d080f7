"""Ask AI Sifu -- quota check, cache lookup, generation, accounting."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from sifu.config import settings
from sifu.core.domain.exceptions import GenerationError, QuotaDeniedError
from sifu.core.domain.quota import QuotaDecision, decide
from sifu.core.domain.schemas import (
    AccessFacts,
    AnalyticsEvent,
    AnswerPayload,
    QuotaLimits,
)
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.db.identity import IdentityFacts
from sifu.infra.db.usage_store import UsageAccounts
from sifu.infra.llm.base import AnswerEngine
from sifu.infra.llm.costs import estimate_cost_cents
from sifu.infra.timezone_utils import current_period_start

logger = logging.getLogger(__name__)


@dataclass
class AskResult:
    answer: AnswerPayload
    cached: bool
    cost_cents: int
    response_time_ms: int
    decision: QuotaDecision

    def to_response(self) -> dict:
        return {
            "response_text": self.answer.response_text,
            "terms_used": self.answer.terms_used,
            "sections_referenced": self.answer.sections_referenced,
            "classical_references": self.answer.classical_references,
            "cached": self.cached,
            "response_time_ms": self.response_time_ms,
            "cost_cents": self.cost_cents,
        }


def current_limits() -> QuotaLimits:
    return QuotaLimits(
        subscription_monthly=settings.subscription_monthly_limit,
        course_monthly=settings.course_monthly_limit,
    )


async def resolve_access_facts(
    facts: IdentityFacts, user_id: int, course_id: Optional[int],
) -> AccessFacts:
    """Resolve only the facts the decision order actually needs."""
    if await facts.is_admin(user_id):
        return AccessFacts(is_admin=True)
    if await facts.has_active_subscription(user_id):
        return AccessFacts(is_admin=False, has_active_subscription=True)
    purchased = False
    if course_id is not None:
        purchased = await facts.has_completed_purchase(user_id, course_id)
    return AccessFacts(is_admin=False, has_completed_purchase=purchased)


class AskQuestionUsecase:

    def __init__(
        self,
        *,
        cache: ResponseCache,
        accounts: UsageAccounts,
        analytics: AnalyticsRecorder,
        facts: IdentityFacts,
        engine: AnswerEngine,
        limits: Optional[QuotaLimits] = None,
    ) -> None:
        self._cache = cache
        self._accounts = accounts
        self._analytics = analytics
        self._facts = facts
        self._engine = engine
        self._limits = limits or current_limits()

    async def execute(
        self,
        *,
        user_id: int,
        question_text: str,
        course_id: Optional[int] = None,
    ) -> AskResult:
        t0 = time.perf_counter()
        period = current_period_start()

        access = await resolve_access_facts(self._facts, user_id, course_id)
        account = await self._accounts.get_or_create(user_id, period)
        decision = decide(access, account, course_id=course_id, limits=self._limits)
        if not decision.allowed:
            logger.info(
                "quota denied: user=%s reason=%s used=%s limit=%s course=%s",
                user_id, decision.reason.value, decision.used, decision.limit, course_id,
            )
            raise QuotaDeniedError(decision)

        entry = await self._cache.get(question_text)
        answer: Optional[AnswerPayload] = None
        if entry is not None:
            try:
                answer = AnswerPayload.model_validate(entry.response_data)
            except ValidationError:
                logger.warning("unreadable cached answer, regenerating: hash=%s", entry.question_hash[:12])
        if answer is not None:
            cached = True
            cost_cents = 0
        else:
            try:
                answer = await self._engine.generate(question_text)
            except GenerationError:
                await self._record(
                    user_id, question_text, course_id, access,
                    cached=False, cost_cents=0, elapsed_ms=_elapsed_ms(t0), failed=True,
                )
                raise
            cached = False
            cost_cents = estimate_cost_cents(question_text, answer.response_text)
            await self._cache.put(
                question_text, answer.model_dump(), ttl_days=settings.cache_ttl_days,
            )

        # raises AccountingFailureError -- an uncounted answer must not be served
        await self._accounts.increment(
            user_id,
            period,
            path=decision.path,
            cost_cents=cost_cents,
            course_id=decision.course_id,
        )

        elapsed = _elapsed_ms(t0)
        await self._record(
            user_id, question_text, course_id, access,
            cached=cached, cost_cents=cost_cents, elapsed_ms=elapsed,
        )
        return AskResult(
            answer=answer,
            cached=cached,
            cost_cents=cost_cents,
            response_time_ms=elapsed,
            decision=decision,
        )

    async def _record(
        self,
        user_id: int,
        question_text: str,
        course_id: Optional[int],
        access: AccessFacts,
        *,
        cached: bool,
        cost_cents: int,
        elapsed_ms: int,
        failed: bool = False,
    ) -> None:
        event = AnalyticsEvent(
            user_id=user_id,
            question_text=question_text,
            response_cached=cached,
            cost_cents=cost_cents,
            response_time_ms=elapsed_ms,
            course_context=course_id,
            asked_by_admin=access.is_admin,
            failed=failed,
        )
        try:
            await self._analytics.record(event)
        except SQLAlchemyError:
            logger.exception("analytics record failed: user=%s", user_id)


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)
