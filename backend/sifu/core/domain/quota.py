"""Monthly quota decision -- pure function over identity facts and usage.

Rules are evaluated in order, first match wins:

1. admin            -> allow, cost recorded but no quota counter touched
2. subscription     -> allow until ``subscription_monthly`` questions
3. course purchase  -> allow until ``course_monthly`` questions per course
4. otherwise        -> deny

Subscription is checked before course purchase, so a subscriber's
per-course allowance stays dormant while the subscription is active.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .schemas import AccessFacts, QuotaLimits, QuotaReason, UsageAccount, UsagePath

_DENIAL_MESSAGES: dict[QuotaReason, str] = {
    QuotaReason.SUBSCRIPTION_LIMIT_REACHED: (
        "You have reached your monthly limit of {limit} questions. "
        "Your limit will reset next month."
    ),
    QuotaReason.COURSE_LIMIT_REACHED: (
        "You have reached your limit of {limit} questions for this course. "
        "Purchase a subscription for higher limits."
    ),
    QuotaReason.NO_ACCESS: "Purchase a course or subscribe to access AI Sifu guidance.",
}


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    reason: QuotaReason
    path: Optional[UsagePath] = None
    limit: Optional[int] = None
    used: Optional[int] = None
    course_id: Optional[int] = None

    @property
    def message(self) -> Optional[str]:
        template = _DENIAL_MESSAGES.get(self.reason)
        if template is None:
            return None
        return template.format(limit=self.limit)

    def to_denial_body(self) -> dict:
        """403 body: ``limit``/``used``/``courseId`` only when they apply."""
        body: dict = {"error": "Access denied", "reason": self.reason.value}
        if self.limit is not None:
            body["limit"] = self.limit
        if self.used is not None:
            body["used"] = self.used
        if self.course_id is not None:
            body["courseId"] = self.course_id
        body["message"] = self.message
        return body


def decide(
    facts: AccessFacts,
    account: UsageAccount,
    *,
    course_id: Optional[int] = None,
    limits: QuotaLimits = QuotaLimits(),
) -> QuotaDecision:
    if facts.is_admin:
        return QuotaDecision(
            allowed=True,
            reason=QuotaReason.ADMIN_UNLIMITED,
            path=UsagePath.COST_ONLY,
        )

    if facts.has_active_subscription:
        used = account.subscription_usage
        if used >= limits.subscription_monthly:
            return QuotaDecision(
                allowed=False,
                reason=QuotaReason.SUBSCRIPTION_LIMIT_REACHED,
                limit=limits.subscription_monthly,
                used=used,
            )
        return QuotaDecision(
            allowed=True,
            reason=QuotaReason.SUBSCRIPTION_ACCESS,
            path=UsagePath.SUBSCRIPTION,
        )

    if course_id is not None and facts.has_completed_purchase:
        used = account.used_for_course(course_id)
        if used >= limits.course_monthly:
            return QuotaDecision(
                allowed=False,
                reason=QuotaReason.COURSE_LIMIT_REACHED,
                limit=limits.course_monthly,
                used=used,
                course_id=course_id,
            )
        return QuotaDecision(
            allowed=True,
            reason=QuotaReason.COURSE_PURCHASE_ACCESS,
            path=UsagePath.COURSE,
            course_id=course_id,
        )

    return QuotaDecision(allowed=False, reason=QuotaReason.NO_ACCESS)
