"""Current-period usage view for a single user."""

from __future__ import annotations

from typing import Optional

from sifu.core.domain.schemas import QuotaLimits, UsageAccount
from sifu.infra.db.identity import IdentityFacts
from sifu.infra.db.usage_store import UsageAccounts
from sifu.infra.timezone_utils import current_period_start


def _remaining(limit: int, used: int) -> int:
    return max(0, limit - used)


def build_usage_summary(
    account: Optional[UsageAccount],
    *,
    limits: QuotaLimits,
    is_admin: bool,
    has_active_subscription: bool,
    purchased_course_ids: list[int],
    period_start,
) -> dict:
    sub_used = account.subscription_usage if account else 0
    course_usage = dict(account.course_usage) if account else {}

    # purchased courses first, then any course with usage left over from a refunded order
    course_ids = list(purchased_course_ids)
    course_ids += sorted(cid for cid in course_usage if cid not in purchased_course_ids)

    courses = []
    for cid in course_ids:
        used = course_usage.get(cid, 0)
        courses.append({
            "course_id": cid,
            "used": used,
            "limit": limits.course_monthly,
            "remaining": _remaining(limits.course_monthly, used),
        })

    return {
        "period_start": period_start.isoformat(),
        "is_admin": is_admin,
        "subscription": {
            "used": sub_used,
            "limit": limits.subscription_monthly,
            "remaining": _remaining(limits.subscription_monthly, sub_used),
            "active": has_active_subscription,
        },
        "courses": courses,
        "total_cost_cents": account.total_cost_cents if account else 0,
    }


async def get_usage_summary(
    user_id: int,
    *,
    accounts: UsageAccounts,
    facts: IdentityFacts,
    limits: QuotaLimits,
) -> dict:
    """Read-only; does not create an account row for a user who has not asked yet."""
    is_admin = await facts.is_admin(user_id)
    period = current_period_start()
    account = await accounts.get(user_id, period)
    return build_usage_summary(
        account,
        limits=limits,
        is_admin=is_admin,
        has_active_subscription=await facts.has_active_subscription(user_id),
        purchased_course_ids=await facts.purchased_course_ids(user_id),
        period_start=period,
    )
