"""Identity facts read from tables owned by the user / billing services."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import text

from sifu.core.domain.exceptions import UserNotFoundError

from .session import SessionFactory

_IS_ADMIN_SQL = text("SELECT is_admin FROM users WHERE id = :user_id")

_ACTIVE_SUBSCRIPTION_SQL = text(
    "SELECT 1 FROM stripe_subscriptions ss "
    "JOIN stripe_customers sc ON ss.customer_id = sc.customer_id "
    "WHERE sc.user_id = :user_id AND ss.status = 'active' "
    "LIMIT 1"
)

_COMPLETED_PURCHASE_SQL = text(
    "SELECT 1 FROM orders "
    "WHERE user_id = :user_id AND course_id = :course_id AND order_status = 'completed' "
    "LIMIT 1"
)

_PURCHASED_COURSES_SQL = text(
    "SELECT DISTINCT course_id FROM orders "
    "WHERE user_id = :user_id AND order_status = 'completed' "
    "ORDER BY course_id"
)


class IdentityFacts(Protocol):
    """Ground truth about a user at the instant of a quota check."""

    async def is_admin(self, user_id: int) -> bool:
        """Raise UserNotFoundError for unknown users."""
        ...

    async def has_active_subscription(self, user_id: int) -> bool:
        ...

    async def has_completed_purchase(self, user_id: int, course_id: int) -> bool:
        ...

    async def purchased_course_ids(self, user_id: int) -> list[int]:
        ...


class SqlIdentityFacts:

    def __init__(self, session_factory: SessionFactory) -> None:
        self._sessions = session_factory

    async def is_admin(self, user_id: int) -> bool:
        async with self._sessions() as session:
            result = await session.execute(_IS_ADMIN_SQL, {"user_id": user_id})
            row = result.first()
        if row is None:
            raise UserNotFoundError(user_id)
        return bool(row[0])

    async def has_active_subscription(self, user_id: int) -> bool:
        async with self._sessions() as session:
            result = await session.execute(_ACTIVE_SUBSCRIPTION_SQL, {"user_id": user_id})
            return result.first() is not None

    async def has_completed_purchase(self, user_id: int, course_id: int) -> bool:
        async with self._sessions() as session:
            result = await session.execute(
                _COMPLETED_PURCHASE_SQL, {"user_id": user_id, "course_id": course_id},
            )
            return result.first() is not None

    async def purchased_course_ids(self, user_id: int) -> list[int]:
        async with self._sessions() as session:
            result = await session.execute(_PURCHASED_COURSES_SQL, {"user_id": user_id})
            return [int(r[0]) for r in result.all()]
