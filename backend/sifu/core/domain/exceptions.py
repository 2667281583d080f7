"""Domain exceptions -- catch specific, re-raise with context."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .quota import QuotaDecision


class SifuError(Exception):
    """Root for all domain errors."""


class UserNotFoundError(SifuError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class QuotaDeniedError(SifuError):
    """Quota policy refused the question. User-recoverable (upgrade or purchase)."""

    def __init__(self, decision: QuotaDecision) -> None:
        super().__init__(f"Quota denied: {decision.reason.value}")
        self.decision = decision


class GenerationError(SifuError):
    """Answer engine failed or timed out after its retry budget."""

    def __init__(self, detail: str, *, attempts: int = 1) -> None:
        super().__init__(f"Answer generation failed after {attempts} attempt(s): {detail}")
        self.detail = detail
        self.attempts = attempts


class CacheUnavailableError(SifuError):
    """Storage failure while reading or writing the response cache."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"Response cache {operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class AccountingFailureError(SifuError):
    """Usage increment could not be persisted -- the request must fail."""

    def __init__(self, user_id: int, detail: str) -> None:
        super().__init__(f"Could not record usage for user {user_id}: {detail}")
        self.user_id = user_id
        self.detail = detail
