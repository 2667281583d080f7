"""Timezone-aware date helpers for billing periods and scheduling."""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from typing import Optional

from sifu.config import settings


def get_app_tz() -> tzinfo:
    """Configured app_timezone, falling back to UTC if it is invalid."""
    try:
        from zoneinfo import ZoneInfo
        return ZoneInfo(settings.app_timezone)
    except (ImportError, KeyError, ValueError):
        return timezone.utc


def current_period_start(now: Optional[datetime] = None) -> date:
    """First calendar day of the current month in app_timezone.

    Every quota period is keyed by this date, so all callers must go through
    here rather than computing it from a local clock.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(get_app_tz())
    return local.date().replace(day=1)


def utcnow_naive() -> datetime:
    """Naive UTC timestamp compatible with TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
