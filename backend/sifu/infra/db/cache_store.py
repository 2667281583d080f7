"""Response cache keyed by normalized question hash, with TTL expiry.

Rows past ``expires_at`` are treated as absent on read even before the
sweep physically deletes them. Storage failures on the read and write paths
degrade to a miss / a skipped write; only ``sweep_expired`` propagates.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from sifu.config import settings
from sifu.core.domain.exceptions import CacheUnavailableError
from sifu.core.domain.normalizer import question_key
from sifu.core.domain.schemas import CacheEntry
from sifu.infra.timezone_utils import utcnow_naive

from .dialect import upsert_insert
from .models import ResponseCacheRow
from .session import SessionFactory

logger = logging.getLogger(__name__)


def _to_entry(row: ResponseCacheRow) -> CacheEntry:
    return CacheEntry(
        question_hash=row.question_hash,
        question_text=row.question_text,
        response_data=dict(row.response_data or {}),
        usage_count=row.usage_count,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )


class ResponseCache:

    def __init__(self, session_factory: SessionFactory) -> None:
        self._sessions = session_factory

    # --- public, degrading ---

    async def get(self, question_text: str, *, count_hit: bool = True) -> Optional[CacheEntry]:
        """Live entry for the question or None. A hit bumps ``usage_count``
        unless ``count_hit`` is False."""
        try:
            entry = await self._read(question_key(question_text), count_hit=count_hit)
        except CacheUnavailableError:
            logger.warning("cache read degraded to miss", exc_info=True)
            return None
        if entry is None:
            logger.debug("cache miss: %s", question_text[:80])
        else:
            logger.debug("cache hit: hash=%s uses=%d", entry.question_hash[:12], entry.usage_count)
        return entry

    async def put(
        self,
        question_text: str,
        response_data: dict[str, Any],
        *,
        ttl_days: Optional[int] = None,
    ) -> Optional[CacheEntry]:
        """Upsert the answer for the question. Returns None if the write failed."""
        ttl = ttl_days if ttl_days is not None else settings.cache_ttl_days
        try:
            return await self._upsert(question_text, response_data, ttl_days=ttl)
        except CacheUnavailableError:
            logger.warning("cache write skipped", exc_info=True)
            return None

    # --- maintenance ---

    async def sweep_expired(self) -> int:
        now = utcnow_naive()
        try:
            async with self._sessions() as session:
                stmt = delete(ResponseCacheRow).where(ResponseCacheRow.expires_at <= now)
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheUnavailableError("sweep", str(exc)) from exc
        return result.rowcount or 0  # type: ignore[return-value]

    async def stats(self) -> dict:
        now = utcnow_naive()
        stmt = select(
            func.count().label("total_cached"),
            func.coalesce(func.sum(ResponseCacheRow.usage_count), 0).label("total_cache_hits"),
            func.avg(ResponseCacheRow.usage_count).label("avg_usage_per_question"),
        ).where(ResponseCacheRow.expires_at > now)
        async with self._sessions() as session:
            row = (await session.execute(stmt)).one()
        return {
            "total_cached": int(row.total_cached or 0),
            "total_cache_hits": int(row.total_cache_hits or 0),
            "avg_usage_per_question": (
                float(row.avg_usage_per_question)
                if row.avg_usage_per_question is not None else None
            ),
        }

    # --- storage ---

    async def _read(self, key: str, *, count_hit: bool) -> Optional[CacheEntry]:
        now = utcnow_naive()
        try:
            async with self._sessions() as session:
                stmt = select(ResponseCacheRow).where(and_(
                    ResponseCacheRow.question_hash == key,
                    ResponseCacheRow.expires_at > now,
                ))
                row = (await session.execute(stmt)).scalar_one_or_none()
                if row is None:
                    return None
                entry = _to_entry(row)
                if count_hit:
                    await session.execute(
                        update(ResponseCacheRow)
                        .where(ResponseCacheRow.id == row.id)
                        .values(usage_count=ResponseCacheRow.usage_count + 1)
                    )
                    await session.commit()
                    entry.usage_count += 1
                return entry
        except SQLAlchemyError as exc:
            raise CacheUnavailableError("read", str(exc)) from exc

    async def _upsert(
        self,
        question_text: str,
        response_data: dict[str, Any],
        *,
        ttl_days: int,
    ) -> CacheEntry:
        key = question_key(question_text)
        now = utcnow_naive()
        expires_at = now + timedelta(days=ttl_days)
        try:
            async with self._sessions() as session:
                stmt = upsert_insert(session, ResponseCacheRow).values(
                    question_hash=key,
                    question_text=question_text,
                    response_data=response_data,
                    usage_count=1,
                    created_at=now,
                    expires_at=expires_at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["question_hash"],
                    set_={
                        "response_data": stmt.excluded.response_data,
                        "usage_count": ResponseCacheRow.usage_count + 1,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
                row = (await session.execute(
                    select(ResponseCacheRow).where(ResponseCacheRow.question_hash == key)
                )).scalar_one()
                entry = _to_entry(row)
                await session.commit()
                return entry
        except SQLAlchemyError as exc:
            raise CacheUnavailableError("write", str(exc)) from exc
