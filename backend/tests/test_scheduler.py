import pytest

from conftest import FakeAnswerEngine
from sifu.config import settings
from sifu.infra import scheduler


@pytest.mark.asyncio
async def test_disabled_scheduler_registers_nothing(sessions, monkeypatch):
    monkeypatch.setattr(settings, "maintenance_scheduler_enabled", False)
    scheduler.start_scheduler(sessions, FakeAnswerEngine())
    assert scheduler._scheduler is None


@pytest.mark.asyncio
async def test_enabled_scheduler_registers_sweep_and_warm(sessions, monkeypatch):
    monkeypatch.setattr(settings, "maintenance_scheduler_enabled", True)
    try:
        scheduler.start_scheduler(sessions, FakeAnswerEngine())
        job_ids = {job.id for job in scheduler._scheduler.get_jobs()}
        assert job_ids == {"ai_sifu_cache_sweep", "ai_sifu_cache_warm"}
    finally:
        scheduler.stop_scheduler()
    assert scheduler._scheduler is None


@pytest.mark.asyncio
async def test_warm_job_skipped_without_engine(sessions, monkeypatch):
    monkeypatch.setattr(settings, "maintenance_scheduler_enabled", True)
    try:
        scheduler.start_scheduler(sessions, None)
        job_ids = {job.id for job in scheduler._scheduler.get_jobs()}
        assert job_ids == {"ai_sifu_cache_sweep"}
    finally:
        scheduler.stop_scheduler()
