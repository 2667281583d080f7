from __future__ import annotations

from typing import Iterable

import httpx
import pytest
import pytest_asyncio

from sifu.config import settings
from sifu.core.domain.exceptions import GenerationError, UserNotFoundError
from sifu.core.domain.schemas import AnswerPayload, QuotaLimits
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.db.session import build_engine, build_session_factory, init_db
from sifu.infra.db.usage_store import UsageAccounts
from sifu.usecases.ask_question import AskQuestionUsecase

TEST_SECRET = "test-token-secret"
TEST_ADMIN_KEY = "test-admin-key"

ADMIN_ID = 1
SUBSCRIBER_ID = 2
BUYER_ID = 3
NOBODY_ID = 4
BOUGHT_COURSE = 7


class FakeAnswerEngine:
    """Answer engine returning canned payloads; counts calls."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def generate(self, question_text: str) -> AnswerPayload:
        self.calls.append(question_text)
        if self.fail:
            raise GenerationError("engine offline", attempts=3)
        return AnswerPayload(
            response_text=f"Sifu says: {question_text}",
            terms_used=["Qi"],
            sections_referenced=["Chapter 1"],
            classical_references=[],
        )


class FakeIdentityFacts:

    def __init__(
        self,
        *,
        admins: Iterable[int] = (),
        subscribers: Iterable[int] = (),
        purchases: dict[int, set[int]] | None = None,
        known: Iterable[int] = (),
    ) -> None:
        self.admins = set(admins)
        self.subscribers = set(subscribers)
        self.purchases = dict(purchases or {})
        self.known = set(known) | self.admins | self.subscribers | set(self.purchases)

    async def is_admin(self, user_id: int) -> bool:
        if user_id not in self.known:
            raise UserNotFoundError(user_id)
        return user_id in self.admins

    async def has_active_subscription(self, user_id: int) -> bool:
        return user_id in self.subscribers

    async def has_completed_purchase(self, user_id: int, course_id: int) -> bool:
        return course_id in self.purchases.get(user_id, set())

    async def purchased_course_ids(self, user_id: int) -> list[int]:
        return sorted(self.purchases.get(user_id, set()))


@pytest.fixture
def limits() -> QuotaLimits:
    return QuotaLimits(subscription_monthly=100, course_monthly=10)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    # file-backed so concurrent sessions get their own connections
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'sifu.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def cache(sessions) -> ResponseCache:
    return ResponseCache(sessions)


@pytest.fixture
def accounts(sessions) -> UsageAccounts:
    return UsageAccounts(sessions)


@pytest.fixture
def analytics(sessions) -> AnalyticsRecorder:
    return AnalyticsRecorder(sessions)


@pytest.fixture
def fake_engine() -> FakeAnswerEngine:
    return FakeAnswerEngine()


@pytest.fixture
def fake_facts() -> FakeIdentityFacts:
    return FakeIdentityFacts(
        admins={ADMIN_ID},
        subscribers={SUBSCRIBER_ID},
        purchases={BUYER_ID: {BOUGHT_COURSE}},
        known={NOBODY_ID},
    )


@pytest.fixture
def usecase(cache, accounts, analytics, fake_facts, fake_engine, limits) -> AskQuestionUsecase:
    return AskQuestionUsecase(
        cache=cache,
        accounts=accounts,
        analytics=analytics,
        facts=fake_facts,
        engine=fake_engine,
        limits=limits,
    )


@pytest.fixture
def auth_settings(monkeypatch):
    monkeypatch.setattr(settings, "token_secret", TEST_SECRET)
    monkeypatch.setattr(settings, "admin_api_key", TEST_ADMIN_KEY)


def bearer(user_id: int, *, is_admin: bool = False) -> dict[str, str]:
    from sifu.api.security import create_access_token

    token = create_access_token(user_id, is_admin=is_admin, secret=TEST_SECRET)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(sessions, fake_facts, fake_engine, auth_settings, monkeypatch):
    from sifu.api.deps import get_identity_facts
    from sifu.api.rate_limit import limiter
    from sifu.main import app

    monkeypatch.setattr(limiter, "enabled", False)
    app.state.session_factory = sessions
    app.state.answer_engine = fake_engine
    app.dependency_overrides[get_identity_facts] = lambda: fake_facts

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
