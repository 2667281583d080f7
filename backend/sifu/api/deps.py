from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.cache_store import ResponseCache
from sifu.infra.db.identity import IdentityFacts, SqlIdentityFacts
from sifu.infra.db.session import SessionFactory
from sifu.infra.db.usage_store import UsageAccounts
from sifu.infra.llm.base import AnswerEngine
from sifu.usecases.ask_question import AskQuestionUsecase, current_limits


def get_session_factory(request: Request) -> SessionFactory:
    return request.app.state.session_factory


def get_response_cache(sessions: SessionFactory = Depends(get_session_factory)) -> ResponseCache:
    return ResponseCache(sessions)


def get_usage_accounts(sessions: SessionFactory = Depends(get_session_factory)) -> UsageAccounts:
    return UsageAccounts(sessions)


def get_analytics(sessions: SessionFactory = Depends(get_session_factory)) -> AnalyticsRecorder:
    return AnalyticsRecorder(sessions)


def get_identity_facts(sessions: SessionFactory = Depends(get_session_factory)) -> IdentityFacts:
    return SqlIdentityFacts(sessions)


def get_answer_engine(request: Request) -> AnswerEngine:
    engine = getattr(request.app.state, "answer_engine", None)
    if engine is None:
        raise HTTPException(503, "AI Sifu answer engine is not configured")
    return engine


def get_ask_usecase(
    cache: ResponseCache = Depends(get_response_cache),
    accounts: UsageAccounts = Depends(get_usage_accounts),
    analytics: AnalyticsRecorder = Depends(get_analytics),
    facts: IdentityFacts = Depends(get_identity_facts),
    engine: AnswerEngine = Depends(get_answer_engine),
) -> AskQuestionUsecase:
    return AskQuestionUsecase(
        cache=cache,
        accounts=accounts,
        analytics=analytics,
        facts=facts,
        engine=engine,
        limits=current_limits(),
    )
