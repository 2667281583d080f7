import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from sifu.api.deps import get_analytics, get_ask_usecase, get_identity_facts, get_usage_accounts
from sifu.api.rate_limit import limiter
from sifu.api.schemas import AskRequest, AskResponse, HistoryItem, HistoryResponse, UsageResponse
from sifu.api.security import CurrentUser, get_current_user
from sifu.config import settings
from sifu.core.domain.exceptions import (
    AccountingFailureError,
    GenerationError,
    QuotaDeniedError,
    UserNotFoundError,
)
from sifu.infra.db.analytics_store import AnalyticsRecorder
from sifu.infra.db.identity import IdentityFacts
from sifu.infra.db.usage_store import UsageAccounts
from sifu.usecases.ask_question import AskQuestionUsecase, current_limits
from sifu.usecases.usage_summary import get_usage_summary

router = APIRouter(prefix="/ai-sifu", tags=["ai-sifu"])
_log = logging.getLogger(__name__)

_ERR_GENERATION = "AI Sifu could not generate an answer. Please try again."
_ERR_ACCOUNTING = "Your question could not be recorded. Please try again."


def _user_not_found(exc: UserNotFoundError) -> HTTPException:
    return HTTPException(404, f"User {exc.user_id} not found")


# --- POST /ai-sifu/ask ---

@router.post("/ask", response_model=AskResponse)
@limiter.limit(settings.ask_rate_limit)
async def ask_question(
    request: Request,
    body: AskRequest,
    user: CurrentUser = Depends(get_current_user),
    usecase: AskQuestionUsecase = Depends(get_ask_usecase),
):
    try:
        result = await usecase.execute(
            user_id=user.id,
            question_text=body.question_text,
            course_id=body.course_id,
        )
    except QuotaDeniedError as exc:
        return JSONResponse(status_code=403, content=exc.decision.to_denial_body())
    except UserNotFoundError as exc:
        raise _user_not_found(exc) from exc
    except GenerationError as exc:
        _log.error("generation failed: user=%s attempts=%d", user.id, exc.attempts)
        raise HTTPException(500, {
            "code": "generation_failed",
            "message": _ERR_GENERATION,
        }) from exc
    except AccountingFailureError as exc:
        raise HTTPException(500, {
            "code": "accounting_failed",
            "message": _ERR_ACCOUNTING,
        }) from exc

    _log.info(
        "answered: user=%s cached=%s cost=%d ms=%d",
        user.id, result.cached, result.cost_cents, result.response_time_ms,
    )
    return result.to_response()


# --- GET /ai-sifu/usage ---

@router.get("/usage", response_model=UsageResponse)
async def usage(
    user: CurrentUser = Depends(get_current_user),
    accounts: UsageAccounts = Depends(get_usage_accounts),
    facts: IdentityFacts = Depends(get_identity_facts),
):
    try:
        return await get_usage_summary(
            user.id, accounts=accounts, facts=facts, limits=current_limits(),
        )
    except UserNotFoundError as exc:
        raise _user_not_found(exc) from exc


# --- GET /ai-sifu/history ---

@router.get("/history", response_model=HistoryResponse)
async def history(
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    analytics: AnalyticsRecorder = Depends(get_analytics),
):
    rows = await analytics.history(user.id, limit=limit)
    return {"questions": [HistoryItem.model_validate(r) for r in rows]}
