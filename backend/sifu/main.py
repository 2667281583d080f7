from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from sifu.api.rate_limit import limiter
from sifu.api.routes.admin import router as admin_router
from sifu.api.routes.ask import router as ask_router
from sifu.config import settings
from sifu.infra.db.session import build_engine, build_session_factory, init_db
from sifu.infra.logging_config import configure_logging, request_id_var

configure_logging(settings.log_level_int)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = build_engine()
    try:
        app.state.db_engine = engine
        app.state.session_factory = build_session_factory(engine)

        if settings.auto_create_tables:
            logger.info("Creating AI Sifu tables (AUTO_CREATE_TABLES=true)...")
            await init_db(engine)

        from sifu.infra.llm.factory import get_answer_engine

        try:
            app.state.answer_engine = get_answer_engine()
        except ValueError as exc:
            app.state.answer_engine = None
            logger.warning("Answer engine disabled: %s", exc)

        from sifu.infra.scheduler import start_scheduler
        start_scheduler(app.state.session_factory, app.state.answer_engine)

        logger.info("AI Sifu ready.")
    except asyncio.CancelledError:
        logger.debug("Startup cancelled (likely due to hot reload)")
        raise
    except Exception:
        logger.exception("Error during application startup")
        raise

    try:
        yield
    finally:
        from sifu.infra.scheduler import stop_scheduler
        stop_scheduler()
        await engine.dispose()
        logger.info("Shutting down.")


app = FastAPI(
    title="AI Sifu",
    description="Question answering with response caching and monthly quotas",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if settings.debug else "Internal server error"
    return JSONResponse(status_code=500, content={"detail": detail})


app.include_router(ask_router)
app.include_router(admin_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
