import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from jargon_api.clients.llm_client import LLMClient
from jargon_api.config import Settings, get_pricing, load_settings
from jargon_api.database.session import build_engine, build_session_factory, create_tables, ping
from jargon_api.exceptions import JargonAPIError, PersistenceError, UpstreamError
from jargon_api.models import fail
from jargon_api.routers import ai, analytics, feedback
from jargon_api.utils import EventTracker

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the database and LLM handles missing from app.state; dispose what we built."""
    settings: Settings = app.state.settings
    logger.info(f"[STARTUP] Jargon Lookup API starting ({settings.environment})")

    engine = None
    owns_llm_client = False

    if getattr(app.state, "session_factory", None) is None:
        engine = build_engine(settings)
        app.state.session_factory = build_session_factory(engine)
        if settings.db_create_tables:
            await create_tables(engine)
        logger.info("[STARTUP] ✓ Database engine ready")

    if getattr(app.state, "llm_client", None) is None:
        app.state.llm_client = LLMClient(settings.openai_api_key, timeout=settings.openai_timeout)
        owns_llm_client = True
        if not app.state.llm_client.configured:
            logger.warning("[STARTUP] ⚠ OPENAI_API_KEY is not set - AI rewrites will fail")

    try:
        yield
    finally:
        logger.info("Jargon Lookup API shutting down...")
        if owns_llm_client:
            await app.state.llm_client.aclose()
            app.state.llm_client = None
        if engine is not None:
            await engine.dispose()
            app.state.session_factory = None


def _error_field(err: dict) -> str:
    # json_invalid reports a character offset in loc, not a field
    if err.get("type") == "json_invalid":
        return "body"
    return ".".join(str(p) for p in err["loc"][1:]) or "body"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(JargonAPIError)
    async def handle_service_error(request: Request, exc: JargonAPIError):
        if isinstance(exc, UpstreamError):
            logger.error(f"[{request.url.path}] Upstream failure ({exc.status_code}): {exc.message}")
        elif exc.status_code >= 500:
            logger.error(f"[{request.url.path}] {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=fail(exc.message))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = sorted({_error_field(err) for err in exc.errors()})
        return JSONResponse(status_code=400, content=fail(f"Invalid request: {', '.join(fields)}"))

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.exception(f"[{request.url.path}] Unhandled database error: {exc}")
        request.app.state.tracker.track_error(exc, {"path": request.url.path})
        return JSONResponse(status_code=500, content=fail(PersistenceError().message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"[{request.url.path}] Unexpected error: {exc}")
        request.app.state.tracker.track_error(exc, {"path": request.url.path})
        return JSONResponse(status_code=500, content=fail("Internal server error"))


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker] = None,
    llm_client: Optional[LLMClient] = None,
    tracker: Optional[EventTracker] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Handles passed in here are used as-is and left open at shutdown; anything
    omitted is constructed from settings in the lifespan.
    """
    settings = settings or load_settings()
    configure_logging(settings)
    # Fail at startup, not on the first rewrite, when the model has no pricing
    get_pricing(settings.openai_model)

    app = FastAPI(
        title="Jargon Lookup API",
        description="Lookup analytics, feedback and AI rewrites for the financial-jargon browser extension",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.llm_client = llm_client
    app.state.tracker = tracker or EventTracker()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(feedback.router)
    app.include_router(ai.router)
    app.include_router(analytics.router)

    @app.get("/")
    async def root():
        """Root endpoint providing API information."""
        return {
            "message": "Jargon Lookup API",
            "version": VERSION,
            "endpoints": {
                "lookup": "/api/feedback/lookup",
                "feedback": "/api/feedback/submit",
                "user_stats": "/api/feedback/stats/{client_id}",
                "ai_rewrite": "/api/ai/rewrite",
                "ai_stats": "/api/ai/stats",
                "overview": "/api/analytics/overview",
                "daily": "/api/analytics/daily",
                "term": "/api/analytics/term/{term_key}",
                "user_engagement": "/api/analytics/user-engagement",
                "health": "/health",
            },
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        session_factory = request.app.state.session_factory
        database_ok = await ping(session_factory) if session_factory is not None else False
        llm_client = request.app.state.llm_client
        return {
            "status": "healthy" if database_ok else "degraded",
            "database": "connected" if database_ok else "unavailable",
            "ai_configured": bool(llm_client and llm_client.configured),
            "model": settings.openai_model,
        }

    return app


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run() -> None:
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
