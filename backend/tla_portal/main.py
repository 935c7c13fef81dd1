from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional

from slowapi.errors import RateLimitExceeded

from tla_portal.core.config import Settings, get_settings
from tla_portal.core.database import Database
from tla_portal.core.exceptions import PortalError, error_response
from tla_portal.core.logging_config import logger, setup_logging
from tla_portal.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    SessionGateMiddleware,
)
from tla_portal.core.rate_limiter import limiter, rate_limit_exceeded_handler
from tla_portal.core.security import SessionManager
from tla_portal.api.router import api_router
from tla_portal.api.endpoints import health, pages
from tla_portal.services.account_service import AccountService


def validate_critical_config(settings: Settings) -> None:
    """Validate critical configuration at startup - fail fast if missing"""
    errors = settings.critical_errors()
    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info("=" * 60)

    validate_critical_config(settings)

    # Ensure database tables exist
    await database.create_all()
    logger.info("[Startup] Database tables ready")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await database.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one Settings object"""
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Membership registration, approval and account management for the Tanzania Library Association",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    database = Database(settings)
    session_manager = SessionManager(settings)
    app.state.settings = settings
    app.state.database = database
    app.state.session_manager = session_manager
    app.state.account_service = AccountService(database, session_manager)

    # Add rate limiter state and exception handler
    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Middleware: last added runs first
    app.add_middleware(SessionGateMiddleware, session_manager=session_manager)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )

    @app.exception_handler(PortalError)
    async def portal_exception_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
        return JSONResponse(status_code=exc.status_code, content=error_response(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": str(exc) if settings.DEBUG else "An error occurred",
                    "details": {},
                },
            },
        )

    app.include_router(health.router, tags=["Health"])
    app.include_router(pages.router, tags=["Pages"])
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()
