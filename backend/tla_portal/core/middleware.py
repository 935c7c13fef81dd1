"""
TLA Portal - HTTP Middleware
Request/Response logging, security headers and the session gate for pages
"""

import time
from typing import Callable, Set, Tuple
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from tla_portal.core.exceptions import InvalidOrExpiredTokenError
from tla_portal.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    generate_request_id,
)
from tla_portal.core.security import Role, SessionManager, authorize


# Paths that should skip detailed logging (health checks, docs)
SKIP_LOGGING_PATHS: Set[str] = {
    "/health",
    "/",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}

# Page areas that need a verified session cookie
PROTECTED_PAGE_PREFIXES: Tuple[str, ...] = ("/dashboard", "/admin")
ADMIN_PAGE_PREFIX = "/admin"

LOGIN_PAGE = "/auth/login"
MEMBER_HOME = "/dashboard"


def should_skip_logging(path: str) -> bool:
    """Check if path should skip detailed logging"""
    if path in SKIP_LOGGING_PATHS:
        return True
    # Skip static file requests
    if path.startswith("/static/") or path.endswith((".js", ".css", ".png", ".ico")):
        return True
    return False


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def is_protected_page(path: str) -> bool:
    """API, auth, docs and static paths are never gated here"""
    return any(_under(path, prefix) for prefix in PROTECTED_PAGE_PREFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    Features:
    - Generates and tracks request IDs for correlation
    - Logs request method, path, status, and duration
    - Adds X-Request-ID and X-Response-Time headers to responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        path = request.url.path
        skip_logging = should_skip_logging(path)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not skip_logging:
                logger.log_request(
                    request.method,
                    path,
                    response.status_code,
                    duration_ms,
                    client_ip=request.client.host if request.client else "unknown",
                )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"✗ {request.method} {path} - Exception ({duration_ms:.2f}ms): {type(exc).__name__}",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                },
            )
            raise

        finally:
            # Clear context variables
            set_request_id("")
            set_user_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Frame-Options"] = "DENY"

        return response


class SessionGateMiddleware(BaseHTTPMiddleware):
    """
    Gate for protected pages.

    - No or invalid session cookie: redirect to the login page with the
      original path in ``redirect`` and drop the stale cookie
    - Non-admin on an admin page: redirect to the member dashboard
    - Otherwise the verified claims are exposed as ``request.state.claims``
    """

    def __init__(self, app: ASGIApp, session_manager: SessionManager):
        super().__init__(app)
        self.session_manager = session_manager

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not is_protected_page(path):
            return await call_next(request)

        cookie_name = self.session_manager.settings.SESSION_COOKIE_NAME
        try:
            claims = self.session_manager.verify_session(request.cookies.get(cookie_name))
        except InvalidOrExpiredTokenError as e:
            logger.log_auth_event("session_gate", False, reason=e.message, http_path=path)
            response = RedirectResponse(
                url=f"{LOGIN_PAGE}?redirect={quote(path, safe='')}",
                status_code=307,
            )
            response.delete_cookie(cookie_name, path="/")
            return response

        set_user_id(claims.sub)
        if _under(path, ADMIN_PAGE_PREFIX) and not authorize(claims, Role.ADMIN):
            logger.log_auth_event("session_gate", False, user_email=claims.email,
                                  reason="admin role required", http_path=path)
            return RedirectResponse(url=MEMBER_HOME, status_code=307)

        request.state.claims = claims
        return await call_next(request)
