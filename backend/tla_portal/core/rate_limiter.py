"""
Rate Limiting for the TLA Portal API
====================================
Implements rate limiting using slowapi.

Only the unauthenticated entry points are limited, keyed by client IP:
- /api/auth/login: LOGIN_RATE_LIMIT (brute force protection)
- /api/auth/register: REGISTER_RATE_LIMIT
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from tla_portal.core.config import get_settings
from tla_portal.core.logging_config import logger


def get_client_identifier(request: Request) -> str:
    """Rate limit key for anonymous callers"""
    return f"ip:{get_remote_address(request)}"


# Create limiter instance
limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri=get_settings().RATE_LIMIT_STORAGE_URI,
    enabled=get_settings().RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


def login_rate_limit():
    """Rate limit for the login endpoint"""
    return limiter.limit(lambda: get_settings().LOGIN_RATE_LIMIT)


def register_rate_limit():
    """Rate limit for the registration endpoint"""
    return limiter.limit(lambda: get_settings().REGISTER_RATE_LIMIT)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Too many requests, rendered in the portal error format"""
    retry_after = exc.detail.split(":")[-1].strip() if exc.detail else "60"

    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests. Please slow down.",
                "details": {"limit": str(exc.detail)},
            },
        },
        headers={"Retry-After": retry_after if retry_after.isdigit() else "60"},
    )
