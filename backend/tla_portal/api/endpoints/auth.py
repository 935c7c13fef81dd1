from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tla_portal.core.database import get_db
from tla_portal.core.exceptions import (
    AccountNotFoundError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    PendingApprovalError,
    error_response,
)
from tla_portal.core.logging_config import logger
from tla_portal.core.rate_limiter import limiter, login_rate_limit, register_rate_limit
from tla_portal.core.security import SessionClaims, SessionManager
from tla_portal.models.account import Account
from tla_portal.modules.auth.dependencies import (
    get_account_service,
    get_current_account,
    get_current_claims,
    get_session_manager,
)
from tla_portal.schemas.account import AccountResponse, ProfileResponse
from tla_portal.schemas.auth import (
    AccountLogin,
    AccountRegister,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RegisterResponse,
    SessionClaimsResponse,
)
from tla_portal.services.account_service import AccountService, LoginRejection

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@register_rate_limit()
async def register(
    request: Request,
    account_data: AccountRegister,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service)
):
    """Register a new member. The account waits for administrator approval."""
    account = await account_service.register(db, account_data)
    return RegisterResponse(
        message="Registration successful. Your account is pending approval.",
        user=AccountResponse.model_validate(account),
    )


@router.post("/login", response_model=LoginResponse)
@login_rate_limit()
async def login(
    request: Request,
    response: Response,
    credentials: AccountLogin,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
    session_manager: SessionManager = Depends(get_session_manager)
):
    """Login and receive the session in the body and as HTTP-only cookies"""
    result = await account_service.authenticate(db, credentials.email, credentials.password)

    if result.rejection == LoginRejection.NOT_FOUND:
        raise AccountNotFoundError(credentials.email.lower())
    if result.rejection == LoginRejection.INVALID_CREDENTIALS:
        raise InvalidCredentialsError()
    if result.rejection == LoginRejection.PENDING_APPROVAL:
        raise PendingApprovalError(result.account.email)

    session_manager.set_session_cookie(response, result.access_token)
    session_manager.set_refresh_cookie(response, result.refresh_token)

    return LoginResponse(
        token=result.access_token,
        refresh_token=result.refresh_token,
        claims=SessionClaimsResponse.from_claims(result.claims),
        user=AccountResponse.model_validate(result.account),
    )


@router.get("/session", response_model=SessionClaimsResponse)
async def get_session(claims: SessionClaims = Depends(get_current_claims)):
    """Claims of the current session"""
    return SessionClaimsResponse.from_claims(claims)


@router.get("/me", response_model=ProfileResponse)
async def get_me(account: Account = Depends(get_current_account)):
    """Get current account"""
    return account


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_session(
    request: Request,
    response: Response,
    session_manager: SessionManager = Depends(get_session_manager)
):
    """Exchange the refresh cookie for a new access token"""
    refresh_token = request.cookies.get(session_manager.settings.REFRESH_COOKIE_NAME)
    try:
        access_token = session_manager.refresh_session(refresh_token)
    except InvalidOrExpiredTokenError as e:
        logger.log_auth_event("refresh", False, reason=e.message)
        # stale cookies go too, the client has to log in again
        failed = JSONResponse(status_code=e.status_code, content=error_response(e))
        session_manager.clear_session_cookies(failed)
        return failed

    claims = session_manager.verify_session(access_token)
    session_manager.set_session_cookie(response, access_token)
    logger.log_auth_event("refresh", True, user_email=claims.email)

    return RefreshResponse(token=access_token, claims=SessionClaimsResponse.from_claims(claims))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    session_manager: SessionManager = Depends(get_session_manager)
):
    """Clear the session cookies. Issued tokens stay valid until they expire."""
    session_manager.clear_session_cookies(response)
    return MessageResponse(message="Logged out successfully")
