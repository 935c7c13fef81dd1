from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from tla_portal.core.database import get_db
from tla_portal.core.exceptions import AuthorizationError
from tla_portal.core.logging_config import set_user_id
from tla_portal.core.security import Role, SessionClaims, SessionManager, authorize
from tla_portal.models.account import Account
from tla_portal.services.account_service import AccountService


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def extract_token(request: Request, session_manager: SessionManager) -> Optional[str]:
    """Bearer header first, then the session cookie"""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(session_manager.settings.SESSION_COOKIE_NAME)


async def get_current_claims(
    request: Request,
    session_manager: SessionManager = Depends(get_session_manager)
) -> SessionClaims:
    """Verified claims of the caller, 401 when missing or invalid"""
    claims = session_manager.verify_session(extract_token(request, session_manager))
    set_user_id(claims.sub)
    return claims


async def get_current_admin_claims(
    claims: SessionClaims = Depends(get_current_claims)
) -> SessionClaims:
    """Get current admin claims"""
    if not authorize(claims, Role.ADMIN):
        raise AuthorizationError("Admin access required")
    return claims


async def get_current_account(
    claims: SessionClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service)
) -> Account:
    """Account behind the session, 404 when it was deleted since login"""
    return await account_service.require_account(db, claims.account_id)
