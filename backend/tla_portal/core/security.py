"""
Session tokens, password hashing and role checks.

Access tokens are signed with ``JWT_SECRET_KEY`` and refresh tokens with
``JWT_REFRESH_SECRET_KEY``, so a token of one kind never validates as the other.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional
import bcrypt
from fastapi import Response
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.concurrency import run_in_threadpool

from tla_portal.core.config import Settings
from tla_portal.core.exceptions import InvalidOrExpiredTokenError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Claims every token must carry, checked by python-jose before decoding
_REQUIRED_CLAIMS = {"require_exp": True, "require_iat": True, "require_sub": True}


class Role(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class SessionClaims(BaseModel):
    """Decoded token payload. Any other claim shape is rejected."""

    model_config = ConfigDict(extra="forbid", frozen=True, strict=True)

    sub: str
    email: str
    is_admin: bool
    type: Literal["access", "refresh"]
    iat: int
    exp: int

    @property
    def account_id(self) -> int:
        return int(self.sub)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def authorize(claims: SessionClaims, required_role: Role) -> bool:
    """Whether verified claims satisfy a role. Approval is not re-checked."""
    if required_role == Role.ADMIN:
        return claims.is_admin
    return True


class SessionManager:
    """Issues, verifies and refreshes session tokens for one Settings object"""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def access_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    # ==================== PASSWORDS ====================

    async def hash_password(self, password: str) -> str:
        """bcrypt is CPU bound, keep it off the event loop"""
        return await run_in_threadpool(get_password_hash, password, self.settings.BCRYPT_ROUNDS)

    async def check_password(self, password: str, hashed_password: str) -> bool:
        return await run_in_threadpool(verify_password, password, hashed_password)

    # ==================== TOKENS ====================

    def _encode(
        self,
        account_id: int,
        email: str,
        is_admin: bool,
        token_type: str,
        lifetime: timedelta,
        secret: str,
        now: Optional[datetime] = None,
    ) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(account_id),
            "email": email,
            "is_admin": bool(is_admin),
            "type": token_type,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + lifetime).timestamp()),
        }
        return jwt.encode(payload, secret, algorithm=self.settings.JWT_ALGORITHM)

    def issue_access_token(self, account_id: int, email: str, is_admin: bool,
                           now: Optional[datetime] = None) -> str:
        """Create JWT access token"""
        return self._encode(account_id, email, is_admin, ACCESS_TOKEN_TYPE,
                            self.access_lifetime, self.settings.JWT_SECRET_KEY, now)

    def issue_refresh_token(self, account_id: int, email: str, is_admin: bool,
                            now: Optional[datetime] = None) -> str:
        """Create JWT refresh token"""
        return self._encode(account_id, email, is_admin, REFRESH_TOKEN_TYPE,
                            self.refresh_lifetime, self.settings.JWT_REFRESH_SECRET_KEY, now)

    def _decode(self, token: Optional[str], secret: str, token_type: str) -> SessionClaims:
        if not token or not token.strip():
            raise InvalidOrExpiredTokenError("Missing session token")
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.JWT_ALGORITHM],
                options=_REQUIRED_CLAIMS,
            )
            claims = SessionClaims.model_validate(payload)
        except (JWTError, ValidationError):
            raise InvalidOrExpiredTokenError()
        if claims.type != token_type:
            raise InvalidOrExpiredTokenError("Invalid token type")
        if not claims.sub.isdigit():
            raise InvalidOrExpiredTokenError("Invalid token subject")
        return claims

    def verify_session(self, token: Optional[str]) -> SessionClaims:
        """Decode and validate an access token"""
        return self._decode(token, self.settings.JWT_SECRET_KEY, ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: Optional[str]) -> SessionClaims:
        return self._decode(token, self.settings.JWT_REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE)

    def refresh_session(self, refresh_token: Optional[str],
                        now: Optional[datetime] = None) -> str:
        """Mint a new access token from a refresh token. No database lookup."""
        claims = self.verify_refresh(refresh_token)
        return self.issue_access_token(claims.account_id, claims.email, claims.is_admin, now)

    # ==================== COOKIES ====================

    def _set_cookie(self, response: Response, key: str, value: str, max_age: int,
                    expires: Optional[int] = None) -> None:
        response.set_cookie(
            key=key,
            value=value,
            max_age=max_age,
            expires=expires,
            path="/",
            httponly=True,
            secure=self.settings.session_cookie_secure,
            samesite="lax",
        )

    def set_session_cookie(self, response: Response, access_token: str) -> None:
        self._set_cookie(response, self.settings.SESSION_COOKIE_NAME, access_token,
                         int(self.access_lifetime.total_seconds()))

    def set_refresh_cookie(self, response: Response, refresh_token: str) -> None:
        self._set_cookie(response, self.settings.REFRESH_COOKIE_NAME, refresh_token,
                         int(self.refresh_lifetime.total_seconds()))

    def clear_session_cookies(self, response: Response) -> None:
        """Overwrite both cookies with already expired ones"""
        for name in (self.settings.SESSION_COOKIE_NAME, self.settings.REFRESH_COOKIE_NAME):
            self._set_cookie(response, name, "", 0, expires=0)
