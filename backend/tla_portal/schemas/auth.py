from pydantic import BaseModel, EmailStr

from tla_portal.core.security import SessionClaims
from tla_portal.schemas.account import AccountResponse, MembershipDetails


class AccountRegister(MembershipDetails):
    """Self-registration, always pending until approved"""


class AccountLogin(BaseModel):
    email: EmailStr
    password: str


class SessionClaimsResponse(BaseModel):
    id: int
    email: str
    is_admin: bool
    expires_at: int

    @classmethod
    def from_claims(cls, claims: SessionClaims) -> "SessionClaimsResponse":
        return cls(
            id=claims.account_id,
            email=claims.email,
            is_admin=claims.is_admin,
            expires_at=claims.exp,
        )


class LoginResponse(BaseModel):
    token: str
    refresh_token: str
    token_type: str = "bearer"
    claims: SessionClaimsResponse
    user: AccountResponse


class RefreshResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    claims: SessionClaimsResponse


class RegisterResponse(BaseModel):
    message: str
    user: AccountResponse


class MessageResponse(BaseModel):
    message: str
