from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tla_portal.core.database import get_db
from tla_portal.core.security import SessionClaims
from tla_portal.models.account import Account
from tla_portal.modules.auth.dependencies import (
    get_account_service,
    get_current_account,
    get_current_claims,
)
from tla_portal.schemas.account import ProfileComplete, ProfileResponse, ProfileUpdate
from tla_portal.services.account_service import AccountService

router = APIRouter()


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(account: Account = Depends(get_current_account)):
    return account


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    profile_data: ProfileUpdate,
    claims: SessionClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service)
):
    """Update whitelisted profile fields. Membership number and flags are not editable."""
    return await account_service.update_profile(db, claims.account_id, profile_data)


@router.post("/profile/complete", response_model=ProfileResponse)
async def complete_profile(
    profile_data: ProfileComplete,
    claims: SessionClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service)
):
    return await account_service.complete_profile(db, claims.account_id, profile_data)
