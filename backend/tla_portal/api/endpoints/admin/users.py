"""
Admin Account Management endpoints.
"""
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from tla_portal.core.database import get_db
from tla_portal.core.security import SessionClaims
from tla_portal.modules.auth.dependencies import get_account_service, get_current_admin_claims
from tla_portal.schemas.account import (
    AccountResponse,
    AdminAccountCreate,
    ApprovalResponse,
    DeletedAccountResponse,
    RestoreRequest,
)
from tla_portal.schemas.auth import MessageResponse
from tla_portal.services.account_service import AccountService, AccountStatus

router = APIRouter()


@router.get("/users", response_model=List[AccountResponse])
async def list_users(
    status_filter: Optional[AccountStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    admin: SessionClaims = Depends(get_current_admin_claims),
    account_service: AccountService = Depends(get_account_service)
):
    """List accounts, newest first, optionally only pending or approved ones"""
    return await account_service.list_accounts(db, status_filter)


@router.post("/users", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    account_data: AdminAccountCreate,
    admin: SessionClaims = Depends(get_current_admin_claims),
    account_service: AccountService = Depends(get_account_service)
):
    """Create an approved account. Members get their membership number immediately."""
    return await account_service.create_by_admin(account_data, created_by=admin.account_id)


@router.patch("/users/{account_id}/approve", response_model=ApprovalResponse)
async def approve_user(
    account_id: int = Path(..., gt=0),
    admin: SessionClaims = Depends(get_current_admin_claims),
    account_service: AccountService = Depends(get_account_service)
):
    """Approve a pending account and bind its membership number"""
    account = await account_service.approve(account_id, approved_by=admin.account_id)
    return ApprovalResponse(
        message=f"Account approved with membership number {account.membership_number}",
        user=AccountResponse.model_validate(account),
    )


@router.delete("/users/{account_id}", response_model=MessageResponse)
async def delete_user(
    account_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    admin: SessionClaims = Depends(get_current_admin_claims),
    account_service: AccountService = Depends(get_account_service)
):
    """Archive and delete an account"""
    await account_service.delete_account(db, account_id, deleted_by=admin.account_id)
    return MessageResponse(message="User deleted successfully")


@router.get("/deleted-users", response_model=List[DeletedAccountResponse])
async def list_deleted_users(
    db: AsyncSession = Depends(get_db),
    admin: SessionClaims = Depends(get_current_admin_claims),
    account_service: AccountService = Depends(get_account_service)
):
    return await account_service.list_deleted(db)


@router.post("/users/restore", response_model=AccountResponse)
async def restore_user(
    restore_data: RestoreRequest,
    db: AsyncSession = Depends(get_db),
    admin: SessionClaims = Depends(get_current_admin_claims),
    account_service: AccountService = Depends(get_account_service)
):
    """Restore the most recent archive of an account"""
    return await account_service.restore_account(db, restore_data.account_id)
