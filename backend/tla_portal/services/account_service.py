"""
Account Service - Business logic for member accounts

Handles:
- Registration and the approval gate at login
- Admin approval, which binds a membership number in the same transaction
- Profile reads, updates and completion
- Deletion into the archive and restore from it
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tla_portal.core.database import Database
from tla_portal.core.exceptions import (
    AccountNotFoundError,
    AlreadyApprovedError,
    ArchiveNotFoundError,
    DuplicateAccountError,
    RestoreConflictError,
    ValidationError,
)
from tla_portal.core.logging_config import logger
from tla_portal.core.security import SessionClaims, SessionManager
from tla_portal.models.account import Account, DeletedAccount
from tla_portal.schemas.account import AdminAccountCreate, MembershipDetails, ProfileComplete, ProfileUpdate
from tla_portal.services.membership_service import next_membership_number, run_unit_of_work


class LoginRejection(str, enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    PENDING_APPROVAL = "pending_approval"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a login attempt. Exactly one of ``rejection`` or the tokens is set."""

    rejection: Optional[LoginRejection] = None
    account: Optional[Account] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    claims: Optional[SessionClaims] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


class AccountStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


def normalize_email(email: str) -> str:
    return email.strip().lower()


# Unique constraint markers as sqlite, PostgreSQL and MySQL report them
DUPLICATE_MARKERS = {
    "nida": ("accounts.nida", "(nida)", "accounts_nida_key"),
    "email": ("accounts.email", "(email)", "ix_accounts_email"),
}


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    """Account field whose unique constraint the insert violated, if any"""
    message = str(exc.orig).lower()
    for field, markers in DUPLICATE_MARKERS.items():
        if any(marker in message for marker in markers):
            return field
    return None


def _apply_profile(account: Account, data: ProfileUpdate) -> None:
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and not value:
            continue
        setattr(account, field, value.strip() if isinstance(value, str) else value)


class AccountService:
    """Service for account lifecycle operations"""

    def __init__(self, database: Database, session_manager: SessionManager):
        self.database = database
        self.session_manager = session_manager
        self.settings = database.settings

    # ==================== LOOKUPS ====================

    async def get_account(self, db: AsyncSession, account_id: int) -> Optional[Account]:
        """Get account by ID"""
        return await db.get(Account, account_id)

    async def require_account(self, db: AsyncSession, account_id: int) -> Account:
        account = await self.get_account(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_account_by_email(self, db: AsyncSession, email: str) -> Optional[Account]:
        """Get account by email, case-insensitive"""
        result = await db.execute(
            select(Account).where(Account.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def list_accounts(
        self,
        db: AsyncSession,
        status: Optional[AccountStatus] = None
    ) -> List[Account]:
        """All accounts, newest first, optionally filtered by approval state"""
        query = select(Account)
        if status == AccountStatus.PENDING:
            query = query.where(Account.is_approved.is_(False), Account.is_admin.is_(False))
        elif status == AccountStatus.APPROVED:
            query = query.where(or_(Account.is_approved.is_(True), Account.is_admin.is_(True)))
        result = await db.execute(query.order_by(Account.created_at.desc(), Account.id.desc()))
        return list(result.scalars().all())

    async def _ensure_unique(self, db: AsyncSession, email: str, nida: Optional[str]) -> None:
        if await self.get_account_by_email(db, email) is not None:
            raise DuplicateAccountError("email")
        if nida:
            result = await db.execute(select(Account.id).where(Account.nida == nida))
            if result.first() is not None:
                raise DuplicateAccountError("nida")

    async def _new_account(self, data: MembershipDetails) -> Account:
        return Account(
            name=data.name.strip(),
            email=normalize_email(data.email),
            hashed_password=await self.session_manager.hash_password(data.password),
            nida=data.nida.strip() if data.nida else None,
            membership_type=data.membership_type,
            phone_number=data.phone_number,
            organization_name=data.organization_name,
        )

    # ==================== REGISTRATION & LOGIN ====================

    async def register(self, db: AsyncSession, data: MembershipDetails) -> Account:
        """
        Self-registration. The account stays pending until an administrator
        approves it.
        """
        await self._ensure_unique(db, data.email, data.nida)

        account = await self._new_account(data)
        account.is_admin = False
        account.is_approved = False

        db.add(account)
        try:
            await db.commit()
        except IntegrityError as e:
            # a concurrent registration won the race past _ensure_unique
            await db.rollback()
            field = duplicate_field(e)
            if field is None:
                raise
            raise DuplicateAccountError(field) from e
        await db.refresh(account)

        logger.log_auth_event("register", True, user_email=account.email, account_id=account.id)
        return account

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> LoginResult:
        """
        Check credentials and the approval gate.

        Expected rejections come back as a LoginResult; database faults raise.
        """
        account = await self.get_account_by_email(db, email)
        if account is None:
            logger.log_auth_event("login", False, user_email=normalize_email(email), reason="not found")
            return LoginResult(rejection=LoginRejection.NOT_FOUND)

        if not await self.session_manager.check_password(password, account.hashed_password):
            logger.log_auth_event("login", False, user_email=account.email, reason="invalid credentials")
            return LoginResult(rejection=LoginRejection.INVALID_CREDENTIALS, account=account)

        if not account.has_portal_access:
            logger.log_auth_event("login", False, user_email=account.email, reason="pending approval")
            return LoginResult(rejection=LoginRejection.PENDING_APPROVAL, account=account)

        access_token = self.session_manager.issue_access_token(account.id, account.email, account.is_admin)
        refresh_token = self.session_manager.issue_refresh_token(account.id, account.email, account.is_admin)

        logger.log_auth_event("login", True, user_email=account.email, account_id=account.id)
        return LoginResult(
            account=account,
            access_token=access_token,
            refresh_token=refresh_token,
            claims=self.session_manager.verify_session(access_token),
        )

    # ==================== APPROVAL ====================

    async def approve(self, account_id: int, approved_by: Optional[int] = None) -> Account:
        """
        Pending -> Approved.

        The approval flag flips and the membership number is issued in one
        transaction, so either both are committed or neither is.
        """
        prefix = self.settings.MEMBERSHIP_NUMBER_PREFIX

        async def _approve(session: AsyncSession) -> Account:
            now = datetime.utcnow()
            result = await session.execute(
                update(Account)
                .where(Account.id == account_id, Account.is_approved.is_(False))
                .values(is_approved=True, approved_at=now, approved_by=approved_by, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                existing = await session.get(Account, account_id)
                if existing is None:
                    raise AccountNotFoundError(account_id)
                raise AlreadyApprovedError(account_id, existing.membership_number)

            account = await session.get(Account, account_id)
            account.membership_number = await next_membership_number(session, prefix)
            await session.flush()
            return account

        account = await run_unit_of_work(self.database, _approve, "approve_account")

        logger.log_auth_event(
            "approve",
            True,
            user_email=account.email,
            account_id=account.id,
            membership_number=account.membership_number,
            approved_by=approved_by,
        )
        return account

    async def create_by_admin(self, data: AdminAccountCreate, created_by: Optional[int] = None) -> Account:
        """
        Direct creation by an administrator. The account is approved on
        creation; members also receive their membership number here.
        """
        hashed_password = await self.session_manager.hash_password(data.password)
        prefix = self.settings.MEMBERSHIP_NUMBER_PREFIX

        async def _create(session: AsyncSession) -> Account:
            await self._ensure_unique(session, data.email, data.nida)

            now = datetime.utcnow()
            account = Account(
                name=data.name.strip(),
                email=normalize_email(data.email),
                hashed_password=hashed_password,
                nida=data.nida.strip() if data.nida else None,
                membership_type=data.membership_type,
                phone_number=data.phone_number,
                organization_name=data.organization_name,
                is_admin=data.is_admin,
                is_approved=True,
                approved_at=now,
                approved_by=created_by,
            )
            if not data.is_admin:
                account.membership_number = await next_membership_number(session, prefix)
            session.add(account)
            await session.flush()
            return account

        try:
            account = await run_unit_of_work(self.database, _create, "create_account")
        except IntegrityError as e:
            field = duplicate_field(e)
            if field is None:
                raise
            raise DuplicateAccountError(field) from e

        logger.log_auth_event(
            "admin_create",
            True,
            user_email=account.email,
            account_id=account.id,
            is_admin=account.is_admin,
            membership_number=account.membership_number,
            created_by=created_by,
        )
        return account

    # ==================== PROFILE ====================

    async def update_profile(self, db: AsyncSession, account_id: int, data: ProfileUpdate) -> Account:
        """Apply whitelisted profile fields"""
        account = await self.require_account(db, account_id)
        _apply_profile(account, data)

        await db.commit()
        await db.refresh(account)
        logger.info(f"Profile updated for account {account_id}")
        return account

    async def complete_profile(self, db: AsyncSession, account_id: int, data: ProfileComplete) -> Account:
        account = await self.require_account(db, account_id)
        _apply_profile(account, data)
        account.profile_completed = True

        await db.commit()
        await db.refresh(account)
        logger.info(f"Profile completed for account {account_id}")
        return account

    # ==================== DELETE & RESTORE ====================

    async def delete_account(self, db: AsyncSession, account_id: int, deleted_by: int) -> DeletedAccount:
        """Archive a full snapshot of the account, then delete it, in one transaction"""
        if account_id == deleted_by:
            raise ValidationError("You cannot delete your own account", field="id")

        account = await self.require_account(db, account_id)
        archive = DeletedAccount(
            account_id=account.id,
            name=account.name,
            email=account.email,
            deleted_by=deleted_by,
            original_data=account.to_snapshot(),
        )
        db.add(archive)
        await db.delete(account)
        await db.commit()
        await db.refresh(archive)

        logger.warning(
            f"Account {account_id} ({archive.email}) deleted by {deleted_by}",
            extra={"event_type": "account_deleted", "account_id": account_id, "deleted_by": deleted_by},
        )
        return archive

    async def list_deleted(self, db: AsyncSession) -> List[DeletedAccount]:
        result = await db.execute(
            select(DeletedAccount).order_by(DeletedAccount.deleted_at.desc(), DeletedAccount.id.desc())
        )
        return list(result.scalars().all())

    async def restore_account(self, db: AsyncSession, account_id: int) -> Account:
        """
        Re-insert the latest archived snapshot of an account and drop the
        archive row. Id, membership number and password hash come back as they were.
        """
        result = await db.execute(
            select(DeletedAccount)
            .where(DeletedAccount.account_id == account_id)
            .order_by(DeletedAccount.deleted_at.desc(), DeletedAccount.id.desc())
            .limit(1)
        )
        archive = result.scalar_one_or_none()
        if archive is None:
            raise ArchiveNotFoundError(account_id)

        account = Account.from_snapshot(archive.original_data)
        clashes = [Account.id == account.id, Account.email == account.email]
        if account.nida:
            clashes.append(Account.nida == account.nida)
        if account.membership_number:
            clashes.append(Account.membership_number == account.membership_number)
        existing = await db.execute(select(Account.id).where(or_(*clashes)))
        if existing.first() is not None:
            raise RestoreConflictError(account_id)

        db.add(account)
        await db.execute(delete(DeletedAccount).where(DeletedAccount.id == archive.id))
        await db.commit()
        await db.refresh(account)

        logger.info(
            f"Account {account_id} ({account.email}) restored",
            extra={"event_type": "account_restored", "account_id": account_id},
        )
        return account

    # ==================== BOOTSTRAP ====================

    async def ensure_admin(self, name: str, email: str, password: str) -> Account:
        """Create the first administrator, or return the existing account for this email"""
        async with self.database.session() as db:
            existing = await self.get_account_by_email(db, email)
            if existing is not None:
                if not existing.is_admin:
                    raise DuplicateAccountError("email")
                return existing

        return await self.create_by_admin(
            AdminAccountCreate(name=name, email=email, password=password, is_admin=True)
        )
