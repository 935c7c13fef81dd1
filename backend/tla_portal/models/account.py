from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, JSON, Enum as SQLEnum, inspect
from datetime import date, datetime
from typing import Any, Dict
import enum

from tla_portal.core.database import Base


class MembershipType(str, enum.Enum):
    """Membership categories"""
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class Account(Base):
    """Member or administrator account"""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)  # always lower-cased
    hashed_password = Column(String(255), nullable=False)

    is_admin = Column(Boolean, default=False, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)

    # Registration details
    nida = Column(String(50), unique=True, nullable=True)
    membership_type = Column(SQLEnum(MembershipType), default=MembershipType.INDIVIDUAL, nullable=False)
    phone_number = Column(String(30), nullable=True)
    organization_name = Column(String(255), nullable=True)

    # Assigned together with is_approved, never edited afterwards
    membership_number = Column(String(20), unique=True, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, nullable=True)

    # Profile fields
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    nationality = Column(String(100), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    occupation = Column(String(255), nullable=True)
    institution = Column(String(255), nullable=True)
    highest_qualification = Column(String(255), nullable=True)
    profile_completed = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_portal_access(self) -> bool:
        """Administrators are implicitly approved"""
        return bool(self.is_admin or self.is_approved)

    def to_snapshot(self) -> Dict[str, Any]:
        """Column values as JSON-safe primitives, for the deletion archive"""
        snapshot: Dict[str, Any] = {}
        for column in inspect(type(self)).columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, enum.Enum):
                value = value.value
            snapshot[column.key] = value
        return snapshot

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> "Account":
        """Rebuild an account from ``to_snapshot`` output, ignoring unknown keys"""
        values: Dict[str, Any] = {}
        for column in inspect(cls).columns:
            if column.key not in snapshot:
                continue
            value = snapshot[column.key]
            if value is not None:
                if isinstance(column.type, DateTime):
                    value = datetime.fromisoformat(value)
                elif isinstance(column.type, Date):
                    value = date.fromisoformat(value)
                elif column.key == "membership_type":
                    value = MembershipType(value)
            values[column.key] = value
        return cls(**values)

    def __repr__(self):
        return f"<Account {self.email}>"


class DeletedAccount(Base):
    """Snapshot of an account taken right before an administrator deleted it"""
    __tablename__ = "deleted_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    deleted_by = Column(Integer, nullable=True)
    original_data = Column(JSON, nullable=False)
    deleted_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<DeletedAccount {self.account_id} ({self.email})>"
