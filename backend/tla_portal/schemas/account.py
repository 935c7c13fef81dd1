from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Any, Dict, Optional
from datetime import date, datetime

from tla_portal.models.account import MembershipType


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    is_admin: bool
    is_approved: bool
    membership_number: Optional[str] = None
    membership_type: MembershipType
    nida: Optional[str] = None
    phone_number: Optional[str] = None
    organization_name: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime


class ProfileResponse(AccountResponse):
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    occupation: Optional[str] = None
    institution: Optional[str] = None
    highest_qualification: Optional[str] = None
    profile_completed: bool = False


class ProfileUpdate(BaseModel):
    """Fields a member may edit. Anything else in the body is rejected."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=3, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=20)
    nationality: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    occupation: Optional[str] = Field(None, max_length=255)
    institution: Optional[str] = Field(None, max_length=255)
    highest_qualification: Optional[str] = Field(None, max_length=255)


class ProfileComplete(ProfileUpdate):
    """Profile completion requires the core personal details"""

    date_of_birth: date
    gender: str = Field(..., min_length=1, max_length=20)
    nationality: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)


class MembershipDetails(BaseModel):
    """Registration details shared by self-registration and admin creation"""

    name: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    nida: Optional[str] = Field(None, max_length=50, description="National identification number")
    membership_type: MembershipType = MembershipType.INDIVIDUAL
    phone_number: Optional[str] = Field(None, max_length=30)
    organization_name: Optional[str] = Field(None, max_length=255)

    @model_validator(mode='after')
    def validate_organization_fields(self):
        """Organization memberships must name the organization"""
        if self.membership_type == MembershipType.ORGANIZATION:
            if not self.organization_name or not self.organization_name.strip():
                raise ValueError("Organization name is required for organization memberships")
        else:
            self.organization_name = None
        if self.nida is not None and not self.nida.strip():
            self.nida = None
        return self


class AdminAccountCreate(MembershipDetails):
    is_admin: bool = False


class ApprovalResponse(BaseModel):
    message: str
    user: AccountResponse


class DeletedAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    name: str
    email: str
    deleted_by: Optional[int] = None
    deleted_at: datetime
    original_data: Dict[str, Any]

    @field_validator("original_data")
    @classmethod
    def drop_password_hash(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """The stored snapshot keeps the hash for restore; clients never see it"""
        return {key: value for key, value in v.items() if key != "hashed_password"}


class RestoreRequest(BaseModel):
    account_id: int = Field(..., gt=0)
