"""
Accounts Application DTOs
==========================

Request and response models for the accounts API.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# ========== Type Aliases for Literals ==========
RoleStr = Literal["user", "employee", "admin"]


# ========== Request DTOs ==========

class RegisterRequest(BaseModel):
    """Sign-up form."""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: EmailStr = Field(..., description="Login email")
    phone: Optional[str] = Field(None, max_length=50, description="Contact phone")
    password: str = Field(..., description="Password (policy enforced by the service)")
    confirm_password: str = Field(..., description="Must equal password")
    role: RoleStr = Field(default="user", description="Account role")
    profile_picture: Optional[str] = Field(None, description="Already hosted picture URL")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)


class PasswordChangeRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str
    confirm_password: str


class PasswordResetRequest(BaseModel):
    """Forgot-password form."""
    email: EmailStr


class PasswordResetConfirmRequest(BaseModel):
    """Redeems the token from the emailed reset link."""
    token: str = Field(..., min_length=1)
    new_password: str
    confirm_password: str


# ========== Response DTOs ==========

class UserResponse(BaseModel):
    """Public view of an account."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    role: RoleStr
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v) -> str:
        return str(v)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Seconds until the token expires")
    user: UserResponse


class EmployeeListResponse(BaseModel):
    employees: List[UserResponse]
    total: int


class ProfileStatsResponse(BaseModel):
    """Role-specific counters shown on the profile page."""
    role: RoleStr
    stats: Dict[str, int]
