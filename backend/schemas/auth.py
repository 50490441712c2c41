"""
Authentication and user schemas.
"""

import re
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.models.enums import UserRole


def validate_password_strength(password: str) -> str:
    """
    Validate password meets security requirements.

    Requirements:
    - Minimum 10 characters
    - At least 1 letter and 1 number
    """
    if len(password) < 10:
        raise ValueError("Password must be at least 10 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise ValueError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one number")
    return password


class UserCreate(BaseModel):
    """Schema for user registration."""

    email: EmailStr = Field(..., description="Institutional email address")
    password: str = Field(..., min_length=10)
    name: str = Field(..., min_length=1, description="Full name")
    role: UserRole = Field(default=UserRole.FACULTY)
    designation: Optional[str] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    department: Optional[str] = None
    mis_id: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    """Schema for JWT token response."""

    success: bool = True
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Token lifetime in seconds")


class TokenData(BaseModel):
    """Schema for decoded token data."""

    user_id: Optional[UUID] = None
    email: Optional[str] = None
    exp: Optional[datetime] = None


class BankDetails(BaseModel):
    beneficiary_name: str
    account_number: str
    ifsc_code: str
    branch_name: str
    bank_name: Optional[str] = None


class UserResponse(BaseModel):
    """Schema for user information response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: UserRole
    designation: Optional[str] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    department: Optional[str] = None
    mis_id: Optional[str] = None
    phone_number: Optional[str] = None
    allowed_modules: list[str] = Field(default_factory=list)
    bank_details: Optional[dict[str, Any]] = None
    profile_complete: bool = False
    created_at: datetime


class StaffProfile(BaseModel):
    """Public subset of a user record, used by staff lookups and co-PI pickers."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    designation: Optional[str] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    department: Optional[str] = None
    mis_id: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    designation: Optional[str] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    department: Optional[str] = None
    mis_id: Optional[str] = None
    phone_number: Optional[str] = None
    bank_details: Optional[BankDetails] = None


class ModulesUpdate(BaseModel):
    allowed_modules: list[str]


class RoleUpdate(BaseModel):
    role: UserRole


class UserExistsResponse(BaseModel):
    success: bool = True
    exists: bool
