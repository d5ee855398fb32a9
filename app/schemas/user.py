from pydantic import BaseModel, EmailStr, field_validator, ConfigDict, model_validator
from typing import Optional, Any
from datetime import datetime

from app.core.constants import RoleEnum


def _validate_password(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Password cannot be empty or contain only whitespace.")
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters long.")
    return v


class UserBase(BaseModel):
    """Base user schema with common fields."""
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None

    @field_validator("first_name", "last_name")
    def not_empty(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

class UserCreate(UserBase):
    """Self-registration. Staff roles need the matching secret code."""
    password: str
    role: RoleEnum = RoleEnum.STUDENT
    secret_code: Optional[str] = None

    @field_validator("password")
    def validate_password(cls, v):
        return _validate_password(v)

class StaffCreate(UserBase):
    """Schema used by admins to create accounts directly."""
    password: str
    role: RoleEnum

    @field_validator("password")
    def validate_password(cls, v):
        return _validate_password(v)

class UserUpdate(BaseModel):
    """Schema for updating a user's profile."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("first_name", "last_name")
    def not_empty(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v

    @model_validator(mode='before')
    @classmethod
    def at_least_one_value(cls, data: Any):
        if isinstance(data, dict) and not any(data.values()):
            raise ValueError("At least one field must be provided for update")
        return data

class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    def validate_password(cls, v):
        return _validate_password(v)

class UserRoleUpdate(BaseModel):
    role: RoleEnum

    model_config = ConfigDict(json_schema_extra={"example": {"role": "proctor"}})

class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr

    model_config = ConfigDict(from_attributes=True)

class User(UserBase):
    """Main user schema for reading user data."""
    id: int
    role: RoleEnum
    is_active: bool
    is_verified: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
