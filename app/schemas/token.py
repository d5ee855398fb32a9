from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator
from .user import User, _validate_password

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenPayload(BaseModel):
    user_id: int | None = None
    role: str | None = None
    jti: str | None = None
    exp: int | None = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class LoginResponse(BaseModel):
    """Response for the login and register endpoints.

    Registration leaves token empty while the email is still unverified.
    """
    token: Optional[Token] = None
    user: User

class ResendVerificationRequest(BaseModel):
    email: EmailStr

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    password: str

    @field_validator("password")
    def validate_password(cls, v):
        return _validate_password(v)
