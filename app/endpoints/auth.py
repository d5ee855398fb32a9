from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.schemas.response import APIResponse
from app.schemas.token import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
)
from app.schemas.user import User, UserCreate
from app.services.auth import auth_service
from app.utils import deps

router = APIRouter()

@router.post("/register", response_model=APIResponse[LoginResponse], status_code=status.HTTP_201_CREATED)
async def register(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_in: UserCreate
):
    """Self-registration; proctor and admin accounts need their secret code."""
    login_data = await auth_service.register(db, user_in=user_in)
    if login_data.token is None:
        return APIResponse(message="Registration successful. Please check your email to verify your account.", data=login_data)
    return APIResponse(message="Registration successful", data=login_data)

@router.post("/login", response_model=APIResponse[LoginResponse])
async def login_for_access_token(
    request: LoginRequest,
    db: Session = Depends(deps.get_transactional_db)
):
    login_data = auth_service.login(db, email=request.email, password=request.password)
    return APIResponse(message="Login successful", data=login_data)

@router.get("/verify-email/{token}", response_model=APIResponse[User])
async def verify_email(
    token: str,
    db: Session = Depends(deps.get_transactional_db)
):
    user = auth_service.verify_email(db, token=token)
    return APIResponse(message="Email verified successfully. You can now log in.", data=User.model_validate(user))

@router.post("/resend-verification", response_model=APIResponse[None])
async def resend_verification(
    *,
    db: Session = Depends(deps.get_transactional_db),
    request: ResendVerificationRequest
):
    await auth_service.resend_verification(db, email=request.email)
    return APIResponse(message="Verification email sent successfully")

@router.post("/forgot-password", response_model=APIResponse[None])
async def forgot_password(
    *,
    db: Session = Depends(deps.get_transactional_db),
    request: ForgotPasswordRequest
):
    """Request a password reset link to be sent to the user's email."""
    await auth_service.request_password_reset(db, email=request.email)
    return APIResponse(message="Password reset link sent if the email exists")

@router.post("/reset-password/{token}", response_model=APIResponse[None])
async def reset_password(
    token: str,
    request: ResetPasswordRequest,
    db: Session = Depends(deps.get_transactional_db)
):
    auth_service.reset_password(db, token=token, new_password=request.password)
    return APIResponse(message="Password has been reset successfully")
