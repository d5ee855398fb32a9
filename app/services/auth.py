import logging
import secrets
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import RoleEnum, TokenTypeEnum
from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from app.core.security import create_access_token, get_password_hash, verify_password
from app.crud.one_time_token import one_time_token as crud_one_time_token
from app.crud.user import user as crud_user
from app.models.user import User
from app.schemas.token import LoginResponse, Token
from app.schemas.user import User as UserSchema, UserCreate
from app.services.notification import notification_service

logger = logging.getLogger(__name__)


class AuthService:

    def _issue_token(self, user: User) -> Token:
        access_token = create_access_token(data={"user_id": user.id, "role": user.role.value})
        return Token(access_token=access_token, token_type="bearer")

    def _check_secret_code(self, role: RoleEnum, secret_code: str | None):
        expected = {
            RoleEnum.ADMIN: settings.ADMIN_SECRET_CODE,
            RoleEnum.PROCTOR: settings.PROCTOR_SECRET_CODE,
        }.get(role)
        if role == RoleEnum.STUDENT:
            return
        if not expected or not secret_code or not secrets.compare_digest(secret_code, expected):
            raise ForbiddenError(f"A valid secret code is required to register as {role.value}.")

    def _create_one_time_token(self, db: Session, user: User, token_type: TokenTypeEnum, expire_minutes: int) -> str:
        """Replace any outstanding token of this type with a fresh one."""
        crud_one_time_token.delete_by_user_id_and_type(db, user_id=user.id, token_type=token_type, commit=False)
        token_value = secrets.token_urlsafe(32)
        crud_one_time_token.create(db, obj_in={
            "user_id": user.id,
            "token": token_value,
            "token_type": token_type,
            "expires_at": datetime.utcnow() + timedelta(minutes=expire_minutes),
        })
        return token_value

    async def _send_verification(self, db: Session, user: User) -> bool:
        token_value = self._create_one_time_token(
            db, user, TokenTypeEnum.ACCOUNT_VERIFICATION, settings.VERIFICATION_TOKEN_EXPIRE_MINUTES
        )
        return await notification_service.send_verification(user.email, {
            "user_name": user.first_name,
            "verification_link": f"{settings.FRONTEND_URL}/verify-email/{token_value}",
            "expires_in_hours": settings.VERIFICATION_TOKEN_EXPIRE_MINUTES // 60,
        })

    async def register(self, db: Session, *, user_in: UserCreate) -> LoginResponse:
        self._check_secret_code(user_in.role, user_in.secret_code)
        if crud_user.email_taken(db, email=user_in.email):
            raise InvalidStateError("A user with this email already exists.")

        user = crud_user.create(db, obj_in={
            "first_name": user_in.first_name,
            "last_name": user_in.last_name,
            "email": user_in.email.lower(),
            "phone": user_in.phone,
            "role": user_in.role,
            "hashed_password": get_password_hash(user_in.password),
            "is_active": True,
            "is_verified": not settings.EMAIL_VERIFICATION_REQUIRED,
        })
        logger.info(f"User {user.id} registered as {user.role.value}")

        if user.is_verified:
            return LoginResponse(token=self._issue_token(user), user=UserSchema.model_validate(user))

        await self._send_verification(db, user)
        return LoginResponse(user=UserSchema.model_validate(user))

    def login(self, db: Session, *, email: str, password: str) -> LoginResponse:
        user = crud_user.get_by_email(db, email=email)
        if not user or not verify_password(password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password",
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User account is inactive",
            )

        if settings.EMAIL_VERIFICATION_REQUIRED and not user.is_verified:
            raise ForbiddenError(
                "Please verify your email before logging in.",
                details={"needs_verification": True, "email": user.email},
            )

        user = crud_user.update(db, db_obj=user, obj_in={"last_login": datetime.utcnow()})
        logger.info(f"User {user.id} logged in")
        return LoginResponse(token=self._issue_token(user), user=UserSchema.model_validate(user))

    def verify_email(self, db: Session, *, token: str) -> User:
        record = crud_one_time_token.get_by_token_value(db, token=token, token_type=TokenTypeEnum.ACCOUNT_VERIFICATION)
        if not record or record.user is None or record.user.deleted_at is not None:
            raise InvalidStateError("Invalid verification token. The link may have already been used or is incorrect.")
        if record.expires_at <= datetime.utcnow():
            raise InvalidStateError("Verification token has expired. Please request a new verification email.")

        user = record.user
        if user.is_verified:
            raise InvalidStateError("Email is already verified.")

        crud_one_time_token.delete_by_user_id_and_type(
            db, user_id=user.id, token_type=TokenTypeEnum.ACCOUNT_VERIFICATION, commit=False
        )
        user = crud_user.update(db, db_obj=user, obj_in={"is_verified": True})
        logger.info(f"User {user.id} verified their email")
        return user

    async def resend_verification(self, db: Session, *, email: str) -> None:
        user = crud_user.get_by_email(db, email=email)
        if not user:
            raise NotFoundError("User not found.")
        if user.is_verified:
            raise InvalidStateError("Email is already verified.")

        await self._send_verification(db, user)
        logger.info(f"Verification email re-sent to user {user.id}")

    async def request_password_reset(self, db: Session, *, email: str) -> None:
        """Mail a reset link. Unknown addresses are ignored without an error."""
        user = crud_user.get_by_email(db, email=email)
        if not user or not user.is_active:
            logger.info("Password reset requested for an unknown or inactive account")
            return

        token_value = self._create_one_time_token(
            db, user, TokenTypeEnum.PASSWORD_RESET, settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
        )
        await notification_service.send_password_reset(user.email, {
            "user_name": user.first_name,
            "reset_link": f"{settings.FRONTEND_URL}/reset-password/{token_value}",
            "expires_in_minutes": settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES,
        })
        logger.info(f"Password reset requested for user {user.id}")

    def reset_password(self, db: Session, *, token: str, new_password: str) -> None:
        record = crud_one_time_token.get_valid(db, token=token, token_type=TokenTypeEnum.PASSWORD_RESET)
        if not record or record.user is None or record.user.deleted_at is not None:
            raise InvalidStateError("Invalid or expired reset token.")

        user = record.user
        crud_one_time_token.delete_by_user_id_and_type(
            db, user_id=user.id, token_type=TokenTypeEnum.PASSWORD_RESET, commit=False
        )
        crud_user.update(db, db_obj=user, obj_in={"hashed_password": get_password_hash(new_password)})
        logger.info(f"User {user.id} reset their password")


auth_service = AuthService()
