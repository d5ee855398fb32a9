import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.constants import RoleEnum
from app.core.exceptions import DomainValidationError, InvalidStateError, NotFoundError
from app.core.security import get_password_hash, verify_password
from app.crud.user import user as crud_user
from app.models.user import User
from app.schemas.response import PaginatedResponse
from app.schemas.user import StaffCreate, User as UserSchema, UserUpdate

logger = logging.getLogger(__name__)


class UserService:

    def _get_user(self, db: Session, user_id: int) -> User:
        user = crud_user.get(db, id=user_id)
        if not user:
            raise NotFoundError("User not found.")
        return user

    def update_profile(self, db: Session, *, user_in: UserUpdate, current_user: User) -> User:
        return crud_user.update(db, db_obj=current_user, obj_in=user_in)

    def change_password(self, db: Session, *, user: User, current_password: str, new_password: str) -> User:
        if not verify_password(current_password, user.hashed_password):
            raise DomainValidationError("Incorrect current password.")
        if current_password == new_password:
            raise DomainValidationError("The new password must differ from the current one.")

        updated_user = crud_user.update(db, db_obj=user, obj_in={"hashed_password": get_password_hash(new_password)})
        logger.info(f"User {user.id} changed their password")
        return updated_user

    def get_users(
        self, db: Session, *, role: Optional[RoleEnum] = None, page: int = 1, size: int = 20
    ) -> PaginatedResponse[UserSchema]:
        users, total = crud_user.paginate(crud_user.query_filtered(db, role=role), page=page, size=size)
        return PaginatedResponse[UserSchema].build([UserSchema.model_validate(u) for u in users], total, page, size)

    def create_user(self, db: Session, *, user_in: StaffCreate, current_user: User) -> User:
        if crud_user.email_taken(db, email=user_in.email):
            raise InvalidStateError("A user with this email already exists.")

        user = crud_user.create(db, obj_in={
            **user_in.model_dump(exclude={"password"}),
            "email": user_in.email.lower(),
            "hashed_password": get_password_hash(user_in.password),
            "is_active": True,
            "is_verified": True,
        })
        logger.info(f"User {user.id} ({user.role.value}) created by admin {current_user.id}")
        return user

    def change_role(self, db: Session, *, user_id: int, role: RoleEnum, current_user: User) -> User:
        user = self._get_user(db, user_id)
        if user.id == current_user.id and role != RoleEnum.ADMIN:
            raise InvalidStateError("You cannot remove your own admin role.")
        user = crud_user.update(db, db_obj=user, obj_in={"role": role})
        logger.info(f"User {user_id} role changed to {role.value} by {current_user.id}")
        return user

    def set_active(self, db: Session, *, user_id: int, is_active: bool, current_user: User) -> User:
        user = self._get_user(db, user_id)
        if user.id == current_user.id and not is_active:
            raise InvalidStateError("You cannot deactivate your own account.")
        return crud_user.update(db, db_obj=user, obj_in={"is_active": is_active})

    def delete_user(self, db: Session, *, user_id: int, current_user: User) -> None:
        """Soft delete: the account can no longer sign in, its attempts stay on record."""
        user = self._get_user(db, user_id)
        if user.id == current_user.id:
            raise InvalidStateError("You cannot delete your own account.")
        crud_user.update(db, db_obj=user, obj_in={"is_active": False, "deleted_at": datetime.utcnow()})
        logger.info(f"User {user_id} deleted by admin {current_user.id}")


user_service = UserService()
