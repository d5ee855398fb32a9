from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models.user import User as UserModel
from app.schemas.response import APIResponse
from app.schemas.user import PasswordChange, User, UserUpdate
from app.services.user import user_service
from app.utils import deps

router = APIRouter()

@router.get("/me", response_model=APIResponse[User])
async def read_users_me(current_user: UserModel = Depends(deps.get_current_user)):
    return APIResponse(message="User profile fetched successfully", data=User.model_validate(current_user))

@router.put("/me", response_model=APIResponse[User])
async def update_user_me(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_in: UserUpdate,
    current_user: UserModel = Depends(deps.get_current_user)
):
    current_user = db.merge(current_user)
    updated_user = user_service.update_profile(db, user_in=user_in, current_user=current_user)
    return APIResponse(message="User profile updated successfully", data=User.model_validate(updated_user))

@router.post("/me/password", response_model=APIResponse[None])
async def change_password(
    *,
    db: Session = Depends(deps.get_transactional_db),
    password_in: PasswordChange,
    current_user: UserModel = Depends(deps.get_current_user)
):
    current_user = db.merge(current_user)
    user_service.change_password(
        db,
        user=current_user,
        current_password=password_in.current_password,
        new_password=password_in.new_password
    )
    return APIResponse(message="Password changed successfully")
