from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.constants import RoleEnum
from app.models.user import User as UserModel
from app.schemas.response import APIResponse, PaginatedResponse
from app.schemas.user import StaffCreate, User, UserRoleUpdate
from app.services.user import user_service
from app.utils import deps

router = APIRouter()

class UserStatusUpdate(BaseModel):
    is_active: bool

@router.get("/users", response_model=APIResponse[PaginatedResponse[User]])
async def list_users(
    db: Session = Depends(deps.get_db),
    role: Optional[RoleEnum] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: UserModel = Depends(deps.require_admin)
):
    users = user_service.get_users(db, role=role, page=page, size=size)
    return APIResponse(message="Users retrieved successfully", data=users)

@router.post("/users", response_model=APIResponse[User], status_code=status.HTTP_201_CREATED)
async def create_user(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_in: StaffCreate,
    current_user: UserModel = Depends(deps.require_admin)
):
    user = user_service.create_user(db, user_in=user_in, current_user=current_user)
    return APIResponse(message="User created successfully", data=User.model_validate(user))

@router.put("/users/{user_id}/role", response_model=APIResponse[User])
async def change_user_role(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_id: int,
    role_in: UserRoleUpdate,
    current_user: UserModel = Depends(deps.require_admin)
):
    user = user_service.change_role(db, user_id=user_id, role=role_in.role, current_user=current_user)
    return APIResponse(message="User role updated successfully", data=User.model_validate(user))

@router.put("/users/{user_id}/status", response_model=APIResponse[User])
async def change_user_status(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_id: int,
    status_in: UserStatusUpdate,
    current_user: UserModel = Depends(deps.require_admin)
):
    user = user_service.set_active(db, user_id=user_id, is_active=status_in.is_active, current_user=current_user)
    return APIResponse(message="User status updated successfully", data=User.model_validate(user))

@router.delete("/users/{user_id}", response_model=APIResponse[None])
async def delete_user(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_id: int,
    current_user: UserModel = Depends(deps.require_admin)
):
    user_service.delete_user(db, user_id=user_id, current_user=current_user)
    return APIResponse(message="User deleted successfully")
