from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.permissions import Capability, Role
from ...api.deps import require_capability
from ...services.user_service import UserService
from ...schemas.auth import RoleUpdate, StatusUpdate, UserResponse
from ...models.user import EmploymentStatus, User

router = APIRouter(prefix="/users", tags=["Users"])

manage_users = require_capability(Capability.MANAGE_USERS)


@router.get("", response_model=List[UserResponse])
def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[Role] = None,
    employment_status: Optional[EmploymentStatus] = None,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db)
):
    """List staff accounts."""
    users = UserService(db).list_users(skip, limit, role, employment_status)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db)
):
    return UserResponse.model_validate(UserService(db).get_user(user_id))


@router.patch("/{user_id}/role", response_model=UserResponse)
def change_user_role(
    user_id: int,
    role_data: RoleUpdate,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db)
):
    """Change a user's role; the permission flags follow the new role."""
    user = UserService(db).change_role(user_id, role_data.role, current_user)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/status", response_model=UserResponse)
def change_user_status(
    user_id: int,
    status_data: StatusUpdate,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db)
):
    user = UserService(db).set_employment_status(user_id, status_data.employment_status, current_user)
    return UserResponse.model_validate(user)


@router.post("/{user_id}/unlock", response_model=UserResponse)
def unlock_user(
    user_id: int,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db)
):
    """Clear a login lockout."""
    return UserResponse.model_validate(UserService(db).unlock(user_id))
