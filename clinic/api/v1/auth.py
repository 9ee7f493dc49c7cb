from fastapi import APIRouter, Depends, status
from typing import Optional

from ...api.deps import (
    get_auth_service, get_current_user, get_current_user_optional, rate_limit_check
)
from ...services.auth_service import AuthService
from ...schemas.auth import (
    ChangePassword, TokenResponse, UserLogin, UserRegister, UserResponse
)
from ...schemas.common import Message
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    current_user: Optional[User] = Depends(get_current_user_optional),
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_check)
):
    """Register a new user.

    Open only while no account exists; afterwards an administrator token is required.
    """
    user = auth_service.register_user(user_data, actor=current_user)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
def login(
    login_data: UserLogin,
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return an access token."""
    return auth_service.login(login_data)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return UserResponse.model_validate(current_user)


@router.post("/logout", response_model=Message)
def logout(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Mark the user offline. Tokens are stateless and expire on their own."""
    auth_service.logout(current_user)
    return Message(message="Logged out successfully")


@router.post("/change-password", response_model=Message)
def change_password(
    password_data: ChangePassword,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Change user password."""
    auth_service.change_password(current_user, password_data)
    return Message(message="Password changed successfully")


@router.post("/verify-token")
def verify_token_endpoint(
    current_user: User = Depends(get_current_user)
):
    """Verify if the bearer token is still valid."""
    return {
        "valid": True,
        "user_id": current_user.id,
        "email": current_user.email,
        "role": current_user.role.value
    }
