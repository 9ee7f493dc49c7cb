from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import logging

import redis

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import AuthenticationError, AuthorizationError, RateLimited, Unauthorized
from ..core.permissions import Capability, Role, ensure_authorized
from ..core.security import security
from ..models.user import User
from ..services.appointment_service import AppointmentService
from ..services.auth_service import AuthService

logger = logging.getLogger(__name__)


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db, settings.security_policy())


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    return AppointmentService(db, settings.scheduling_policy())


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """Resolve the bearer token to an active user."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authorized to access this route")
    return auth_service.verify_token(credentials.credentials)


def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[User]:
    """Get current user if a valid token is supplied, None otherwise."""
    if credentials is None:
        return None
    try:
        return auth_service.verify_token(credentials.credentials)
    except AuthenticationError:
        return None


# Capability based access control dependencies
def require_capability(capability: Capability):
    """Create a dependency that requires a capability of the user's role."""
    async def capability_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        ensure_authorized(current_user, capability)
        return current_user

    return capability_checker


def require_role(*allowed_roles: Role):
    """Create a dependency that requires one of the given roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if Role(current_user.role) not in allowed_roles:
            raise AuthorizationError(
                f"User role {Role(current_user.role).value} is not authorized to access this route"
            )
        return current_user

    return role_checker


# Rate limiting dependency
def rate_limit_check(
    request: Request,
    redis_client=Depends(get_redis)
) -> None:
    """Fixed-window request limit per client address for public write endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}"

    try:
        current_requests = redis_client.incr(key)
        if current_requests == 1:
            redis_client.expire(key, settings.RATE_LIMIT_WINDOW_MINUTES * 60)
    except redis.RedisError as e:
        logger.warning(f"Rate limiter unavailable, allowing request from {client_ip}: {e}")
        return

    if current_requests > settings.RATE_LIMIT_MAX_REQUESTS:
        raise RateLimited()
