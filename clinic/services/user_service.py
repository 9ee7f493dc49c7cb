from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..models.user import User, EmploymentStatus
from ..core.exceptions import NotFound, ValidationError
from ..core.permissions import Role, assign_role

logger = logging.getLogger(__name__)


class UserService:
    """Staff account administration. Accounts are never deleted, only disabled."""

    def __init__(self, db: Session):
        self.db = db

    def list_users(
        self,
        skip: int = 0,
        limit: int = 10,
        role: Optional[Role] = None,
        employment_status: Optional[EmploymentStatus] = None
    ) -> List[User]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)
        if employment_status:
            query = query.filter(User.employment_status == employment_status)
        return query.order_by(User.id).offset(skip).limit(limit).all()

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def change_role(self, user_id: int, role: Role, actor: User) -> User:
        user = self.get_user(user_id)
        if user.id == actor.id:
            raise ValidationError.for_field("role", "You cannot change your own role")

        assign_role(user, role)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User {user.id} role set to {user.role.value} by {actor.id}")
        return user

    def set_employment_status(self, user_id: int, status: EmploymentStatus, actor: User) -> User:
        user = self.get_user(user_id)
        if user.id == actor.id:
            raise ValidationError.for_field("employment_status", "You cannot change your own status")

        user.employment_status = status
        if status != EmploymentStatus.ACTIVE:
            user.is_online = False
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User {user.id} status set to {status.value} by {actor.id}")
        return user

    def unlock(self, user_id: int) -> User:
        user = self.get_user(user_id)
        user.failed_login_attempts = 0
        user.locked_until = None
        self.db.commit()
        self.db.refresh(user)
        return user
