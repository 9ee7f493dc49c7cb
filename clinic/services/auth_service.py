from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Callable, Optional
import logging

from ..models.lock import NamedLock
from ..models.user import User, EmploymentStatus
from ..core.config import SecurityPolicy
from ..core.database import run_in_transaction
from ..core.exceptions import (
    AccountInactive, AccountLocked, AuthenticationError, DuplicateEntity,
    InvalidCredentials, Unauthorized, ValidationError
)
from ..core.permissions import Capability, assign_role, ensure_authorized
from ..core.security import (
    Token, create_access_token, decode_token, get_password_hash,
    make_password_context, verify_password
)
from ..schemas.auth import ChangePassword, TokenResponse, UserLogin, UserRegister, UserResponse

logger = logging.getLogger(__name__)

BOOTSTRAP_LOCK = "user-bootstrap"


class AuthService:
    """Registration, login with lockout, and bearer token handling."""

    def __init__(
        self,
        db: Session,
        policy: SecurityPolicy,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.db = db
        self.policy = policy
        self.clock = clock
        self.pwd_context = make_password_context(policy.bcrypt_rounds)

    def register_user(self, user_data: UserRegister, actor: Optional[User] = None) -> User:
        """Register a new user.

        The very first account may be created anonymously; after that only a
        user allowed to manage users can add accounts. Anonymous attempts hold
        the bootstrap lock while checking for existing accounts, so only one
        of several racing requests can create the first account.
        """
        password_hash = get_password_hash(user_data.password, self.pwd_context)

        def create(db: Session) -> User:
            if actor is None:
                self._lock_bootstrap(db)
                if db.query(User.id).first() is not None:
                    raise AuthenticationError("Not authorized to access this route")
            else:
                ensure_authorized(actor, Capability.MANAGE_USERS)

            if db.query(User.id).filter(User.email == user_data.email).first() is not None:
                raise DuplicateEntity("User with this email already exists")

            new_user = User(
                email=user_data.email,
                password_hash=password_hash,
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                phone=user_data.phone,
                employment_status=EmploymentStatus.ACTIVE,
                joining_date=self.clock(),
                failed_login_attempts=0,
            )
            assign_role(new_user, user_data.role)
            db.add(new_user)
            db.flush()
            return new_user

        try:
            new_user = run_in_transaction(self.db, create)
        except IntegrityError:
            raise DuplicateEntity("User with this email already exists")
        self.db.refresh(new_user)

        logger.info(f"Registered {new_user.role.value} account {new_user.email}")
        return new_user

    def authenticate(self, email: str, password: str) -> User:
        """Check credentials and return the user, applying the lockout policy."""
        user = self.db.query(User).filter(User.email == email.lower()).first()

        if not user:
            raise InvalidCredentials()

        now = self.clock()

        # Check account lockout
        if user.locked_until and user.locked_until > now:
            raise AccountLocked()

        if not verify_password(password, user.password_hash, self.pwd_context):
            run_in_transaction(self.db, lambda db: self._record_failed_login(db, user.id, now))
            logger.info(f"Failed login for {email}")
            raise InvalidCredentials()

        # Only reported once the password has been proven
        if user.employment_status != EmploymentStatus.ACTIVE:
            raise AccountInactive()

        # Reset failed login attempts
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = now
        user.is_online = True
        user.last_activity = now
        self.db.commit()
        self.db.refresh(user)
        return user

    def login(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return an access token."""
        user = self.authenticate(login_data.email, login_data.password)
        token = self.issue_token(user)
        return TokenResponse(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in,
            user=UserResponse.model_validate(user)
        )

    def issue_token(self, user: User) -> Token:
        return create_access_token(
            {"sub": str(user.id), "role": user.role.value, "email": user.email},
            self.policy,
            now=self.clock()
        )

    def verify_token(self, token: str) -> User:
        """Resolve a bearer token to a currently active user."""
        token_payload = decode_token(token, self.policy)
        if not token_payload or not token_payload.sub:
            raise Unauthorized("Invalid or expired token")

        try:
            user_id = int(token_payload.sub)
        except ValueError:
            raise Unauthorized("Invalid token payload")

        user = self.db.get(User, user_id)
        if not user:
            raise Unauthorized("Not authorized, user not found")

        if user.employment_status != EmploymentStatus.ACTIVE:
            raise Unauthorized("Account is not active")

        return user

    def logout(self, user: User) -> None:
        user.is_online = False
        user.last_activity = self.clock()
        self.db.commit()

    def change_password(self, user: User, password_data: ChangePassword) -> None:
        if not verify_password(password_data.current_password, user.password_hash, self.pwd_context):
            raise ValidationError.for_field("current_password", "Current password is incorrect")

        user.password_hash = get_password_hash(password_data.new_password, self.pwd_context)
        self.db.commit()

    def _record_failed_login(self, db: Session, user_id: int, now: datetime) -> None:
        """Count a failed attempt with SQL-side arithmetic so concurrent failures all count.

        A lock that has already expired restarts the count at 1. Otherwise the
        counter is incremented and, once it reaches the limit, the account is
        locked unless a lock is already in place.
        """
        restarted = db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.locked_until.isnot(None),
                User.locked_until <= now,
            )
            .values(failed_login_attempts=1, locked_until=None)
            .execution_options(synchronize_session=False)
        ).rowcount
        if restarted:
            return

        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(failed_login_attempts=User.failed_login_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        locked = db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.failed_login_attempts >= self.policy.login_attempts_limit,
                User.locked_until.is_(None),
            )
            .values(locked_until=now + timedelta(minutes=self.policy.login_lock_minutes))
            .execution_options(synchronize_session=False)
        ).rowcount
        if locked:
            logger.warning(f"Account {user_id} locked for {self.policy.login_lock_minutes} minutes")

    def _lock_bootstrap(self, db: Session) -> None:
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            db.execute(postgresql_insert(NamedLock).values(name=BOOTSTRAP_LOCK, version=0).on_conflict_do_nothing())
        elif dialect == "sqlite":
            db.execute(sqlite_insert(NamedLock).values(name=BOOTSTRAP_LOCK, version=0).on_conflict_do_nothing())
        elif db.get(NamedLock, BOOTSTRAP_LOCK) is None:
            db.add(NamedLock(name=BOOTSTRAP_LOCK, version=0))
            db.flush()
        db.execute(
            update(NamedLock)
            .where(NamedLock.name == BOOTSTRAP_LOCK)
            .values(version=NamedLock.version + 1)
        )
