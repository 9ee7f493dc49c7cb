from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from pydantic import BaseModel

from .config import settings, SecurityPolicy


def make_password_context(rounds: int) -> CryptContext:
    """bcrypt context; ``rounds`` is the log2 cost factor."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


# Password hashing
pwd_context = make_password_context(settings.BCRYPT_ROUNDS)

# JWT Security. Missing credentials are reported as 401 by the dependencies,
# not as the 403 HTTPBearer would raise on its own.
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    exp: Optional[int] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# Password utilities
def verify_password(
    plain_password: str,
    hashed_password: str,
    context: Optional[CryptContext] = None
) -> bool:
    """Verify a plain password against its hash."""
    return (context or pwd_context).verify(plain_password, hashed_password)


def get_password_hash(password: str, context: Optional[CryptContext] = None) -> str:
    """Generate password hash."""
    return (context or pwd_context).hash(password)


# JWT utilities
def create_access_token(
    data: dict,
    policy: SecurityPolicy,
    now: Optional[datetime] = None
) -> Token:
    """Create a signed JWT carrying ``data`` that expires after the policy lifetime."""
    to_encode = data.copy()
    lifetime = timedelta(days=policy.token_expire_days)
    expire = (now or datetime.utcnow()) + lifetime

    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(
        to_encode,
        policy.secret_key,
        algorithm=policy.algorithm
    )
    return Token(
        access_token=encoded_jwt,
        expires_in=int(lifetime.total_seconds())
    )


def decode_token(token: str, policy: SecurityPolicy) -> Optional[TokenPayload]:
    """Verify signature and expiry; returns None for any invalid token."""
    try:
        payload = jwt.decode(
            token,
            policy.secret_key,
            algorithms=[policy.algorithm]
        )
        return TokenPayload(**payload)

    except JWTError:
        return None
