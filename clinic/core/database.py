from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Callable, Generator, TypeVar
import logging
import redis

from .config import settings
from .exceptions import DependencyFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": settings.DB_POOL_TIMEOUT}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
        "pool_pre_ping": True,
        "connect_args": {
            "connect_timeout": settings.DB_CONNECT_TIMEOUT,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        },
    }


engine = create_engine(settings.get_database_url, **_engine_options(settings.get_database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

redis_client = redis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
    socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
)


# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client


def run_in_transaction(db: Session, work: Callable[[Session], T], attempts: int = 3) -> T:
    """Run ``work`` and commit it as one unit.

    Transient database failures (deadlocks, serialization failures, dropped
    connections) roll the whole unit back and run it again, up to
    ``attempts`` times. Any other exception rolls back and propagates.
    """
    for attempt in range(1, attempts + 1):
        try:
            result = work(db)
            db.commit()
            return result
        except OperationalError as e:
            db.rollback()
            logger.warning(f"Transient database error (attempt {attempt}/{attempts}): {e.orig}")
        except Exception:
            db.rollback()
            raise
    raise DependencyFailure("Database is temporarily unavailable")


# Database initialization
def init_db():
    """Initialize database tables."""
    from .. import models  # noqa: F401  registers the mapped classes
    Base.metadata.create_all(bind=engine)
