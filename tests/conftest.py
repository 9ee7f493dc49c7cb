import os

# Set before the application is imported so settings pick them up
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("SMTP_HOST", None)

from datetime import date, timedelta

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic.main import app
from clinic.core.config import settings
from clinic.core.database import Base, get_db, get_redis
from clinic.core.permissions import Role, assign_role
from clinic.core.security import get_password_hash, make_password_context
from clinic.models.patient import Gender, Patient
from clinic.models.user import EmploymentStatus, User
from clinic.services.auth_service import AuthService
from clinic.services.notification_service import get_notifier

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Secret123"
test_pwd_context = make_password_context(4)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class FakeRedis:
    """In-memory stand-in for the two commands the rate limiter uses."""

    def __init__(self):
        self.counters = {}
        self.expiries = {}

    def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True


class BrokenRedis:
    def incr(self, key):
        raise redis.ConnectionError("Connection refused")

    def expire(self, key, seconds):
        raise redis.ConnectionError("Connection refused")


class RecordingNotifier:
    """Captures notifications instead of sending email."""

    def __init__(self):
        self.sent = []

    def _record(self, name, args):
        self.sent.append((name, args))
        return True

    def appointment_booked(self, *args):
        return self._record("appointment_booked", args)

    def appointment_cancelled(self, *args):
        return self._record("appointment_cancelled", args)

    def appointment_rescheduled(self, *args):
        return self._record("appointment_rescheduled", args)

    def contact_received(self, *args):
        return self._record("contact_received", args)

    def request_received(self, *args):
        return self._record("request_received", args)

    def consultation_request_received(self, *args):
        return self._record("consultation_request_received", args)

    def kinds(self):
        return [name for name, _ in self.sent]


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(test_db, fake_redis, notifier):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db, role=Role.STAFF, email=None, password=PASSWORD, status=EmploymentStatus.ACTIVE):
    user = User(
        email=email or f"{role.value}@clinic.example",
        password_hash=get_password_hash(password, test_pwd_context),
        first_name=role.value.title(),
        last_name="User",
        phone="+15550000001",
        employment_status=status,
        failed_login_attempts=0,
    )
    assign_role(user, role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_patient(db, email="patient@example.com", phone="+15551234567", **overrides):
    fields = dict(
        first_name="Asha",
        last_name="Verma",
        email=email,
        phone=phone,
        date_of_birth=date(1990, 5, 17),
        gender=Gender.FEMALE,
    )
    fields.update(overrides)
    patient = Patient(**fields)
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def auth_headers(db, user):
    token = AuthService(db, settings.security_policy()).issue_token(user)
    return {"Authorization": f"Bearer {token.access_token}"}


def future_day(days=7):
    return date.today() + timedelta(days=days)


@pytest.fixture
def admin(db):
    return make_user(db, Role.ADMIN)


@pytest.fixture
def admin_headers(db, admin):
    return auth_headers(db, admin)


@pytest.fixture
def staff(db):
    return make_user(db, Role.STAFF)


@pytest.fixture
def staff_headers(db, staff):
    return auth_headers(db, staff)


@pytest.fixture
def patient(db):
    return make_patient(db)
