from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base
from ..core.permissions import Role, PermissionSet


class EmploymentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(20), nullable=False)
    role = Column(SQLEnum(Role, values_callable=_values), nullable=False, index=True)

    # Permission flags, written only through core.permissions.assign_role
    can_view_patients = Column(Boolean, nullable=False, default=False)
    can_edit_patients = Column(Boolean, nullable=False, default=False)
    can_create_appointments = Column(Boolean, nullable=False, default=False)
    can_modify_appointments = Column(Boolean, nullable=False, default=False)
    can_view_reports = Column(Boolean, nullable=False, default=False)
    can_manage_users = Column(Boolean, nullable=False, default=False)
    can_access_finances = Column(Boolean, nullable=False, default=False)

    # Employment
    employment_status = Column(
        SQLEnum(EmploymentStatus, values_callable=_values),
        nullable=False,
        default=EmploymentStatus.ACTIVE,
        index=True,
    )
    joining_date = Column(DateTime, nullable=True)

    # Security fields
    last_login = Column(DateTime, nullable=True)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)

    # Activity
    is_online = Column(Boolean, nullable=False, default=False)
    last_activity = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def permissions(self) -> PermissionSet:
        return PermissionSet(**{
            name: bool(getattr(self, name)) for name in PermissionSet.__dataclass_fields__
        })

    @property
    def is_active(self) -> bool:
        return self.employment_status == EmploymentStatus.ACTIVE

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
