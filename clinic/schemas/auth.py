from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..core.permissions import Role
from ..models.user import EmploymentStatus

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


class UserRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = Role.STAFF

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ChangePassword(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=72)


class PermissionsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    can_view_patients: bool
    can_edit_patients: bool
    can_create_appointments: bool
    can_modify_appointments: bool
    can_view_reports: bool
    can_manage_users: bool
    can_access_finances: bool


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: str
    role: Role
    employment_status: EmploymentStatus
    permissions: PermissionsResponse
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class RoleUpdate(BaseModel):
    role: Role


class StatusUpdate(BaseModel):
    employment_status: EmploymentStatus
