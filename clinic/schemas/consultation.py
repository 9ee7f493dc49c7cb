from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.consultation import (
    ConsultationMode, ConsultationStatus, IntakeUrgency, RequestSource, VisitType
)


class ConsultationRequestCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    age: int = Field(..., ge=1, le=120)
    gender: str = Field(..., pattern=r"^(male|female|other)$")
    consultation_type: ConsultationMode
    preferred_date: str = Field(..., min_length=1, max_length=50)
    preferred_time: str = Field(..., min_length=1, max_length=50)
    health_concerns: str = Field(..., min_length=1, max_length=1000)
    symptoms: Optional[str] = Field(None, max_length=500)
    current_medications: Optional[str] = Field(None, max_length=500)
    previous_visit: bool = False
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    emergency_contact_relationship: Optional[str] = Field(None, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("first_name", "last_name", "phone", "health_concerns")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class AppointmentRequestCreate(BaseModel):
    """Booking request from the public website; reviewed by staff before an appointment exists."""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    preferred_date: str = Field(..., min_length=1, max_length=50)
    preferred_time: str = Field(..., min_length=1, max_length=50)
    consultation_type: ConsultationMode
    health_concerns: str = Field(..., min_length=1, max_length=1000)
    previous_visit: bool = False
    current_medications: Optional[str] = Field(None, max_length=500)
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ConsultationIntakeCreate(BaseModel):
    """Detailed consultation request from the website contact page."""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    age: int = Field(..., ge=1, le=120)
    gender: str = Field(..., min_length=1, max_length=20)
    primary_concern: str = Field(..., min_length=1, max_length=1000)
    consultation_type: VisitType
    preferred_date: str = Field(..., min_length=1, max_length=50)
    preferred_time: str = Field(..., min_length=1, max_length=50)
    urgency: IntakeUrgency
    symptoms: Optional[str] = Field(None, max_length=500)
    medications: Optional[str] = Field(None, max_length=500)
    previous_treatments: Optional[str] = Field(None, max_length=1000)
    allergies: Optional[str] = Field(None, max_length=500)
    lifestyle: Optional[str] = Field(None, max_length=1000)
    diet: Optional[str] = Field(None, max_length=1000)
    exercise: Optional[str] = Field(None, max_length=1000)
    sleep: Optional[str] = Field(None, max_length=1000)
    stress: Optional[str] = Field(None, max_length=1000)
    additional_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("first_name", "last_name", "gender", "primary_concern")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ConsultationStatusUpdate(BaseModel):
    status: ConsultationStatus
    notes: Optional[str] = Field(None, max_length=1000)


class ConsultationSubmitted(BaseModel):
    id: int
    status: ConsultationStatus
    message: str


class ConsultationRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    age: Optional[int] = None
    gender: Optional[str] = None
    consultation_type: ConsultationMode
    preferred_date: str
    preferred_time: str
    health_concerns: str
    symptoms: Optional[str] = None
    current_medications: Optional[str] = None
    previous_visit: bool
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    urgency: Optional[IntakeUrgency] = None
    intake_details: Optional[Dict[str, str]] = None
    source: RequestSource
    status: ConsultationStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
