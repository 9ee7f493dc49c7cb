from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.patient import Constitution, Dosha, Gender, PatientStatus, PrimaryDosha
from .auth import PHONE_PATTERN


class MedicalHistory(BaseModel):
    allergies: List[str] = []
    current_medications: List[str] = []
    previous_treatments: List[str] = []
    chronic_conditions: List[str] = []
    surgeries: List[str] = []


class AyurvedicAssessment(BaseModel):
    primary_dosha: Optional[PrimaryDosha] = None
    secondary_dosha: Optional[Dosha] = None
    constitution: Optional[Constitution] = None
    current_imbalance: List[str] = []
    pulse_reading: Optional[str] = Field(None, max_length=1000)
    tongue_examination: Optional[str] = Field(None, max_length=1000)


class PatientBase(BaseModel):
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    primary_concern: Optional[str] = None
    symptoms: List[str] = []
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_relationship: Optional[str] = Field(None, max_length=50)
    emergency_contact_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    consent_given: bool = False
    data_processing_consent: bool = False
    marketing_consent: bool = False


class PatientCreate(PatientBase, MedicalHistory):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    date_of_birth: date
    gender: Gender

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("date_of_birth")
    @classmethod
    def not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class PatientUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    primary_concern: Optional[str] = None
    symptoms: Optional[List[str]] = None
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_relationship: Optional[str] = Field(None, max_length=50)
    emergency_contact_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    status: Optional[PatientStatus] = None
    marketing_consent: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class PatientResponse(PatientBase, MedicalHistory):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_code: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    date_of_birth: date
    gender: Gender
    status: PatientStatus
    last_visit: Optional[datetime] = None
    total_visits: int = 0
    ayurvedic_assessment: Optional[AyurvedicAssessment] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
