from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..models.appointment import (
    AppointmentStatus, AppointmentType, ConsultationType, Location, Urgency
)


class AppointmentCreate(BaseModel):
    patient_id: int
    appointment_type: AppointmentType
    consultation_type: Optional[ConsultationType] = None
    appointment_date: date
    appointment_time: str = Field(..., description="24-hour HH:MM")
    duration: Optional[int] = Field(None, description="Minutes; defaults to the clinic's standard slot")
    location: Location = Location.CLINIC
    urgency: Urgency = Urgency.NORMAL
    reason_for_visit: Optional[str] = Field(None, max_length=2000)
    pre_appointment_notes: Optional[str] = Field(None, max_length=2000)


class AppointmentUpdate(BaseModel):
    appointment_type: Optional[AppointmentType] = None
    consultation_type: Optional[ConsultationType] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None
    duration: Optional[int] = None
    location: Optional[Location] = None
    urgency: Optional[Urgency] = None
    reason_for_visit: Optional[str] = Field(None, max_length=2000)
    pre_appointment_notes: Optional[str] = Field(None, max_length=2000)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class AppointmentComplete(BaseModel):
    consultation_notes: Optional[str] = None
    treatment_given: Optional[str] = None
    follow_up_recommendations: Optional[str] = None


class AppointmentReschedule(BaseModel):
    appointment_date: date
    appointment_time: str = Field(..., description="24-hour HH:MM")
    duration: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=255)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_code: str
    patient_id: int
    appointment_date: date
    appointment_time: str
    duration: int
    starts_at: datetime
    ends_at: datetime
    status: AppointmentStatus
    appointment_type: AppointmentType
    consultation_type: Optional[ConsultationType] = None
    location: Location
    urgency: Urgency
    reason_for_visit: Optional[str] = None
    pre_appointment_notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    consultation_notes: Optional[str] = None
    treatment_given: Optional[str] = None
    follow_up_recommendations: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    no_show_marked_at: Optional[datetime] = None
    original_date: Optional[date] = None
    original_time: Optional[str] = None
    reschedule_reason: Optional[str] = None
    rescheduled_by: Optional[int] = None
    rescheduled_at: Optional[datetime] = None
    rescheduled_from_id: Optional[int] = None
    rescheduled_to_id: Optional[int] = None
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RescheduleResponse(BaseModel):
    previous: AppointmentResponse
    appointment: AppointmentResponse


class BusySlot(BaseModel):
    appointment_id: int
    status: AppointmentStatus
    starts_at: datetime
    ends_at: datetime


class AvailabilityResponse(BaseModel):
    date: date
    busy: List[BusySlot]


class AppointmentStats(BaseModel):
    today_appointments: int
    week_appointments: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
