from datetime import datetime, timedelta
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import secrets
import time

from ..core.database import Base


def _values(enum_cls):
    return [member.value for member in enum_cls]


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    RESCHEDULED = "rescheduled"


# Statuses that still hold their time slot
ACTIVE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)


class AppointmentType(str, enum.Enum):
    CONSULTATION = "consultation"
    TREATMENT = "treatment"
    FOLLOW_UP = "follow-up"


class ConsultationType(str, enum.Enum):
    GENERAL_CONSULTATION = "general-consultation"
    PANCHAKARMA = "panchakarma"
    HERBAL_CONSULTATION = "herbal-consultation"
    DIET_NUTRITION = "diet-nutrition"
    STRESS_MANAGEMENT = "stress-management"
    WOMENS_HEALTH = "womens-health"
    SKIN_HAIR_TREATMENT = "skin-hair-treatment"
    CHRONIC_DISEASE = "chronic-disease"
    DETOX_PROGRAM = "detox-program"
    FOLLOW_UP = "follow-up"


class Location(str, enum.Enum):
    CLINIC = "clinic"
    ONLINE = "online"
    HOME_VISIT = "home-visit"


class Urgency(str, enum.Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"


def generate_appointment_code() -> str:
    return f"APT{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    appointment_code = Column(String(32), unique=True, nullable=False, default=generate_appointment_code)

    # Relationships
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)

    # Slot
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(String(5), nullable=False)
    duration = Column(Integer, nullable=False, default=60)

    status = Column(
        SQLEnum(AppointmentStatus, values_callable=_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
        index=True,
    )

    # Appointment details
    appointment_type = Column(SQLEnum(AppointmentType, values_callable=_values), nullable=False)
    consultation_type = Column(SQLEnum(ConsultationType, values_callable=_values), nullable=True)
    location = Column(SQLEnum(Location, values_callable=_values), nullable=False, default=Location.CLINIC)
    urgency = Column(SQLEnum(Urgency, values_callable=_values), nullable=False, default=Urgency.NORMAL)
    reason_for_visit = Column(Text, nullable=True)
    pre_appointment_notes = Column(Text, nullable=True)

    # Lifecycle
    confirmed_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    consultation_notes = Column(Text, nullable=True)
    treatment_given = Column(Text, nullable=True)
    follow_up_recommendations = Column(Text, nullable=True)
    cancellation_reason = Column(String(255), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    no_show_marked_at = Column(DateTime, nullable=True)

    # Rescheduling
    original_date = Column(Date, nullable=True)
    original_time = Column(String(5), nullable=True)
    reschedule_reason = Column(String(255), nullable=True)
    rescheduled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)
    rescheduled_from_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    rescheduled_to_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)

    # Tracking
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")

    @property
    def starts_at(self) -> datetime:
        hours, minutes = self.appointment_time.split(":")
        return datetime.combine(self.appointment_date, datetime.min.time()).replace(
            hour=int(hours), minute=int(minutes)
        )

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, date='{self.appointment_date}', time='{self.appointment_time}')>"
