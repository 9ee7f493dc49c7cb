from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base


def _values(enum_cls):
    return [member.value for member in enum_cls]


class ConsultationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ConsultationMode(str, enum.Enum):
    ONLINE = "online"
    IN_PERSON = "in-person"


class RequestSource(str, enum.Enum):
    CONSULTATION_FORM = "consultation-form"
    APPOINTMENT_REQUEST = "appointment-request"
    CONSULTATION_REQUEST = "consultation-request"


class VisitType(str, enum.Enum):
    INITIAL = "initial"
    FOLLOWUP = "followup"
    ONLINE = "online"


class IntakeUrgency(str, enum.Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    ASAP = "asap"


class ConsultationRequest(Base):
    __tablename__ = "consultation_requests"

    id = Column(Integer, primary_key=True, index=True)

    # Personal information
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(String(20), nullable=True)

    # Consultation details
    consultation_type = Column(SQLEnum(ConsultationMode, values_callable=_values), nullable=False)
    preferred_date = Column(String(50), nullable=False)
    preferred_time = Column(String(50), nullable=False)

    # Health information
    health_concerns = Column(Text, nullable=False)
    symptoms = Column(String(500), nullable=True)
    current_medications = Column(String(500), nullable=True)
    previous_visit = Column(Boolean, nullable=False, default=False)
    emergency_contact_name = Column(String(100), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)
    emergency_contact_relationship = Column(String(50), nullable=True)

    # Website intake extras
    urgency = Column(SQLEnum(IntakeUrgency, values_callable=_values), nullable=True)
    intake_details = Column(JSON, nullable=True)

    source = Column(
        SQLEnum(RequestSource, values_callable=_values),
        nullable=False,
        default=RequestSource.CONSULTATION_FORM,
    )
    status = Column(
        SQLEnum(ConsultationStatus, values_callable=_values),
        nullable=False,
        default=ConsultationStatus.PENDING,
        index=True,
    )
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ConsultationRequest(id={self.id}, email='{self.email}', status='{self.status}')>"
