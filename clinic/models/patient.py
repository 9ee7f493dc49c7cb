from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Boolean, Text, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import secrets
import time

from ..core.database import Base


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


class PatientStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCHARGED = "discharged"


class Dosha(str, enum.Enum):
    VATA = "vata"
    PITTA = "pitta"
    KAPHA = "kapha"


class PrimaryDosha(str, enum.Enum):
    VATA = "vata"
    PITTA = "pitta"
    KAPHA = "kapha"
    VATA_PITTA = "vata-pitta"
    PITTA_KAPHA = "pitta-kapha"
    VATA_KAPHA = "vata-kapha"
    TRIDOSHIC = "tridoshic"


class Constitution(str, enum.Enum):
    VATA = "vata"
    PITTA = "pitta"
    KAPHA = "kapha"
    MIXED = "mixed"


def generate_patient_code() -> str:
    return f"PAT{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    patient_code = Column(String(32), unique=True, nullable=False, default=generate_patient_code)

    # Personal information
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(SQLEnum(Gender, values_callable=lambda e: [m.value for m in e]), nullable=False)

    # Contact information, each unique to one patient
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, index=True, nullable=False)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)

    # Medical information
    allergies = Column(JSON, nullable=False, default=list)
    current_medications = Column(JSON, nullable=False, default=list)
    previous_treatments = Column(JSON, nullable=False, default=list)
    chronic_conditions = Column(JSON, nullable=False, default=list)
    surgeries = Column(JSON, nullable=False, default=list)
    primary_concern = Column(Text, nullable=True)
    symptoms = Column(JSON, nullable=False, default=list)

    # Ayurvedic assessment: doshas, constitution, imbalances, examination notes
    ayurvedic_assessment = Column(JSON, nullable=True)

    # Emergency contact
    emergency_contact_name = Column(String(100), nullable=True)
    emergency_contact_relationship = Column(String(50), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)

    # Clinic information
    status = Column(
        SQLEnum(PatientStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PatientStatus.ACTIVE,
        index=True,
    )
    last_visit = Column(DateTime, nullable=True)
    total_visits = Column(Integer, nullable=False, default=0)

    # Consent
    consent_given = Column(Boolean, nullable=False, default=False)
    data_processing_consent = Column(Boolean, nullable=False, default=False)
    marketing_consent = Column(Boolean, nullable=False, default=False)

    registered_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    appointments = relationship("Appointment", back_populates="patient")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Patient(id={self.id}, name='{self.first_name} {self.last_name}')>"
