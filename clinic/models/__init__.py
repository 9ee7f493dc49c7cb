from .user import User, EmploymentStatus
from .patient import Patient, PatientStatus, Gender
from .appointment import Appointment, AppointmentStatus, AppointmentType, ACTIVE_STATUSES
from .schedule import ScheduleDay
from .lock import NamedLock
from .consultation import ConsultationRequest, ConsultationStatus

__all__ = [
    "User", "EmploymentStatus",
    "Patient", "PatientStatus", "Gender",
    "Appointment", "AppointmentStatus", "AppointmentType", "ACTIVE_STATUSES",
    "ScheduleDay", "NamedLock",
    "ConsultationRequest", "ConsultationStatus",
]
