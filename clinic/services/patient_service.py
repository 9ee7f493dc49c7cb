from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
import logging

from ..models.patient import Patient, PatientStatus
from ..models.user import User
from ..core.exceptions import DuplicateEntity, NotFound
from ..schemas.patient import AyurvedicAssessment, MedicalHistory, PatientCreate, PatientUpdate

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Patient with this email or phone already exists"

# Columns a partial update may not clear
REQUIRED_FIELDS = {"first_name", "last_name", "email", "phone", "date_of_birth", "gender", "status", "symptoms"}


class PatientService:
    def __init__(self, db: Session):
        self.db = db

    def list_patients(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[PatientStatus] = None
    ) -> Tuple[List[Patient], int]:
        query = self.db.query(Patient)

        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Patient.first_name.ilike(pattern),
                    Patient.last_name.ilike(pattern),
                    Patient.email.ilike(pattern),
                    Patient.phone.ilike(pattern),
                )
            )

        if status:
            query = query.filter(Patient.status == status)

        total = query.count()
        patients = (
            query.order_by(Patient.created_at.desc(), Patient.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return patients, total

    def get_patient(self, patient_id: int) -> Patient:
        patient = self.db.get(Patient, patient_id)
        if not patient:
            raise NotFound("Patient not found")
        return patient

    def create_patient(self, patient_data: PatientCreate, actor: User) -> Patient:
        self._ensure_unique(patient_data.email, patient_data.phone)

        patient = Patient(**patient_data.model_dump(), registered_by=actor.id)
        self.db.add(patient)
        self._commit()
        self.db.refresh(patient)

        logger.info(f"Patient {patient.patient_code} registered by user {actor.id}")
        return patient

    def update_patient(self, patient_id: int, patient_data: PatientUpdate, actor: User) -> Patient:
        patient = self.get_patient(patient_id)
        update_data = {
            key: value for key, value in patient_data.model_dump(exclude_unset=True).items()
            if value is not None or key not in REQUIRED_FIELDS
        }

        if "email" in update_data or "phone" in update_data:
            self._ensure_unique(
                update_data.get("email"),
                update_data.get("phone"),
                exclude_id=patient.id
            )

        for key, value in update_data.items():
            setattr(patient, key, value)
        patient.updated_by = actor.id

        self._commit()
        self.db.refresh(patient)
        return patient

    def update_medical_history(self, patient_id: int, history: MedicalHistory, actor: User) -> Patient:
        patient = self.get_patient(patient_id)
        for key, value in history.model_dump().items():
            setattr(patient, key, value)
        patient.updated_by = actor.id
        self.db.commit()
        self.db.refresh(patient)
        return patient

    def update_ayurvedic_assessment(self, patient_id: int, assessment: AyurvedicAssessment, actor: User) -> Patient:
        """Replace the stored assessment as a whole."""
        patient = self.get_patient(patient_id)
        patient.ayurvedic_assessment = assessment.model_dump(mode="json")
        patient.updated_by = actor.id
        self.db.commit()
        self.db.refresh(patient)

        logger.info(f"Ayurvedic assessment of patient {patient.patient_code} updated by user {actor.id}")
        return patient

    def deactivate_patient(self, patient_id: int, actor: User) -> Patient:
        """Soft delete: the record and its appointments are kept."""
        patient = self.get_patient(patient_id)
        patient.status = PatientStatus.INACTIVE
        patient.updated_by = actor.id
        self.db.commit()
        self.db.refresh(patient)

        logger.info(f"Patient {patient.patient_code} deactivated by user {actor.id}")
        return patient

    def _ensure_unique(self, email: Optional[str], phone: Optional[str], exclude_id: Optional[int] = None):
        conditions = []
        if email:
            conditions.append(Patient.email == email)
        if phone:
            conditions.append(Patient.phone == phone)
        if not conditions:
            return

        query = self.db.query(Patient.id).filter(or_(*conditions))
        if exclude_id is not None:
            query = query.filter(Patient.id != exclude_id)
        if query.first() is not None:
            raise DuplicateEntity(DUPLICATE_MESSAGE)

    def _commit(self):
        # The unique indexes are the final word when two registrations race.
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateEntity(DUPLICATE_MESSAGE)
