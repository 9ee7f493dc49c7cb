from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.permissions import Capability, Role
from ...api.deps import require_capability, require_role
from ...services.patient_service import PatientService
from ...schemas.common import Message, Page
from ...schemas.patient import (
    AyurvedicAssessment, MedicalHistory, PatientCreate, PatientResponse, PatientUpdate
)
from ...models.patient import PatientStatus
from ...models.user import User

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.get("", response_model=Page[PatientResponse])
def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[PatientStatus] = None,
    current_user: User = Depends(require_capability(Capability.VIEW_PATIENTS)),
    db: Session = Depends(get_db)
):
    """List patients, optionally searching name, email and phone."""
    patients, total = PatientService(db).list_patients(page, limit, search, status)
    return Page[PatientResponse].build(
        [PatientResponse.model_validate(p) for p in patients], total, page, limit
    )


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: int,
    current_user: User = Depends(require_capability(Capability.VIEW_PATIENTS)),
    db: Session = Depends(get_db)
):
    return PatientResponse.model_validate(PatientService(db).get_patient(patient_id))


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    patient_data: PatientCreate,
    current_user: User = Depends(require_capability(Capability.EDIT_PATIENTS)),
    db: Session = Depends(get_db)
):
    patient = PatientService(db).create_patient(patient_data, current_user)
    return PatientResponse.model_validate(patient)


@router.put("/{patient_id}", response_model=PatientResponse)
def update_patient(
    patient_id: int,
    patient_data: PatientUpdate,
    current_user: User = Depends(require_capability(Capability.EDIT_PATIENTS)),
    db: Session = Depends(get_db)
):
    patient = PatientService(db).update_patient(patient_id, patient_data, current_user)
    return PatientResponse.model_validate(patient)


@router.put("/{patient_id}/medical-history", response_model=PatientResponse)
def update_medical_history(
    patient_id: int,
    history: MedicalHistory,
    current_user: User = Depends(require_capability(Capability.EDIT_PATIENTS)),
    db: Session = Depends(get_db)
):
    patient = PatientService(db).update_medical_history(patient_id, history, current_user)
    return PatientResponse.model_validate(patient)


@router.put("/{patient_id}/ayurvedic-assessment", response_model=PatientResponse)
def update_ayurvedic_assessment(
    patient_id: int,
    assessment: AyurvedicAssessment,
    current_user: User = Depends(require_capability(Capability.EDIT_PATIENTS)),
    db: Session = Depends(get_db)
):
    patient = PatientService(db).update_ayurvedic_assessment(patient_id, assessment, current_user)
    return PatientResponse.model_validate(patient)


@router.delete("/{patient_id}", response_model=Message)
def delete_patient(
    patient_id: int,
    current_user: User = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db)
):
    """Deactivate a patient. Records are kept for history."""
    PatientService(db).deactivate_patient(patient_id, current_user)
    return Message(message="Patient deactivated successfully")
