from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.permissions import Capability
from ...api.deps import rate_limit_check, require_capability
from ...services.consultation_service import ConsultationService
from ...schemas.common import Page
from ...schemas.consultation import (
    ConsultationRequestCreate, ConsultationRequestResponse, ConsultationStatusUpdate,
    ConsultationSubmitted
)
from ...models.consultation import ConsultationStatus
from ...models.user import User

router = APIRouter(prefix="/consultation", tags=["Consultation"])


@router.post("", response_model=ConsultationSubmitted, status_code=status.HTTP_201_CREATED)
def submit_consultation(
    request_data: ConsultationRequestCreate,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Public consultation form."""
    request = ConsultationService(db).submit(request_data)
    return ConsultationSubmitted(
        id=request.id,
        status=request.status,
        message="Consultation request submitted successfully. We will contact you soon.",
    )


@router.get("", response_model=Page[ConsultationRequestResponse])
def list_consultations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[ConsultationStatus] = None,
    current_user: User = Depends(require_capability(Capability.VIEW_PATIENTS)),
    db: Session = Depends(get_db)
):
    requests, total = ConsultationService(db).list_requests(page, limit, status)
    return Page[ConsultationRequestResponse].build(
        [ConsultationRequestResponse.model_validate(r) for r in requests], total, page, limit
    )


@router.get("/{request_id}", response_model=ConsultationRequestResponse)
def get_consultation(
    request_id: int,
    current_user: User = Depends(require_capability(Capability.VIEW_PATIENTS)),
    db: Session = Depends(get_db)
):
    return ConsultationRequestResponse.model_validate(ConsultationService(db).get_request(request_id))


@router.put("/{request_id}/status", response_model=ConsultationRequestResponse)
def update_consultation_status(
    request_id: int,
    status_data: ConsultationStatusUpdate,
    current_user: User = Depends(require_capability(Capability.MODIFY_APPOINTMENTS)),
    db: Session = Depends(get_db)
):
    request = ConsultationService(db).update_status(request_id, status_data)
    return ConsultationRequestResponse.model_validate(request)
