from sqlalchemy.orm import Session
from typing import Dict, FrozenSet, List, Optional, Tuple, Union
import logging

from ..models.consultation import (
    ConsultationMode, ConsultationRequest, ConsultationStatus, RequestSource, VisitType
)
from ..core.exceptions import InvalidStateTransition, NotFound
from ..schemas.consultation import (
    AppointmentRequestCreate, ConsultationIntakeCreate, ConsultationRequestCreate, ConsultationStatusUpdate
)

logger = logging.getLogger(__name__)

# Optional intake answers kept verbatim for the consulting doctor
INTAKE_DETAIL_FIELDS = {
    "previous_treatments", "allergies", "lifestyle", "diet", "exercise", "sleep", "stress", "additional_notes"
}

STATUS_TRANSITIONS: Dict[ConsultationStatus, FrozenSet[ConsultationStatus]] = {
    ConsultationStatus.PENDING: frozenset({
        ConsultationStatus.CONFIRMED,
        ConsultationStatus.CANCELLED,
        ConsultationStatus.COMPLETED,
    }),
    ConsultationStatus.CONFIRMED: frozenset({
        ConsultationStatus.COMPLETED,
        ConsultationStatus.CANCELLED,
    }),
    ConsultationStatus.CANCELLED: frozenset(),
    ConsultationStatus.COMPLETED: frozenset(),
}


class ConsultationService:
    """Public consultation and appointment requests awaiting staff follow-up."""

    def __init__(self, db: Session):
        self.db = db

    def submit(
        self,
        data: Union[ConsultationRequestCreate, AppointmentRequestCreate],
        source: RequestSource = RequestSource.CONSULTATION_FORM
    ) -> ConsultationRequest:
        request = ConsultationRequest(
            **data.model_dump(),
            source=source,
            status=ConsultationStatus.PENDING,
        )
        return self._save(request)

    def submit_intake(self, data: ConsultationIntakeCreate) -> ConsultationRequest:
        """Store a website consultation request.

        Follow-up visits count as previous visits and online visits keep the
        online mode; the optional lifestyle answers go to ``intake_details``.
        """
        details = data.model_dump(include=INTAKE_DETAIL_FIELDS, exclude_none=True)
        request = ConsultationRequest(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone,
            age=data.age,
            gender=data.gender,
            consultation_type=(
                ConsultationMode.ONLINE if data.consultation_type == VisitType.ONLINE
                else ConsultationMode.IN_PERSON
            ),
            preferred_date=data.preferred_date,
            preferred_time=data.preferred_time,
            health_concerns=data.primary_concern,
            symptoms=data.symptoms,
            current_medications=data.medications,
            previous_visit=data.consultation_type == VisitType.FOLLOWUP,
            urgency=data.urgency,
            intake_details=details or None,
            source=RequestSource.CONSULTATION_REQUEST,
            status=ConsultationStatus.PENDING,
        )
        return self._save(request)

    def list_requests(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[ConsultationStatus] = None
    ) -> Tuple[List[ConsultationRequest], int]:
        query = self.db.query(ConsultationRequest)
        if status:
            query = query.filter(ConsultationRequest.status == status)

        total = query.count()
        requests = (
            query.order_by(ConsultationRequest.created_at.desc(), ConsultationRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return requests, total

    def get_request(self, request_id: int) -> ConsultationRequest:
        request = self.db.get(ConsultationRequest, request_id)
        if not request:
            raise NotFound("Consultation request not found")
        return request

    def update_status(self, request_id: int, data: ConsultationStatusUpdate) -> ConsultationRequest:
        request = self.get_request(request_id)
        current = ConsultationStatus(request.status)

        if data.status == current:
            raise InvalidStateTransition(f"Consultation request is already {current.value}")
        if data.status not in STATUS_TRANSITIONS[current]:
            raise InvalidStateTransition(
                f"Cannot change consultation status from {current.value} to {data.status.value}"
            )

        request.status = data.status
        if data.notes is not None:
            request.notes = data.notes
        self.db.commit()
        self.db.refresh(request)
        return request

    def _save(self, request: ConsultationRequest) -> ConsultationRequest:
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)

        logger.info(f"Consultation request {request.id} received from {request.source.value}")
        return request
