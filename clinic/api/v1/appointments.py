from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from datetime import date
from typing import Optional

from ...core.permissions import Capability
from ...api.deps import get_appointment_service, require_capability
from ...services.appointment_service import AppointmentService
from ...services.notification_service import NotificationService, get_notifier
from ...schemas.appointment import (
    AppointmentCancel, AppointmentComplete, AppointmentCreate, AppointmentReschedule,
    AppointmentResponse, AppointmentStats, AppointmentUpdate, AvailabilityResponse,
    RescheduleResponse
)
from ...schemas.common import Page
from ...models.appointment import AppointmentStatus, AppointmentType
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

view_patients = require_capability(Capability.VIEW_PATIENTS)
modify_appointments = require_capability(Capability.MODIFY_APPOINTMENTS)


@router.get("", response_model=Page[AppointmentResponse])
def list_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[AppointmentStatus] = None,
    appointment_type: Optional[AppointmentType] = None,
    patient_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: User = Depends(view_patients),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointments, total = service.list(
        page, limit, status, appointment_type, patient_id, date_from, date_to
    )
    return Page[AppointmentResponse].build(
        [AppointmentResponse.model_validate(a) for a in appointments], total, page, limit
    )


@router.get("/stats", response_model=AppointmentStats)
def appointment_stats(
    current_user: User = Depends(require_capability(Capability.VIEW_REPORTS)),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Counts for today, the last seven days, and by status and type."""
    return service.stats()


@router.get("/availability", response_model=AvailabilityResponse)
def availability(
    day: date = Query(..., alias="date"),
    current_user: User = Depends(view_patients),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Busy intervals on a day."""
    return service.availability(day)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(view_patients),
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.get(appointment_id))


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    appointment_data: AppointmentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_capability(Capability.CREATE_APPOINTMENTS)),
    service: AppointmentService = Depends(get_appointment_service),
    notifier: NotificationService = Depends(get_notifier)
):
    """Book an appointment. Rejected with 409 when the slot overlaps another booking."""
    appointment = service.create(appointment_data, current_user)
    patient = appointment.patient
    background_tasks.add_task(
        notifier.appointment_booked,
        patient.email,
        patient.full_name,
        appointment.appointment_code,
        appointment.starts_at,
    )
    return AppointmentResponse.model_validate(appointment)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    appointment_data: AppointmentUpdate,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = service.update(appointment_id, appointment_data, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.put("/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.confirm(appointment_id, current_user))


@router.put("/{appointment_id}/start", response_model=AppointmentResponse)
def start_appointment(
    appointment_id: int,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.start(appointment_id, current_user))


@router.put("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    completion: AppointmentComplete,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = service.complete(appointment_id, completion, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.put("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    cancellation: AppointmentCancel,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service),
    notifier: NotificationService = Depends(get_notifier)
):
    appointment = service.cancel(appointment_id, current_user, cancellation.reason)
    patient = appointment.patient
    background_tasks.add_task(
        notifier.appointment_cancelled,
        patient.email,
        patient.full_name,
        appointment.appointment_code,
        appointment.cancellation_reason,
    )
    return AppointmentResponse.model_validate(appointment)


@router.put("/{appointment_id}/no-show", response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.mark_no_show(appointment_id, current_user))


@router.post("/{appointment_id}/reschedule", response_model=RescheduleResponse)
def reschedule_appointment(
    appointment_id: int,
    reschedule_data: AppointmentReschedule,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(modify_appointments),
    service: AppointmentService = Depends(get_appointment_service),
    notifier: NotificationService = Depends(get_notifier)
):
    """Move an appointment; the old record is kept as rescheduled and linked to the new one."""
    previous, replacement = service.reschedule(appointment_id, reschedule_data, current_user)
    patient = replacement.patient
    background_tasks.add_task(
        notifier.appointment_rescheduled,
        patient.email,
        patient.full_name,
        replacement.appointment_code,
        previous.starts_at,
        replacement.starts_at,
    )
    return RescheduleResponse(
        previous=AppointmentResponse.model_validate(previous),
        appointment=AppointmentResponse.model_validate(replacement),
    )
