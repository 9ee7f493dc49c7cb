from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
import logging

from ...core.config import settings
from ...core.database import get_db
from ...api.deps import rate_limit_check
from ...services.consultation_service import ConsultationService
from ...services.notification_service import NotificationService, get_notifier
from ...schemas.common import Message
from ...schemas.consultation import AppointmentRequestCreate, ConsultationIntakeCreate, ConsultationSubmitted
from ...schemas.contact import ClinicInfo, ContactMessage
from ...models.consultation import RequestSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["Contact"])

WORKING_HOURS = {
    "monday": "9:00 AM - 6:00 PM",
    "tuesday": "9:00 AM - 6:00 PM",
    "wednesday": "9:00 AM - 6:00 PM",
    "thursday": "9:00 AM - 6:00 PM",
    "friday": "9:00 AM - 6:00 PM",
    "saturday": "9:00 AM - 2:00 PM",
    "sunday": "Closed",
}

SERVICES = [
    "Panchakarma Treatments",
    "Herbal Consultations",
    "Detox Programs",
    "Diet & Nutrition Counseling",
    "Stress Management",
    "Skin & Hair Care",
    "Women's Health",
]


@router.post("", response_model=Message)
def submit_contact_form(
    contact: ContactMessage,
    background_tasks: BackgroundTasks,
    notifier: NotificationService = Depends(get_notifier),
    _: None = Depends(rate_limit_check)
):
    """Forward a contact message to the clinic. Not stored."""
    logger.info(f"Contact form submission from {contact.email}: {contact.subject}")
    background_tasks.add_task(
        notifier.contact_received,
        contact.name,
        contact.email,
        contact.phone,
        contact.subject,
        contact.message,
    )
    return Message(message="Thank you for your message. We will get back to you soon!")


@router.post("/appointment-request", response_model=ConsultationSubmitted)
def submit_appointment_request(
    request_data: AppointmentRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    _: None = Depends(rate_limit_check)
):
    """Appointment request from the website, kept for staff review."""
    request = ConsultationService(db).submit(request_data, source=RequestSource.APPOINTMENT_REQUEST)
    background_tasks.add_task(
        notifier.request_received,
        f"{request_data.first_name} {request_data.last_name}",
        request_data.email,
        request_data.phone,
        request_data.preferred_date,
        request_data.preferred_time,
        request_data.consultation_type.value,
        request_data.health_concerns,
    )
    return ConsultationSubmitted(
        id=request.id,
        status=request.status,
        message="Your appointment request has been received. We will contact you within 24 hours to confirm.",
    )


@router.post("/consultation-request", response_model=ConsultationSubmitted)
def submit_consultation_request(
    intake: ConsultationIntakeCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    _: None = Depends(rate_limit_check)
):
    """Detailed consultation request from the website, kept for staff review."""
    request = ConsultationService(db).submit_intake(intake)
    background_tasks.add_task(
        notifier.consultation_request_received,
        f"{intake.first_name} {intake.last_name}",
        intake.email,
        intake.phone,
        intake.age,
        intake.primary_concern,
        intake.consultation_type.value,
        intake.preferred_date,
        intake.preferred_time,
        intake.urgency.value,
    )
    return ConsultationSubmitted(
        id=request.id,
        status=request.status,
        message="Your consultation request has been submitted successfully. We will contact you within 24 hours.",
    )


@router.get("/clinic-info", response_model=ClinicInfo)
async def clinic_info():
    return ClinicInfo(
        name=settings.CLINIC_NAME,
        address=settings.CLINIC_ADDRESS,
        phone=settings.CLINIC_PHONE,
        email=settings.CLINIC_EMAIL,
        working_hours=WORKING_HOURS,
        services=SERVICES,
    )
