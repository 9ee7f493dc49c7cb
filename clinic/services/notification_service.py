"""Email notifications for patients and clinic staff, sent via SMTP."""
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging

from ..core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class NotificationService:
    """Best-effort mailer.

    Every send returns ``True`` on delivery and ``False`` otherwise; failures
    are logged and never raised to the caller. With no SMTP host configured
    sends are skipped.
    """

    def __init__(self, config: Settings):
        self.host = config.SMTP_HOST
        self.port = config.SMTP_PORT
        self.user = config.SMTP_USER
        self.password = config.SMTP_PASSWORD
        self.sender = config.SMTP_FROM
        self.timeout = config.SMTP_TIMEOUT_SECONDS
        self.contact_email = config.CONTACT_EMAIL
        self.appointments_email = config.APPOINTMENTS_EMAIL
        self.clinic_name = config.CLINIC_NAME
        self.clinic_phone = config.CLINIC_PHONE

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def send(self, to_email: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.info(f"SMTP not configured, skipping email to {to_email}: {subject}")
            return False

        try:
            message = MIMEMultipart()
            message["From"] = self.sender
            message["To"] = to_email
            message["Subject"] = subject
            message.attach(MIMEText(body, "plain"))

            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(message)

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Failed to send email to {to_email}: {e}")
            return False

    def _signature(self) -> str:
        return f"Best regards,\n{self.clinic_name}\nPhone: {self.clinic_phone}"

    def appointment_booked(self, to_email: str, patient_name: str, code: str, starts_at: datetime) -> bool:
        body = f"""
Dear {patient_name},

Your appointment {code} is booked for {starts_at:%A, %d %B %Y at %H:%M}.

Please arrive 10 minutes early. If you need to change the time, contact us.

{self._signature()}
        """.strip()
        return self.send(to_email, "Appointment Confirmation", body)

    def appointment_cancelled(self, to_email: str, patient_name: str, code: str, reason: Optional[str]) -> bool:
        body = f"""
Dear {patient_name},

Your appointment {code} has been cancelled.
Reason: {reason or "No reason provided"}

Please contact us if you would like to book a new time.

{self._signature()}
        """.strip()
        return self.send(to_email, "Appointment Cancelled", body)

    def appointment_rescheduled(
        self,
        to_email: str,
        patient_name: str,
        code: str,
        previous_start: datetime,
        new_start: datetime
    ) -> bool:
        body = f"""
Dear {patient_name},

Your appointment previously set for {previous_start:%d %B %Y at %H:%M} has been moved.
New appointment {code}: {new_start:%A, %d %B %Y at %H:%M}.

{self._signature()}
        """.strip()
        return self.send(to_email, "Appointment Rescheduled", body)

    def contact_received(self, name: str, email: str, phone: str, subject: str, message: str) -> bool:
        """Forward a contact form to the clinic and auto-reply to the sender."""
        forwarded = self.send(
            self.contact_email,
            f"New Contact Form: {subject}",
            f"Name: {name}\nEmail: {email}\nPhone: {phone}\nSubject: {subject}\n\n{message}",
        )
        reply = f"""
Dear {name},

Thank you for reaching out to {self.clinic_name}. We have received your message and will get back to you within 24 hours.

{self._signature()}
        """.strip()
        replied = self.send(email, f"Thank you for contacting {self.clinic_name}", reply)
        return forwarded and replied

    def request_received(
        self,
        name: str,
        email: str,
        phone: str,
        preferred_date: str,
        preferred_time: str,
        consultation_type: str,
        health_concerns: str
    ) -> bool:
        """Notify the appointments desk and acknowledge the patient's request."""
        notified = self.send(
            self.appointments_email,
            f"New Appointment Request - {name}",
            (
                f"Patient: {name}\nEmail: {email}\nPhone: {phone}\n"
                f"Preferred: {preferred_date} {preferred_time}\n"
                f"Consultation type: {consultation_type}\n\n{health_concerns}"
            ),
        )
        acknowledgement = f"""
Dear {name},

Thank you for your request. We will contact you within 24 hours to confirm your appointment.

Requested date: {preferred_date}
Requested time: {preferred_time}
Consultation type: {consultation_type}

{self._signature()}
        """.strip()
        acknowledged = self.send(email, "Appointment Request Received", acknowledgement)
        return notified and acknowledged

    def consultation_request_received(
        self,
        name: str,
        email: str,
        phone: str,
        age: int,
        primary_concern: str,
        visit_type: str,
        preferred_date: str,
        preferred_time: str,
        urgency: str
    ) -> bool:
        """Forward a website consultation request to the clinic and confirm it to the patient."""
        notified = self.send(
            self.contact_email,
            f"New Consultation Request - {name} ({urgency.upper()})",
            (
                f"Patient: {name}, age {age}\nEmail: {email}\nPhone: {phone}\n"
                f"Consultation type: {visit_type}\nPreferred: {preferred_date} {preferred_time}\n"
                f"Urgency: {urgency}\n\nPrimary concern:\n{primary_concern}"
            ),
        )
        confirmation = f"""
Dear {name},

Thank you for your consultation request. We have received your details and will contact you within 24 hours.

Consultation type: {visit_type}
Preferred date: {preferred_date}
Preferred time: {preferred_time}

{self._signature()}
        """.strip()
        confirmed = self.send(email, "Consultation Request Received", confirmation)
        return notified and confirmed


notification_service = NotificationService(default_settings)


def get_notifier() -> NotificationService:
    """Get the notification service."""
    return notification_service
