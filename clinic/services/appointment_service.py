from sqlalchemy import func, update
from sqlalchemy.orm import Session
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import logging

from ..models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus, AppointmentType
from ..models.patient import Patient, PatientStatus
from ..models.user import User
from ..core.config import SchedulingPolicy
from ..core.database import run_in_transaction
from ..core.exceptions import InvalidStateTransition, NotFound, SlotUnavailable, ValidationError
from ..schemas.appointment import (
    AppointmentComplete, AppointmentCreate, AppointmentReschedule, AppointmentStats,
    AppointmentUpdate, AvailabilityResponse, BusySlot
)
from . import appointment_lifecycle as lifecycle
from .scheduling import ConflictChecker, Interval, validate_slot

logger = logging.getLogger(__name__)

SLOT_FIELDS = ("appointment_date", "appointment_time", "duration")
REQUIRED_FIELDS = SLOT_FIELDS + ("appointment_type", "location", "urgency")


class AppointmentService:
    """Booking, rescheduling and status changes for appointments.

    Every write that claims a time slot locks the affected schedule days,
    checks for overlaps and writes inside a single transaction.
    """

    def __init__(
        self,
        db: Session,
        policy: SchedulingPolicy,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.db = db
        self.policy = policy
        self.clock = clock
        self.checker = ConflictChecker(db)

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[AppointmentStatus] = None,
        appointment_type: Optional[AppointmentType] = None,
        patient_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> Tuple[List[Appointment], int]:
        query = self.db.query(Appointment)
        if status:
            query = query.filter(Appointment.status == status)
        if appointment_type:
            query = query.filter(Appointment.appointment_type == appointment_type)
        if patient_id:
            query = query.filter(Appointment.patient_id == patient_id)
        if date_from:
            query = query.filter(Appointment.appointment_date >= date_from)
        if date_to:
            query = query.filter(Appointment.appointment_date <= date_to)

        total = query.count()
        appointments = (
            query.order_by(Appointment.appointment_date, Appointment.appointment_time, Appointment.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return appointments, total

    def create(self, data: AppointmentCreate, actor: User) -> Appointment:
        patient = self.db.get(Patient, data.patient_id)
        if not patient:
            raise NotFound("Patient not found")
        if patient.status != PatientStatus.ACTIVE:
            raise ValidationError.for_field("patient_id", "Patient is not active")

        duration = data.duration if data.duration is not None else self.policy.default_duration
        window = validate_slot(data.appointment_date, data.appointment_time, duration, self.clock(), self.policy)

        def book(db: Session) -> Appointment:
            self._claim(window)
            appointment = Appointment(
                **data.model_dump(exclude={"duration"}),
                duration=duration,
                status=AppointmentStatus.SCHEDULED,
                created_by=actor.id,
            )
            db.add(appointment)
            db.flush()
            return appointment

        appointment = run_in_transaction(self.db, book, self.policy.transaction_attempts)
        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.appointment_code} booked for patient {patient.id} "
            f"at {window.start:%Y-%m-%d %H:%M}"
        )
        return appointment

    def update(self, appointment_id: int, data: AppointmentUpdate, actor: User) -> Appointment:
        changes = data.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]

        def apply(db: Session) -> Appointment:
            appointment = self._lock(db, appointment_id, actor, ACTIVE_STATUSES)
            moves = any(
                field in changes and changes[field] != getattr(appointment, field)
                for field in SLOT_FIELDS
            )
            if moves:
                window = validate_slot(
                    changes.get("appointment_date", appointment.appointment_date),
                    changes.get("appointment_time", appointment.appointment_time),
                    changes.get("duration", appointment.duration),
                    self.clock(),
                    self.policy,
                )
                self._claim(window, exclude_id=appointment.id)
            for key, value in changes.items():
                setattr(appointment, key, value)
            appointment.updated_by = actor.id
            return appointment

        appointment = run_in_transaction(self.db, apply, self.policy.transaction_attempts)
        self.db.refresh(appointment)
        return appointment

    def reschedule(self, appointment_id: int, data: AppointmentReschedule, actor: User) -> Tuple[Appointment, Appointment]:
        """Move an appointment to a new slot.

        The source record is closed as ``rescheduled`` and a new scheduled
        appointment is created for the new slot; the two are linked both ways.
        Returns ``(previous, replacement)``.
        """
        def move(db: Session) -> Tuple[Appointment, Appointment]:
            source = self._lock(
                db, appointment_id, actor,
                lifecycle.sources(AppointmentStatus.RESCHEDULED), AppointmentStatus.RESCHEDULED
            )
            duration = data.duration if data.duration is not None else source.duration
            window = validate_slot(data.appointment_date, data.appointment_time, duration, self.clock(), self.policy)
            self._claim(window, exclude_id=source.id)

            now = self.clock()
            lifecycle.mark_rescheduled(source, now, actor.id, data.reason)
            replacement = Appointment(
                patient_id=source.patient_id,
                appointment_date=data.appointment_date,
                appointment_time=data.appointment_time,
                duration=duration,
                status=AppointmentStatus.SCHEDULED,
                appointment_type=source.appointment_type,
                consultation_type=source.consultation_type,
                location=source.location,
                urgency=source.urgency,
                reason_for_visit=source.reason_for_visit,
                pre_appointment_notes=source.pre_appointment_notes,
                original_date=source.original_date or source.appointment_date,
                original_time=source.original_time or source.appointment_time,
                reschedule_reason=data.reason,
                rescheduled_from_id=source.id,
                created_by=actor.id,
            )
            db.add(replacement)
            db.flush()
            source.rescheduled_to_id = replacement.id
            return source, replacement

        source, replacement = run_in_transaction(self.db, move, self.policy.transaction_attempts)
        self.db.refresh(source)
        self.db.refresh(replacement)
        logger.info(
            f"Appointment {source.appointment_code} rescheduled to {replacement.appointment_code} "
            f"at {replacement.starts_at:%Y-%m-%d %H:%M}"
        )
        return source, replacement

    def confirm(self, appointment_id: int, actor: User) -> Appointment:
        return self._transition(
            appointment_id, actor, AppointmentStatus.CONFIRMED, lambda a, now: lifecycle.confirm(a, now)
        )

    def start(self, appointment_id: int, actor: User) -> Appointment:
        return self._transition(
            appointment_id, actor, AppointmentStatus.IN_PROGRESS, lambda a, now: lifecycle.start(a, now)
        )

    def complete(self, appointment_id: int, data: AppointmentComplete, actor: User) -> Appointment:
        def finish(appointment: Appointment, now: datetime):
            lifecycle.complete(
                appointment,
                now,
                data.consultation_notes,
                data.treatment_given,
                data.follow_up_recommendations,
            )
            patient = appointment.patient
            patient.last_visit = now
            patient.total_visits = (patient.total_visits or 0) + 1

        return self._transition(appointment_id, actor, AppointmentStatus.COMPLETED, finish)

    def cancel(self, appointment_id: int, actor: User, reason: Optional[str] = None) -> Appointment:
        return self._transition(
            appointment_id, actor, AppointmentStatus.CANCELLED,
            lambda a, now: lifecycle.cancel(a, now, actor.id, reason)
        )

    def mark_no_show(self, appointment_id: int, actor: User) -> Appointment:
        return self._transition(
            appointment_id, actor, AppointmentStatus.NO_SHOW, lambda a, now: lifecycle.mark_no_show(a, now)
        )

    def availability(self, day: date) -> AvailabilityResponse:
        busy = [
            BusySlot(
                appointment_id=appointment.id,
                status=appointment.status,
                starts_at=appointment.starts_at,
                ends_at=appointment.ends_at,
            )
            for appointment in self.checker.busy_intervals(day)
        ]
        return AvailabilityResponse(date=day, busy=busy)

    def stats(self) -> AppointmentStats:
        today = self.clock().date()
        week_start = today - timedelta(days=6)

        today_count = self.db.query(func.count(Appointment.id)).filter(
            Appointment.appointment_date == today
        ).scalar()
        week_count = self.db.query(func.count(Appointment.id)).filter(
            Appointment.appointment_date >= week_start,
            Appointment.appointment_date <= today,
        ).scalar()

        return AppointmentStats(
            today_appointments=today_count or 0,
            week_appointments=week_count or 0,
            by_status=self._count_by(Appointment.status),
            by_type=self._count_by(Appointment.appointment_type),
        )

    def _count_by(self, column) -> Dict[str, int]:
        rows = self.db.query(column, func.count(Appointment.id)).group_by(column).all()
        return {(key.value if hasattr(key, "value") else str(key)): count for key, count in rows}

    def _claim(self, window: Interval, exclude_id: Optional[int] = None) -> None:
        self.checker.lock_days(window.start, window.end)
        conflict = self.checker.find_conflict(window.start, window.end, exclude_id=exclude_id)
        if conflict is not None:
            logger.info(
                f"Slot {window.start:%Y-%m-%d %H:%M}-{window.end:%H:%M} rejected, "
                f"overlaps appointment {conflict.id}"
            )
            raise SlotUnavailable("Time slot is not available")

    def _lock(
        self,
        db: Session,
        appointment_id: int,
        actor: User,
        allowed: Iterable[AppointmentStatus],
        target: Optional[AppointmentStatus] = None
    ) -> Appointment:
        """Write-lock the appointment while its status is in ``allowed``.

        The guarded UPDATE tests the status and takes the row lock in one
        statement, so of two competing changes only the first to commit
        matches; the other sees the committed status and is rejected.
        """
        claimed = db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status.in_(list(allowed)))
            .values(updated_by=actor.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        appointment = (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .populate_existing()
            .one_or_none()
        )
        if appointment is None:
            raise NotFound("Appointment not found")
        if not claimed:
            if target is not None:
                lifecycle.ensure_transition(appointment, target)
            raise InvalidStateTransition(
                f"Cannot change a {AppointmentStatus(appointment.status).value} appointment"
            )
        return appointment

    def _transition(self, appointment_id: int, actor: User, target: AppointmentStatus, change) -> Appointment:
        def apply(db: Session) -> Tuple[Appointment, AppointmentStatus]:
            appointment = self._lock(db, appointment_id, actor, lifecycle.sources(target), target)
            previous = AppointmentStatus(appointment.status)
            change(appointment, self.clock())
            return appointment, previous

        appointment, previous = run_in_transaction(self.db, apply, self.policy.transaction_attempts)
        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} {previous.value} -> "
            f"{AppointmentStatus(appointment.status).value} by user {actor.id}"
        )
        return appointment
