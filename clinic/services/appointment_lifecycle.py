"""Appointment status transitions and the fields each one records."""
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from ..core.exceptions import InvalidStateTransition
from ..models.appointment import Appointment, AppointmentStatus

DEFAULT_CANCELLATION_REASON = "No reason provided"

_ACTIVE_EXITS = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.RESCHEDULED,
})

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: _ACTIVE_EXITS | {AppointmentStatus.CONFIRMED},
    AppointmentStatus.CONFIRMED: _ACTIVE_EXITS | {AppointmentStatus.IN_PROGRESS},
    AppointmentStatus.IN_PROGRESS: _ACTIVE_EXITS | {AppointmentStatus.COMPLETED},
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
    AppointmentStatus.RESCHEDULED: frozenset(),
}


def sources(target: AppointmentStatus) -> FrozenSet[AppointmentStatus]:
    """Statuses from which ``target`` can be reached."""
    target = AppointmentStatus(target)
    return frozenset(status for status, exits in TRANSITIONS.items() if target in exits)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def ensure_transition(appointment: Appointment, target: AppointmentStatus) -> None:
    current = AppointmentStatus(appointment.status)
    target = AppointmentStatus(target)
    if current == target:
        raise InvalidStateTransition(f"Appointment is already {current.value}")
    if not can_transition(current, target):
        raise InvalidStateTransition(
            f"Cannot change appointment status from {current.value} to {target.value}"
        )


def confirm(appointment: Appointment, now: datetime) -> None:
    ensure_transition(appointment, AppointmentStatus.CONFIRMED)
    appointment.status = AppointmentStatus.CONFIRMED
    appointment.confirmed_at = now


def start(appointment: Appointment, now: datetime) -> None:
    ensure_transition(appointment, AppointmentStatus.IN_PROGRESS)
    appointment.status = AppointmentStatus.IN_PROGRESS
    appointment.started_at = now


def complete(
    appointment: Appointment,
    now: datetime,
    consultation_notes: Optional[str] = None,
    treatment_given: Optional[str] = None,
    follow_up_recommendations: Optional[str] = None,
) -> None:
    ensure_transition(appointment, AppointmentStatus.COMPLETED)
    appointment.status = AppointmentStatus.COMPLETED
    appointment.completed_at = now
    if consultation_notes:
        appointment.consultation_notes = consultation_notes
    if treatment_given:
        appointment.treatment_given = treatment_given
    if follow_up_recommendations:
        appointment.follow_up_recommendations = follow_up_recommendations


def cancel(appointment: Appointment, now: datetime, cancelled_by: int, reason: Optional[str] = None) -> None:
    ensure_transition(appointment, AppointmentStatus.CANCELLED)
    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
    appointment.cancelled_by = cancelled_by
    appointment.cancelled_at = now


def mark_no_show(appointment: Appointment, now: datetime) -> None:
    ensure_transition(appointment, AppointmentStatus.NO_SHOW)
    appointment.status = AppointmentStatus.NO_SHOW
    appointment.no_show_marked_at = now


def mark_rescheduled(
    appointment: Appointment,
    now: datetime,
    rescheduled_by: int,
    reason: Optional[str] = None,
) -> None:
    """Close ``appointment``; the caller links it to its replacement."""
    ensure_transition(appointment, AppointmentStatus.RESCHEDULED)
    appointment.status = AppointmentStatus.RESCHEDULED
    appointment.rescheduled_by = rescheduled_by
    appointment.rescheduled_at = now
    appointment.reschedule_reason = reason
