import random
import threading
from datetime import date, datetime, timedelta

import pytest

from clinic.core.config import SchedulingPolicy
from clinic.core.exceptions import DependencyFailure, InvalidStateTransition, SlotUnavailable, ValidationError
from clinic.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus, AppointmentType
from clinic.models.schedule import ScheduleDay
from clinic.models.user import User
from clinic.schemas.appointment import AppointmentCreate, AppointmentReschedule, AppointmentUpdate
from clinic.services.appointment_service import AppointmentService
from clinic.services.scheduling import (
    ConflictChecker, Interval, appointment_window, overlaps, validate_slot
)
from tests.conftest import TestingSessionLocal

POLICY = SchedulingPolicy()
NOW = datetime(2030, 1, 1, 8, 0)
DAY = date(2030, 1, 2)


def random_interval(rng):
    start = datetime(2030, 1, 1) + timedelta(minutes=rng.randrange(0, 3 * 24 * 60, 5))
    return Interval(start, start + timedelta(minutes=rng.randint(15, 180)))


class TestOverlap:

    def test_overlap_is_symmetric(self):
        rng = random.Random(1234)
        for _ in range(500):
            a, b = random_interval(rng), random_interval(rng)
            assert overlaps(a, b) == overlaps(b, a)

    def test_overlap_matches_minute_occupancy(self):
        rng = random.Random(99)
        for _ in range(300):
            a, b = random_interval(rng), random_interval(rng)
            minutes_a = {a.start + timedelta(minutes=m) for m in range((a.end - a.start).seconds // 60)}
            minutes_b = {b.start + timedelta(minutes=m) for m in range((b.end - b.start).seconds // 60)}
            assert overlaps(a, b) == bool(minutes_a & minutes_b)

    def test_interval_overlaps_itself(self):
        window = appointment_window(DAY, "10:00", 30)
        assert overlaps(window, window)

    def test_back_to_back_is_not_overlap(self):
        first = appointment_window(DAY, "10:00", 60)
        second = appointment_window(DAY, "11:00", 30)
        assert not overlaps(first, second)
        assert not overlaps(second, first)

    def test_days_touched(self):
        assert appointment_window(DAY, "23:30", 60).days() == [DAY, DAY + timedelta(days=1)]
        assert appointment_window(DAY, "23:00", 60).days() == [DAY]


class TestValidateSlot:

    def test_valid_slot(self):
        window = validate_slot(DAY, "09:30", 45, NOW, POLICY)
        assert window.start == datetime(2030, 1, 2, 9, 30)
        assert window.end == datetime(2030, 1, 2, 10, 15)

    @pytest.mark.parametrize("time_str", ["9:30", "24:00", "12:60", "noon", "12:00:00", ""])
    def test_rejects_malformed_time(self, time_str):
        with pytest.raises(ValidationError) as exc_info:
            validate_slot(DAY, time_str, 30, NOW, POLICY)
        assert exc_info.value.errors[0]["field"] == "appointment_time"

    @pytest.mark.parametrize("duration", [0, 14, 181, 600])
    def test_rejects_duration_out_of_bounds(self, duration):
        with pytest.raises(ValidationError) as exc_info:
            validate_slot(DAY, "10:00", duration, NOW, POLICY)
        assert exc_info.value.errors[0]["field"] == "duration"

    def test_duration_bounds_inclusive(self):
        validate_slot(DAY, "10:00", 15, NOW, POLICY)
        validate_slot(DAY, "10:00", 180, NOW, POLICY)

    def test_reports_all_problems_together(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_slot(DAY, "25:00", 5, NOW, POLICY)
        assert {e["field"] for e in exc_info.value.errors} == {"appointment_time", "duration"}

    def test_rejects_past_and_present(self):
        with pytest.raises(ValidationError):
            validate_slot(NOW.date(), "07:00", 30, NOW, POLICY)
        with pytest.raises(ValidationError):
            validate_slot(NOW.date(), "08:00", 30, NOW, POLICY)


def booking(patient_id, time_str, duration, day=DAY):
    return AppointmentCreate(
        patient_id=patient_id,
        appointment_type=AppointmentType.CONSULTATION,
        appointment_date=day,
        appointment_time=time_str,
        duration=duration,
    )


@pytest.fixture
def service(db):
    return AppointmentService(db, POLICY, clock=lambda: NOW)


class TestConflictDetection:

    def test_overlapping_booking_rejected_adjacent_accepted(self, service, patient, staff):
        service.create(booking(patient.id, "10:00", 60), staff)

        with pytest.raises(SlotUnavailable):
            service.create(booking(patient.id, "10:30", 30), staff)

        accepted = service.create(booking(patient.id, "11:00", 30), staff)
        assert accepted.status == AppointmentStatus.SCHEDULED

    def test_rejected_booking_writes_nothing(self, service, db, patient, staff):
        service.create(booking(patient.id, "10:00", 60), staff)
        with pytest.raises(SlotUnavailable):
            service.create(booking(patient.id, "09:30", 45), staff)
        assert db.query(Appointment).count() == 1

    def test_cancelled_appointment_frees_slot(self, service, patient, staff):
        first = service.create(booking(patient.id, "10:00", 60), staff)
        service.cancel(first.id, staff)

        second = service.create(booking(patient.id, "10:00", 60), staff)
        assert second.id != first.id

    def test_conflict_across_midnight(self, service, patient, staff):
        service.create(booking(patient.id, "23:30", 60), staff)

        with pytest.raises(SlotUnavailable):
            service.create(booking(patient.id, "00:15", 30, day=DAY + timedelta(days=1)), staff)

    def test_default_duration_applied(self, service, patient, staff):
        appointment = service.create(booking(patient.id, "14:00", None), staff)
        assert appointment.duration == POLICY.default_duration

    def test_checker_excludes_given_appointment(self, service, db, patient, staff):
        existing = service.create(booking(patient.id, "10:00", 60), staff)
        checker = ConflictChecker(db)
        window = appointment_window(DAY, "10:15", 30)

        assert checker.find_conflict(window.start, window.end).id == existing.id
        assert not checker.has_conflict(window.start, window.end, exclude_id=existing.id)

    def test_booking_bumps_day_lock(self, service, db, patient, staff):
        service.create(booking(patient.id, "23:30", 60), staff)
        service.create(booking(patient.id, "10:00", 30), staff)

        versions = {row.day: row.version for row in db.query(ScheduleDay).all()}
        assert versions == {DAY: 2, DAY + timedelta(days=1): 1}

    def test_availability_lists_busy_slots(self, service, patient, staff):
        service.create(booking(patient.id, "10:00", 60), staff)
        cancelled = service.create(booking(patient.id, "12:00", 30), staff)
        service.cancel(cancelled.id, staff)

        busy = service.availability(DAY).busy
        assert [(slot.starts_at, slot.ends_at) for slot in busy] == [
            (datetime(2030, 1, 2, 10, 0), datetime(2030, 1, 2, 11, 0))
        ]

    def test_random_bookings_never_overlap(self, service, db, patient, staff):
        rng = random.Random(7)
        for _ in range(40):
            time_str = f"{rng.randrange(8, 18):02d}:{rng.choice(['00', '15', '30', '45'])}"
            try:
                service.create(booking(patient.id, time_str, rng.choice([15, 30, 45, 60, 90])), staff)
            except SlotUnavailable:
                pass

        booked = [
            Interval(a.starts_at, a.ends_at)
            for a in db.query(Appointment).filter(Appointment.status == AppointmentStatus.SCHEDULED)
        ]
        for i, a in enumerate(booked):
            for b in booked[i + 1:]:
                assert not overlaps(a, b)


def run_concurrently(count, work):
    """Run ``work(session)`` in ``count`` threads released together, one session each."""
    barrier = threading.Barrier(count)
    results = []

    def worker():
        session = TestingSessionLocal()
        try:
            barrier.wait()
            work(session)
            results.append("ok")
        except (SlotUnavailable, InvalidStateTransition):
            results.append("rejected")
        except DependencyFailure:
            results.append("busy")
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results


class TestConcurrentWrites:

    def test_overlapping_bookings_commit_once(self, db, patient, staff):
        patient_id, staff_id = patient.id, staff.id

        def book(session):
            AppointmentService(session, POLICY, clock=lambda: NOW).create(
                booking(patient_id, "10:00", 60), session.get(User, staff_id)
            )

        results = run_concurrently(4, book)

        assert len(results) == 4
        assert results.count("ok") == 1
        assert db.query(Appointment).count() == 1

    def test_concurrent_cancels_apply_once(self, service, db, patient, staff):
        appointment_id = service.create(booking(patient.id, "10:00", 60), staff).id
        staff_id = staff.id

        def cancel(session):
            AppointmentService(session, POLICY, clock=lambda: NOW).cancel(
                appointment_id, session.get(User, staff_id), "Clinic closed"
            )

        results = run_concurrently(4, cancel)

        assert len(results) == 4
        assert results.count("ok") == 1

        db.expire_all()
        assert db.get(Appointment, appointment_id).status == AppointmentStatus.CANCELLED

    def test_cancel_from_stale_session_is_rejected(self, service, db, patient, staff):
        appointment = service.create(booking(patient.id, "10:00", 60), staff)

        other = TestingSessionLocal()
        try:
            stale = AppointmentService(other, POLICY, clock=lambda: NOW)
            stale.get(appointment.id)

            service.cancel(appointment.id, staff, "Patient called")

            with pytest.raises(InvalidStateTransition, match="already cancelled"):
                stale.cancel(appointment.id, staff, "Second attempt")
        finally:
            other.close()

        db.refresh(appointment)
        assert appointment.cancellation_reason == "Patient called"

    def test_reschedule_from_stale_session_is_rejected(self, service, db, patient, staff):
        source = service.create(booking(patient.id, "10:00", 60), staff)

        other = TestingSessionLocal()
        try:
            stale = AppointmentService(other, POLICY, clock=lambda: NOW)
            stale.get(source.id)

            service.reschedule(
                source.id, AppointmentReschedule(appointment_date=DAY, appointment_time="14:00"), staff
            )

            with pytest.raises(InvalidStateTransition):
                stale.reschedule(
                    source.id, AppointmentReschedule(appointment_date=DAY, appointment_time="16:00"), staff
                )
        finally:
            other.close()

        active = db.query(Appointment).filter(Appointment.status.in_(ACTIVE_STATUSES)).all()
        assert [(a.appointment_time, a.rescheduled_from_id) for a in active] == [("14:00", source.id)]

        db.refresh(source)
        assert source.rescheduled_to_id == active[0].id

    def test_update_from_stale_session_is_rejected(self, service, patient, staff):
        appointment = service.create(booking(patient.id, "10:00", 60), staff)

        other = TestingSessionLocal()
        try:
            stale = AppointmentService(other, POLICY, clock=lambda: NOW)
            stale.get(appointment.id)

            service.cancel(appointment.id, staff)

            with pytest.raises(InvalidStateTransition):
                stale.update(appointment.id, AppointmentUpdate(appointment_time="12:00"), staff)
        finally:
            other.close()
