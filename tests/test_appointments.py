import smtplib
from datetime import datetime

import pytest

from clinic.core.config import Settings
from clinic.core.exceptions import InvalidStateTransition
from clinic.core.permissions import Role
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.models.patient import PatientStatus
from clinic.services import appointment_lifecycle as lifecycle
from clinic.services.notification_service import NotificationService, get_notifier
from clinic.main import app
from tests.conftest import auth_headers, future_day, make_user


def appointment_payload(patient_id, time_str="10:00", duration=60, day=None, **extra):
    payload = {
        "patient_id": patient_id,
        "appointment_type": "consultation",
        "consultation_type": "general-consultation",
        "appointment_date": (day or future_day()).isoformat(),
        "appointment_time": time_str,
        "duration": duration,
    }
    payload.update(extra)
    return payload


def book(client, headers, patient_id, time_str="10:00", duration=60, **extra):
    return client.post(
        "/api/v1/appointments",
        json=appointment_payload(patient_id, time_str, duration, **extra),
        headers=headers
    )


class TestLifecycleRules:

    def make(self, status):
        return Appointment(status=status)

    def test_happy_path(self):
        appointment = self.make(AppointmentStatus.SCHEDULED)
        now = datetime(2030, 1, 1, 9, 0)

        lifecycle.confirm(appointment, now)
        lifecycle.start(appointment, now)
        lifecycle.complete(appointment, now, consultation_notes="Stable")

        assert appointment.status == AppointmentStatus.COMPLETED
        assert appointment.confirmed_at == appointment.started_at == appointment.completed_at == now
        assert appointment.consultation_notes == "Stable"

    @pytest.mark.parametrize("status", [
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.RESCHEDULED,
    ])
    def test_terminal_states_have_no_exits(self, status):
        for target in AppointmentStatus:
            assert not lifecycle.can_transition(status, target)

    def test_cancel_twice_is_rejected(self):
        appointment = self.make(AppointmentStatus.SCHEDULED)
        lifecycle.cancel(appointment, datetime(2030, 1, 1), cancelled_by=1)

        assert appointment.cancellation_reason == lifecycle.DEFAULT_CANCELLATION_REASON
        with pytest.raises(InvalidStateTransition, match="already cancelled"):
            lifecycle.cancel(appointment, datetime(2030, 1, 1), cancelled_by=1)

    def test_complete_requires_in_progress(self):
        appointment = self.make(AppointmentStatus.CONFIRMED)
        with pytest.raises(InvalidStateTransition):
            lifecycle.complete(appointment, datetime(2030, 1, 1))
        assert appointment.status == AppointmentStatus.CONFIRMED

    def test_no_show_from_confirmed(self):
        appointment = self.make(AppointmentStatus.CONFIRMED)
        lifecycle.mark_no_show(appointment, datetime(2030, 1, 1))
        assert appointment.status == AppointmentStatus.NO_SHOW


class TestAppointmentAPI:

    def test_create_appointment(self, client, patient, staff, staff_headers, notifier):
        response = book(client, staff_headers, patient.id)
        assert response.status_code == 201

        data = response.json()
        assert data["status"] == "scheduled"
        assert data["appointment_code"].startswith("APT")
        assert data["created_by"] == staff.id
        assert data["ends_at"].endswith("11:00:00")
        assert notifier.kinds() == ["appointment_booked"]
        assert notifier.sent[0][1][0] == patient.email

    def test_double_booking_returns_409(self, client, patient, staff_headers):
        assert book(client, staff_headers, patient.id, "10:00", 60).status_code == 201

        response = book(client, staff_headers, patient.id, "10:30", 30)
        assert response.status_code == 409
        assert response.json()["error"] == "Slot Unavailable"

        assert book(client, staff_headers, patient.id, "11:00", 30).status_code == 201

    def test_invalid_time_returns_structured_422(self, client, patient, staff_headers):
        response = book(client, staff_headers, patient.id, "7:5", 10)
        assert response.status_code == 422
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"appointment_time", "duration"}

    def test_past_date_rejected(self, client, patient, staff_headers):
        response = book(client, staff_headers, patient.id, day=future_day(-1))
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "appointment_date"

    def test_unknown_patient(self, client, staff_headers, test_db):
        response = book(client, staff_headers, 424242)
        assert response.status_code == 404

    def test_inactive_patient(self, client, db, patient, staff_headers):
        patient.status = PatientStatus.INACTIVE
        db.commit()
        assert book(client, staff_headers, patient.id).status_code == 422

    def test_requires_authentication(self, client, patient):
        assert book(client, {}, patient.id).status_code == 401

    def test_lifecycle_endpoints(self, client, db, patient, staff_headers):
        appointment_id = book(client, staff_headers, patient.id).json()["id"]
        base = f"/api/v1/appointments/{appointment_id}"

        assert client.put(f"{base}/confirm", headers=staff_headers).json()["status"] == "confirmed"
        assert client.put(f"{base}/confirm", headers=staff_headers).status_code == 409
        assert client.put(f"{base}/start", headers=staff_headers).json()["status"] == "in-progress"

        response = client.put(
            f"{base}/complete",
            json={"consultation_notes": "Improving", "treatment_given": "Abhyanga"},
            headers=staff_headers
        )
        assert response.status_code == 200
        assert response.json()["treatment_given"] == "Abhyanga"

        db.refresh(patient)
        assert patient.total_visits == 1
        assert patient.last_visit is not None

        assert client.put(f"{base}/cancel", json={}, headers=staff_headers).status_code == 409

    def test_cancel_records_reason_and_notifies(self, client, patient, staff, staff_headers, notifier):
        appointment_id = book(client, staff_headers, patient.id).json()["id"]

        response = client.put(
            f"/api/v1/appointments/{appointment_id}/cancel",
            json={"reason": "Travelling"},
            headers=staff_headers
        )
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["cancellation_reason"] == "Travelling"
        assert data["cancelled_by"] == staff.id
        assert notifier.kinds() == ["appointment_booked", "appointment_cancelled"]

    def test_no_show(self, client, patient, staff_headers):
        appointment_id = book(client, staff_headers, patient.id).json()["id"]
        response = client.put(f"/api/v1/appointments/{appointment_id}/no-show", headers=staff_headers)
        assert response.json()["status"] == "no-show"
        assert response.json()["no_show_marked_at"] is not None

    def test_update_moves_appointment_with_conflict_check(self, client, patient, staff_headers):
        book(client, staff_headers, patient.id, "10:00", 60)
        second = book(client, staff_headers, patient.id, "12:00", 30).json()

        url = f"/api/v1/appointments/{second['id']}"
        assert client.put(url, json={"appointment_time": "10:45"}, headers=staff_headers).status_code == 409

        response = client.put(url, json={"appointment_time": "11:00", "duration": 45}, headers=staff_headers)
        assert response.status_code == 200
        assert response.json()["appointment_time"] == "11:00"

        # Shrinking in place does not conflict with itself
        response = client.put(url, json={"duration": 30}, headers=staff_headers)
        assert response.status_code == 200

    def test_update_terminal_appointment_rejected(self, client, patient, staff_headers):
        appointment_id = book(client, staff_headers, patient.id).json()["id"]
        client.put(f"/api/v1/appointments/{appointment_id}/cancel", json={}, headers=staff_headers)

        response = client.put(
            f"/api/v1/appointments/{appointment_id}",
            json={"reason_for_visit": "Changed"},
            headers=staff_headers
        )
        assert response.status_code == 409

    def test_list_filters_and_stats(self, client, db, patient, staff_headers):
        book(client, staff_headers, patient.id, "10:00")
        other = book(client, staff_headers, patient.id, "12:00").json()
        client.put(f"/api/v1/appointments/{other['id']}/cancel", json={}, headers=staff_headers)

        response = client.get("/api/v1/appointments", params={"status": "scheduled"}, headers=staff_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        # Stats need the reports capability
        assert client.get("/api/v1/appointments/stats", headers=staff_headers).status_code == 403

        doctor_headers = auth_headers(db, make_user(db, Role.DOCTOR))
        stats = client.get("/api/v1/appointments/stats", headers=doctor_headers).json()
        assert stats["by_status"] == {"scheduled": 1, "cancelled": 1}
        assert stats["by_type"] == {"consultation": 2}

    def test_availability(self, client, patient, staff_headers):
        day = future_day()
        book(client, staff_headers, patient.id, "09:00", 30, day=day)

        response = client.get(
            "/api/v1/appointments/availability",
            params={"date": day.isoformat()},
            headers=staff_headers
        )
        assert response.status_code == 200
        assert len(response.json()["busy"]) == 1


class TestReschedule:

    def test_reschedule_links_records(self, client, patient, staff, staff_headers, notifier):
        original = book(client, staff_headers, patient.id, "10:00", 60).json()

        response = client.post(
            f"/api/v1/appointments/{original['id']}/reschedule",
            json={
                "appointment_date": future_day(8).isoformat(),
                "appointment_time": "15:00",
                "reason": "Patient request"
            },
            headers=staff_headers
        )
        assert response.status_code == 200

        previous, replacement = response.json()["previous"], response.json()["appointment"]
        assert previous["status"] == "rescheduled"
        assert previous["rescheduled_to_id"] == replacement["id"]
        assert previous["rescheduled_by"] == staff.id
        assert replacement["status"] == "scheduled"
        assert replacement["rescheduled_from_id"] == original["id"]
        assert replacement["original_date"] == original["appointment_date"]
        assert replacement["original_time"] == "10:00"
        assert replacement["duration"] == 60
        assert notifier.kinds()[-1] == "appointment_rescheduled"

    def test_reschedule_to_adjacent_slot_succeeds(self, client, patient, staff_headers):
        book(client, staff_headers, patient.id, "10:00", 60)
        moving = book(client, staff_headers, patient.id, "14:00", 30).json()

        response = client.post(
            f"/api/v1/appointments/{moving['id']}/reschedule",
            json={"appointment_date": moving["appointment_date"], "appointment_time": "11:00"},
            headers=staff_headers
        )
        assert response.status_code == 200

    def test_reschedule_overlapping_own_slot_is_allowed(self, client, patient, staff_headers):
        moving = book(client, staff_headers, patient.id, "10:00", 60).json()

        response = client.post(
            f"/api/v1/appointments/{moving['id']}/reschedule",
            json={"appointment_date": moving["appointment_date"], "appointment_time": "10:30"},
            headers=staff_headers
        )
        assert response.status_code == 200

    def test_reschedule_into_occupied_slot_changes_nothing(self, client, db, patient, staff_headers):
        book(client, staff_headers, patient.id, "10:00", 60)
        moving = book(client, staff_headers, patient.id, "14:00", 30).json()

        response = client.post(
            f"/api/v1/appointments/{moving['id']}/reschedule",
            json={"appointment_date": moving["appointment_date"], "appointment_time": "10:30"},
            headers=staff_headers
        )
        assert response.status_code == 409

        assert db.query(Appointment).count() == 2
        source = db.get(Appointment, moving["id"])
        assert source.status == AppointmentStatus.SCHEDULED
        assert source.rescheduled_to_id is None

    def test_reschedule_cancelled_appointment_rejected(self, client, patient, staff_headers):
        appointment = book(client, staff_headers, patient.id).json()
        client.put(f"/api/v1/appointments/{appointment['id']}/cancel", json={}, headers=staff_headers)

        response = client.post(
            f"/api/v1/appointments/{appointment['id']}/reschedule",
            json={"appointment_date": future_day(9).isoformat(), "appointment_time": "10:00"},
            headers=staff_headers
        )
        assert response.status_code == 409


class TestNotificationFailure:

    def test_unreachable_mail_server_does_not_fail_booking(self, client, patient, staff_headers):
        unreachable = NotificationService(
            Settings(SMTP_HOST="127.0.0.1", SMTP_PORT=1, SMTP_TIMEOUT_SECONDS=0.5)
        )
        app.dependency_overrides[get_notifier] = lambda: unreachable

        response = book(client, staff_headers, patient.id)
        assert response.status_code == 201

    def test_send_returns_false_on_smtp_error(self, monkeypatch):
        class FailingSMTP:
            def __init__(self, *args, **kwargs):
                raise smtplib.SMTPConnectError(421, b"Service not available")

        monkeypatch.setattr(smtplib, "SMTP", FailingSMTP)
        service = NotificationService(Settings(SMTP_HOST="mail.example"))
        assert service.appointment_booked("a@example.com", "A B", "APT1", datetime(2030, 1, 1, 10)) is False

    def test_disabled_without_host(self):
        service = NotificationService(Settings(SMTP_HOST=None))
        assert service.enabled is False
        assert service.send("a@example.com", "Subject", "Body") is False
