"""
Appointment slot validation and double-booking detection.

Every appointment occupies the half-open interval ``[start, end)`` where
``start`` is its date combined with its wall-clock time and ``end`` is
``start + duration``. Two intervals conflict when each starts before the other
ends; back-to-back bookings (one ends exactly when the next starts) do not.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional
import logging
import re

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..core.config import SchedulingPolicy
from ..core.exceptions import ValidationError
from ..models.appointment import Appointment, ACTIVE_STATUSES
from ..models.schedule import ScheduleDay

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def days(self) -> List[date]:
        """Calendar days this interval touches, in ascending order."""
        last = max(self.start, self.end - timedelta(microseconds=1)).date()
        current = self.start.date()
        days = []
        while current <= last:
            days.append(current)
            current += timedelta(days=1)
        return days


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def appointment_window(day: date, time_str: str, duration: int) -> Interval:
    hours, minutes = time_str.split(":")
    start = datetime.combine(day, datetime.min.time()).replace(hour=int(hours), minute=int(minutes))
    return Interval(start, start + timedelta(minutes=duration))


def validate_slot(
    day: date,
    time_str: str,
    duration: int,
    now: datetime,
    policy: SchedulingPolicy
) -> Interval:
    """Check a proposed slot and return its interval.

    All problems are reported together in one ValidationError.
    """
    errors = []
    if not isinstance(time_str, str) or not TIME_PATTERN.match(time_str):
        errors.append({
            "field": "appointment_time",
            "message": "Please enter a valid time in HH:MM format",
        })
    if duration is None or not policy.min_duration <= duration <= policy.max_duration:
        errors.append({
            "field": "duration",
            "message": f"Duration must be between {policy.min_duration} and {policy.max_duration} minutes",
        })
    if errors:
        raise ValidationError(errors)

    window = appointment_window(day, time_str, duration)
    if window.start <= now:
        raise ValidationError.for_field("appointment_date", "Appointment date must be in the future")
    return window


class ConflictChecker:
    """Finds active appointments overlapping a candidate interval.

    Callers that go on to write must call ``lock_days`` first, in the same
    transaction, so that no other booking for an overlapping interval can
    pass its own check before this transaction commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def _candidates(self, window: Interval, exclude_id: Optional[int] = None) -> Iterable[Appointment]:
        # Durations are shorter than a day, so anything reaching into the
        # window started at most one day before it.
        query = self.db.query(Appointment).filter(
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.appointment_date >= window.start.date() - timedelta(days=1),
            Appointment.appointment_date <= window.end.date(),
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.appointment_date, Appointment.appointment_time).all()

    def find_conflict(
        self,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None
    ) -> Optional[Appointment]:
        window = Interval(start, end)
        for existing in self._candidates(window, exclude_id):
            if overlaps(window, Interval(existing.starts_at, existing.ends_at)):
                return existing
        return None

    def has_conflict(self, start: datetime, end: datetime, exclude_id: Optional[int] = None) -> bool:
        return self.find_conflict(start, end, exclude_id) is not None

    def busy_intervals(self, day: date) -> List[Appointment]:
        """Active appointments touching ``day``."""
        window = Interval(
            datetime.combine(day, datetime.min.time()),
            datetime.combine(day + timedelta(days=1), datetime.min.time()),
        )
        return [
            existing for existing in self._candidates(window)
            if overlaps(window, Interval(existing.starts_at, existing.ends_at))
        ]

    def lock_days(self, start: datetime, end: datetime) -> None:
        """Take the per-day write lock for every day the interval touches."""
        days = Interval(start, end).days()
        for day in days:
            self._ensure_day_row(day)
            self.db.execute(
                update(ScheduleDay)
                .where(ScheduleDay.day == day)
                .values(version=ScheduleDay.version + 1)
            )
        logger.debug(f"Locked schedule days {days}")

    def _ensure_day_row(self, day: date) -> None:
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql_insert(ScheduleDay).values(day=day, version=0).on_conflict_do_nothing()
        elif dialect == "sqlite":
            stmt = sqlite_insert(ScheduleDay).values(day=day, version=0).on_conflict_do_nothing()
        else:
            if self.db.get(ScheduleDay, day) is None:
                self.db.add(ScheduleDay(day=day, version=0))
                self.db.flush()
            return
        self.db.execute(stmt)
