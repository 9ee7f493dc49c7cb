from sqlalchemy import Column, Integer, Date

from ..core.database import Base


class ScheduleDay(Base):
    """One row per calendar day; updating it serializes bookings on that day."""
    __tablename__ = "schedule_days"

    day = Column(Date, primary_key=True)
    version = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ScheduleDay(day='{self.day}', version={self.version})>"
