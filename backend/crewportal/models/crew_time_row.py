"""Crew time row model: one painter's hours within a timesheet."""

import uuid

from sqlalchemy import Column, String, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from crewportal.database import Base


class CrewTimeRow(Base):
    """Start/end/lunch times and computed hours for one painter."""

    __tablename__ = "timesheet_painters"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timesheet_id = Column(String(36), ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False, index=True)

    painter_id = Column(String(100), nullable=False, index=True)
    painter_name = Column(String(255), nullable=False)

    # "HH:MM" 24h, lunch fields empty when not taken
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    lunch_start = Column(String(5), nullable=False, default="")
    lunch_end = Column(String(5), nullable=False, default="")
    total_hours = Column(Float, nullable=False, default=0)

    zoho_junction_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    timesheet = relationship("Timesheet", back_populates="crew_rows")

    __table_args__ = (
        UniqueConstraint("timesheet_id", "painter_id", name="uq_timesheet_painter"),
    )

    def __repr__(self):
        return f"<CrewTimeRow(id={self.id}, painter='{self.painter_id}', hours={self.total_hours})>"
