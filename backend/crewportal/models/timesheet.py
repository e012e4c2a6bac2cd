"""Timesheet model: one submission by one foreman for one job on one date."""

import uuid

from sqlalchemy import Column, String, Date, DateTime, Boolean, Text, Float, Integer, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from crewportal.constants.sundry_items import SUNDRY_ITEMS
from crewportal.database import Base


class Timesheet(Base):
    """Submitted timesheet and its Zoho mirror state."""

    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Submitter
    user_id = Column(String(100), nullable=False, index=True)
    user_email = Column(String(255), nullable=False)

    # Job snapshot
    job_id = Column(String(100), nullable=False, index=True)
    job_name = Column(Text, nullable=False)
    entry_date = Column(Date, nullable=False, index=True)
    notes = Column(Text, nullable=False, default="")
    change_order = Column(Text, nullable=False, default="")
    total_crew_hours = Column(Float, nullable=False, default=0)

    # Sync status
    synced = Column(Boolean, default=False, nullable=False, index=True)
    zoho_parent_id = Column(String(100), nullable=True)

    # Sundry items
    masking_paper_roll = Column(Integer, nullable=False, default=0)
    plastic_roll = Column(Integer, nullable=False, default=0)
    putty_spackle_tub = Column(Integer, nullable=False, default=0)
    caulk_tube = Column(Integer, nullable=False, default=0)
    white_tape_roll = Column(Integer, nullable=False, default=0)
    orange_tape_roll = Column(Integer, nullable=False, default=0)
    floor_paper_roll = Column(Integer, nullable=False, default=0)
    tip = Column(Integer, nullable=False, default=0)
    sanding_sponge = Column(Integer, nullable=False, default=0)
    inch_roller_cover_18 = Column(Integer, nullable=False, default=0)
    inch_roller_cover_9 = Column(Integer, nullable=False, default=0)
    mini_cover = Column(Integer, nullable=False, default=0)
    masks = Column(Integer, nullable=False, default=0)
    brick_tape_roll = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    crew_rows = relationship(
        "CrewTimeRow",
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="CrewTimeRow.painter_name",
    )

    __table_args__ = (
        Index("idx_time_entries_user_synced", "user_id", "synced"),
    )

    def sundry_quantities(self) -> dict:
        """Quantities keyed by column name."""
        return {item.column: getattr(self, item.column) or 0 for item in SUNDRY_ITEMS}

    def __repr__(self):
        return f"<Timesheet(id={self.id}, job='{self.job_id}', date={self.entry_date}, synced={self.synced})>"
