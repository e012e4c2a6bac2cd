"""Painter directory entry mirrored from Zoho."""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from crewportal.database import Base


class Painter(Base):
    """Crew member available for crew selection."""

    __tablename__ = "painters"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Painter(id={self.id}, name='{self.name}', active={self.active})>"
