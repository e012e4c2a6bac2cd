"""Portal user model, keyed by email and linked to a Zoho portal user."""

import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from crewportal.database import Base


class User(Base):
    """Portal user mirrored from Zoho Portal_Users."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=False)
    zoho_id = Column(String(100), nullable=True, index=True)  # foreman reference in Zoho
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(email='{self.email}', zoho_id='{self.zoho_id}')>"
