"""User to project visibility grant."""

import uuid

from sqlalchemy import Column, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from crewportal.database import Base


class UserProjectAssignment(Base):
    """Grants a user (by email) visibility into a project."""

    __tablename__ = "user_projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_email = Column(String(255), nullable=False, index=True)
    project_id = Column(String(100), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_email", "project_id", name="uq_user_project"),
    )

    def __repr__(self):
        return f"<UserProjectAssignment(email='{self.user_email}', project='{self.project_id}')>"
