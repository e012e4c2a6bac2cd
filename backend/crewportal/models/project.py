"""Project model: denormalized snapshot of a Zoho Deal."""

from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func

from crewportal.database import Base


class Project(Base):
    """Job/deal visible to portal users."""

    __tablename__ = "projects"

    id = Column(String(100), primary_key=True)  # Zoho Deal ID
    name = Column(Text, nullable=False)
    customer = Column(Text, nullable=False, default="")
    status = Column(String(100), nullable=False, default="Project Accepted", index=True)
    date = Column(String(20), nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    sales_rep = Column(String(255), nullable=False, default="")

    # Job details
    supplier_color = Column(String(255), nullable=False, default="")
    trim_color = Column(String(255), nullable=False, default="")
    accessory_color = Column(String(255), nullable=False, default="")
    gutter_type = Column(String(255), nullable=False, default="")
    siding_style = Column(String(255), nullable=False, default="")
    work_order_link = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}', status='{self.status}')>"
