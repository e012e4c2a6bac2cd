"""Reconcile run model for tracking reconciliation executions."""

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func

from crewportal.database import Base


class ReconcileRun(Base):
    """Reconciliation execution history and status tracking."""

    __tablename__ = "reconcile_runs"

    id = Column(Integer, primary_key=True, index=True)

    # Execution details
    trigger_type = Column(String(50), nullable=False, default='manual')  # 'scheduled', 'cron', 'manual'
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(50), nullable=False)  # 'running', 'completed', 'partial', 'failed'

    # Statistics
    projects_count = Column(Integer, default=0, nullable=False)
    users_synced = Column(Integer, default=0, nullable=False)
    connections_processed = Column(Integer, default=0, nullable=False)
    painters_synced = Column(Integer, default=0, nullable=False)

    # Error information
    step_errors = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ReconcileRun(id={self.id}, trigger='{self.trigger_type}', status='{self.status}')>"
