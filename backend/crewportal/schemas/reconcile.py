from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReconcileSummary(BaseModel):
    """Result of one reconciliation pass."""
    model_config = ConfigDict(populate_by_name=True)

    projects_count: int = Field(0, alias="projectsCount")
    users_synced: int = Field(0, alias="usersSynced")
    connections_processed: int = Field(0, alias="connectionsProcessed")
    painters_synced: int = Field(0, alias="paintersSynced")
    errors: Dict[str, str] = Field(default_factory=dict)  # step name -> error message
    run_id: Optional[int] = Field(None, alias="runId")


class ReconcileRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trigger_type: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    projects_count: int
    users_synced: int
    connections_processed: int
    painters_synced: int
    step_errors: Optional[Dict[str, str]] = None
    error_message: Optional[str] = None


class ReconcileSchedule(BaseModel):
    enabled: bool
    cron: str
    timezone: str
    next_runs: List[str] = []
