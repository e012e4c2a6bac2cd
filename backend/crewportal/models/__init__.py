"""Database models."""

from crewportal.models.timesheet import Timesheet
from crewportal.models.crew_time_row import CrewTimeRow
from crewportal.models.project import Project
from crewportal.models.user_project import UserProjectAssignment
from crewportal.models.user import User
from crewportal.models.painter import Painter
from crewportal.models.reconcile_run import ReconcileRun

__all__ = [
    "Timesheet",
    "CrewTimeRow",
    "Project",
    "UserProjectAssignment",
    "User",
    "Painter",
    "ReconcileRun",
]
