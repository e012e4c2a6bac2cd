import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crewportal.auth import get_current_user
from crewportal.database import get_db
from crewportal.dependencies import get_dispatcher, get_entry_cache
from crewportal.schemas.auth import CurrentUser
from crewportal.schemas.time_entry import TimeEntryCreate, TimesheetResponse
from crewportal.services.cache import EntryCache
from crewportal.services.dispatcher import SyncDispatcher, SyncJob
from crewportal.services.timesheet_store import TimesheetStore

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("", response_model=TimesheetResponse, status_code=status.HTTP_201_CREATED)
async def create_time_entry(
    payload: TimeEntryCreate,
    background_tasks: BackgroundTasks,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Session = Depends(get_db),
    dispatcher: SyncDispatcher = Depends(get_dispatcher),
    entry_cache: Optional[EntryCache] = Depends(get_entry_cache),
):
    """
    Store a timesheet and queue its Zoho sync.

    The response does not wait for Zoho; the sync job runs after it is sent
    and also retries the user's older unsynced timesheets.
    """
    store = TimesheetStore(db, entry_cache)
    try:
        timesheet = store.create(current_user, payload)
    except SQLAlchemyError as e:
        log.error(f"Failed to store timesheet for {current_user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create entry")

    await store.cache_entry(timesheet)
    response = TimesheetResponse.from_model(timesheet)
    dispatcher.schedule(background_tasks, SyncJob(timesheet_id=timesheet.id, user_id=current_user.id))
    return response


@router.get("", response_model=List[TimesheetResponse])
async def list_time_entries(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    days: int = Query(30, ge=1, le=366),
    db: Session = Depends(get_db),
    entry_cache: Optional[EntryCache] = Depends(get_entry_cache),
):
    """The current user's recent timesheets with their pending-sync state."""
    try:
        return await TimesheetStore(db, entry_cache).recent_entries(current_user, days=days)
    except SQLAlchemyError as e:
        log.error(f"Failed to fetch timesheets for {current_user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch entries")
