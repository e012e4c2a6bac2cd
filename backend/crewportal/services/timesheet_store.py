"""Persistence for timesheets and their crew rows, with a Redis copy of recent ones."""

import logging
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from crewportal.models.crew_time_row import CrewTimeRow
from crewportal.models.timesheet import Timesheet
from crewportal.schemas.auth import CurrentUser
from crewportal.schemas.time_entry import TimeEntryCreate, TimesheetResponse
from crewportal.services.cache import CacheUnavailable, EntryCache

log = logging.getLogger(__name__)


class TimesheetStore:

    def __init__(self, db: Session, entry_cache: Optional[EntryCache] = None):
        self.db = db
        self.entry_cache = entry_cache

    def create(self, user: CurrentUser, payload: TimeEntryCreate) -> Timesheet:
        """
        Insert the timesheet and all of its crew rows in a single commit.

        On any database error nothing is persisted and the error propagates.
        """
        timesheet = Timesheet(
            user_id=user.id,
            user_email=user.email.lower(),
            job_id=payload.job_id,
            job_name=payload.job_name,
            entry_date=payload.entry_date,
            notes=payload.notes or "",
            change_order=payload.change_order or "",
            total_crew_hours=payload.total_crew_hours,
            synced=False,
            **payload.sundry_quantities(),
        )
        for row in payload.painters:
            timesheet.crew_rows.append(CrewTimeRow(
                painter_id=row.painter_id,
                painter_name=row.painter_name or row.painter_id,
                start_time=row.start_time,
                end_time=row.end_time,
                lunch_start=row.lunch_start or "",
                lunch_end=row.lunch_end or "",
                total_hours=row.total_hours,
            ))

        try:
            self.db.add(timesheet)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(timesheet)
        log.info(
            f"Stored timesheet {timesheet.id} for {timesheet.user_email}: job {timesheet.job_id}, "
            f"{len(timesheet.crew_rows)} painter(s), {timesheet.total_crew_hours}h"
        )
        return timesheet

    def get(self, timesheet_id: str) -> Optional[Timesheet]:
        return (
            self.db.query(Timesheet)
            .options(selectinload(Timesheet.crew_rows))
            .filter(Timesheet.id == timesheet_id)
            .first()
        )

    def list_for_user(self, user_id: str, days: int = 30) -> List[Timesheet]:
        """The user's timesheets dated within the last `days` days, newest first."""
        since = date.today() - timedelta(days=days)
        return (
            self.db.query(Timesheet)
            .options(selectinload(Timesheet.crew_rows))
            .filter(Timesheet.user_id == user_id, Timesheet.entry_date >= since)
            .order_by(Timesheet.entry_date.desc(), Timesheet.created_at.desc())
            .all()
        )

    async def cache_entry(self, timesheet: Timesheet) -> None:
        """Copy a stored timesheet into the entry cache. Cache errors are logged, never raised."""
        if self.entry_cache is None:
            return
        entry = TimesheetResponse.from_model(timesheet).model_dump(mode="json", by_alias=True)
        try:
            await self.entry_cache.put_entry(timesheet.user_email, entry)
        except CacheUnavailable as e:
            log.warning(f"Could not cache timesheet {timesheet.id}: {e}")

    async def recent_entries(self, user: CurrentUser, days: int = 30) -> List[TimesheetResponse]:
        """
        The user's timesheets of the last `days` days, newest first.

        Served from the entry cache when it holds any and the window fits inside
        the cache lifetime. Otherwise the database answers; if the database
        fails, whatever the cache returned is used instead.
        """
        since = date.today() - timedelta(days=days)
        cached: List[TimesheetResponse] = []
        if self.entry_cache is not None:
            try:
                cached = [
                    TimesheetResponse.model_validate(entry)
                    for entry in await self.entry_cache.list_entries(user.email, since)
                ]
            except CacheUnavailable as e:
                log.warning(f"Entry cache unavailable for {user.email}: {e}")

        if cached and days * 86400 <= (self.entry_cache.ttl_seconds or 0):
            log.debug(f"Serving {len(cached)} cached timesheet(s) for {user.email}")
            return cached

        try:
            timesheets = self.list_for_user(user.id, days=days)
        except SQLAlchemyError as e:
            self.db.rollback()
            if not cached:
                raise
            log.warning(f"Database unavailable, returning {len(cached)} cached timesheet(s) for {user.email}: {e}")
            return cached
        return [TimesheetResponse.from_model(t) for t in timesheets]

    def list_unsynced(self, user_id: str, exclude_id: Optional[str] = None) -> List[Timesheet]:
        query = self.db.query(Timesheet).filter(
            Timesheet.user_id == user_id,
            Timesheet.synced.is_(False),
        )
        if exclude_id:
            query = query.filter(Timesheet.id != exclude_id)
        return query.order_by(Timesheet.created_at).all()

    def set_parent_id(self, timesheet: Timesheet, zoho_parent_id: str) -> None:
        timesheet.zoho_parent_id = zoho_parent_id
        self._commit()

    def set_junction_id(self, row: CrewTimeRow, zoho_junction_id: str) -> None:
        row.zoho_junction_id = zoho_junction_id
        self._commit()

    def mark_synced_if_complete(self, timesheet: Timesheet) -> bool:
        """Set `synced` when the parent and every crew row carry a Zoho id."""
        self.db.refresh(timesheet)
        rows = (
            self.db.query(CrewTimeRow)
            .filter(CrewTimeRow.timesheet_id == timesheet.id)
            .all()
        )
        complete = bool(timesheet.zoho_parent_id) and all(row.zoho_junction_id for row in rows)
        if complete and not timesheet.synced:
            timesheet.synced = True
            self._commit()
        return complete

    def _commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
