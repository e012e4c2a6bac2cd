import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from crewportal.connectors.zoho_client import ZohoAPIError, ZohoClient
from crewportal.constants.sundry_items import build_sundry_payload
from crewportal.models.crew_time_row import CrewTimeRow
from crewportal.models.timesheet import Timesheet
from crewportal.services.cache import CacheUnavailable, ProjectCache
from crewportal.services.crm_projection import find_zoho_id_by_email
from crewportal.services.timesheet_store import TimesheetStore
from crewportal.utils.timeparse import format_crm_datetime

log = logging.getLogger(__name__)


class SyncState(str, Enum):
    UNSYNCED = "unsynced"              # no Zoho parent yet
    PARENT_CREATED = "parent_created"  # parent exists, junctions pending
    FULLY_SYNCED = "fully_synced"


def sync_state(timesheet: Timesheet) -> SyncState:
    if not timesheet.zoho_parent_id:
        return SyncState.UNSYNCED
    if timesheet.synced and all(row.zoho_junction_id for row in timesheet.crew_rows):
        return SyncState.FULLY_SYNCED
    return SyncState.PARENT_CREATED


@dataclass
class SyncResult:
    timesheet_id: str
    state: SyncState
    parent_created: bool = False
    junctions_created: int = 0
    junctions_failed: int = 0
    junctions_skipped: int = 0
    aborted_reason: Optional[str] = None


class SyncService:
    """
    Mirrors local timesheets into Zoho.

    Each timesheet becomes one parent record plus one junction record per
    painter. Zoho ids are written back as soon as each insert is confirmed so
    an interrupted attempt resumes where it stopped; nothing already mirrored
    is sent twice.
    """

    def __init__(
        self,
        zoho_client: ZohoClient,
        db: Session,
        cache: Optional[ProjectCache] = None,
        painter_id_pattern: str = r"^\d+$",
    ):
        self.zoho_client = zoho_client
        self.db = db
        self.cache = cache
        self.store = TimesheetStore(db)
        self.painter_id_re = re.compile(painter_id_pattern)

    async def resolve_foreman_id(self, email: str) -> Optional[str]:
        """Zoho portal user id for the submitting user, from the users table or the cached map."""
        zoho_id = find_zoho_id_by_email(self.db, email)
        if zoho_id:
            return zoho_id
        if self.cache is not None:
            try:
                return await self.cache.get_zoho_id_for_email(email)
            except CacheUnavailable as e:
                log.warning(f"Cache unavailable while resolving foreman for {email}: {e}")
        return None

    def build_parent_payload(self, timesheet: Timesheet, foreman_id: str) -> Dict[str, Any]:
        entry_date = timesheet.entry_date.isoformat()
        payload: Dict[str, Any] = {
            "Name": f"{timesheet.job_name} - {entry_date}"[:120],
            "Job_Ticket": {"id": timesheet.job_id},
            "Foreman": {"id": foreman_id},
            "Date": entry_date,
            "Total_Crew_Hours": timesheet.total_crew_hours,
        }
        if timesheet.notes:
            payload["Task_Note"] = timesheet.notes
        if timesheet.change_order:
            payload["Change_Order"] = timesheet.change_order
        payload.update(build_sundry_payload(timesheet.sundry_quantities()))
        return payload

    def build_junction_payload(self, timesheet: Timesheet, row: CrewTimeRow) -> Dict[str, Any]:
        entry_date = timesheet.entry_date.isoformat()
        payload: Dict[str, Any] = {
            "Name": f"{row.painter_name} - {entry_date}"[:120],
            "Time_Sheet": {"id": timesheet.zoho_parent_id},
            "Painter": {"id": row.painter_id},
            "Start_Time": format_crm_datetime(entry_date, row.start_time),
            "End_Time": format_crm_datetime(entry_date, row.end_time),
            "Total_Hours": row.total_hours,
        }
        if row.lunch_start and row.lunch_end:
            payload["Lunch_Start"] = format_crm_datetime(entry_date, row.lunch_start)
            payload["Lunch_End"] = format_crm_datetime(entry_date, row.lunch_end)
        return payload

    def is_crm_painter_id(self, painter_id: str) -> bool:
        return bool(self.painter_id_re.match(painter_id or ""))

    async def sync_timesheet(self, timesheet_id: str) -> SyncResult:
        """
        Run one sync attempt for a timesheet.

        Zoho failures end the phase they occur in and leave the timesheet
        retryable; only confirmed inserts change local state.
        """
        timesheet = self.store.get(timesheet_id)
        if timesheet is None:
            log.warning(f"Timesheet {timesheet_id} not found, nothing to sync")
            return SyncResult(timesheet_id, SyncState.UNSYNCED, aborted_reason="not_found")

        if timesheet.synced:
            log.debug(f"Timesheet {timesheet_id} already synced")
            return SyncResult(timesheet_id, SyncState.FULLY_SYNCED)

        result = SyncResult(timesheet_id, sync_state(timesheet))

        # Phase 1: parent record
        if not timesheet.zoho_parent_id:
            foreman_id = await self.resolve_foreman_id(timesheet.user_email)
            if not foreman_id:
                log.warning(
                    f"Timesheet {timesheet_id}: no Zoho portal user for {timesheet.user_email}, "
                    "parent not created"
                )
                result.aborted_reason = "foreman_unresolved"
                return result

            payload = self.build_parent_payload(timesheet, foreman_id)
            log.trace(f"Timesheet {timesheet_id} parent payload: {payload}")
            try:
                parent_id = await self.zoho_client.create_timesheet(payload)
            except ZohoAPIError as e:
                log.error(f"Timesheet {timesheet_id}: parent creation failed: {e}")
                result.aborted_reason = "parent_failed"
                return result

            self.store.set_parent_id(timesheet, parent_id)
            result.parent_created = True
            result.state = SyncState.PARENT_CREATED
            log.info(f"Timesheet {timesheet_id}: created Zoho parent {parent_id}")

        # Phase 2: one junction per pending crew row
        for row in list(timesheet.crew_rows):
            if row.zoho_junction_id:
                continue
            if not self.is_crm_painter_id(row.painter_id):
                log.warning(
                    f"Timesheet {timesheet_id}: painter id '{row.painter_id}' is not a Zoho id, "
                    "junction skipped"
                )
                result.junctions_skipped += 1
                continue

            try:
                payload = self.build_junction_payload(timesheet, row)
                junction_id = await self.zoho_client.create_junction(payload)
            except (ZohoAPIError, ValueError) as e:
                log.error(f"Timesheet {timesheet_id}: junction for painter {row.painter_id} failed: {e}")
                result.junctions_failed += 1
                continue

            self.store.set_junction_id(row, junction_id)
            result.junctions_created += 1
            log.debug(f"Timesheet {timesheet_id}: painter {row.painter_id} -> junction {junction_id}")

        # Phase 3: completion check
        if self.store.mark_synced_if_complete(timesheet):
            result.state = SyncState.FULLY_SYNCED
            log.info(f"Timesheet {timesheet_id} fully synced to Zoho")
        else:
            log.info(
                f"Timesheet {timesheet_id} partially synced: created={result.junctions_created}, "
                f"failed={result.junctions_failed}, skipped={result.junctions_skipped}"
            )
        return result

    async def retry_unsynced(self, user_id: str, exclude_id: Optional[str] = None) -> List[SyncResult]:
        """Re-attempt every unsynced timesheet of a user, oldest first."""
        pending = [t.id for t in self.store.list_unsynced(user_id, exclude_id=exclude_id)]
        if not pending:
            return []
        log.info(f"Retrying {len(pending)} unsynced timesheet(s) for user {user_id}")
        results = []
        for timesheet_id in pending:
            result = await self._sync_isolated(timesheet_id)
            if result is not None:
                results.append(result)
        return results

    async def sync_with_recovery(self, timesheet_id: str, user_id: str) -> List[SyncResult]:
        """Sync a newly submitted timesheet, then the same user's older unsynced ones."""
        result = await self._sync_isolated(timesheet_id)
        results = [result] if result is not None else []
        results.extend(await self.retry_unsynced(user_id, exclude_id=timesheet_id))
        return results

    async def _sync_isolated(self, timesheet_id: str) -> Optional[SyncResult]:
        """Like sync_timesheet(), but unexpected errors are logged and yield None."""
        try:
            return await self.sync_timesheet(timesheet_id)
        except Exception as e:
            log.error(f"Sync of timesheet {timesheet_id} failed unexpectedly: {e}", exc_info=True)
            self.db.rollback()
            return None
