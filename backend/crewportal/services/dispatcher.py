"""Outbox for CRM sync work scheduled after a submission is stored."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from crewportal.config import settings
from crewportal.connectors.zoho_client import ZohoClient
from crewportal.database import SessionLocal
from crewportal.services.cache import EntryCache, ProjectCache
from crewportal.services.sync_service import SyncService
from crewportal.services.timesheet_store import TimesheetStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncJob:
    timesheet_id: str
    user_id: str


class SyncDispatcher:
    """
    Queues sync jobs on the response's background tasks.

    `run()` is the unit of work and can be awaited directly; it opens its own
    session because the request session is closed by the time it executes.
    Cached copies of the timesheets it touched are rewritten afterwards so
    their sync state stays current.
    """

    def __init__(
        self,
        zoho_client: ZohoClient,
        cache: Optional[ProjectCache] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        painter_id_pattern: Optional[str] = None,
        entry_cache: Optional[EntryCache] = None,
    ):
        self.zoho_client = zoho_client
        self.cache = cache
        self.session_factory = session_factory
        self.painter_id_pattern = painter_id_pattern or settings.painter_id_pattern
        self.entry_cache = entry_cache

    def schedule(self, background_tasks: BackgroundTasks, job: SyncJob) -> None:
        background_tasks.add_task(self.run, job)
        log.debug(f"Queued Zoho sync for timesheet {job.timesheet_id}")

    async def run(self, job: SyncJob) -> None:
        db = self.session_factory()
        try:
            service = SyncService(
                zoho_client=self.zoho_client,
                db=db,
                cache=self.cache,
                painter_id_pattern=self.painter_id_pattern,
            )
            results = await service.sync_with_recovery(job.timesheet_id, job.user_id)
            log.debug(f"Sync job for {job.timesheet_id} finished: {[r.state.value for r in results]}")
            await self._refresh_cached_entries(db, [r.timesheet_id for r in results])
        except Exception as e:
            log.error(f"Background sync for timesheet {job.timesheet_id} failed: {e}", exc_info=True)
        finally:
            db.close()

    async def _refresh_cached_entries(self, db: Session, timesheet_ids: List[str]) -> None:
        if self.entry_cache is None:
            return
        store = TimesheetStore(db, self.entry_cache)
        for timesheet_id in timesheet_ids:
            timesheet = store.get(timesheet_id)
            if timesheet is not None:
                await store.cache_entry(timesheet)
