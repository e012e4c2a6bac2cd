"""APScheduler integration for periodic reconciliation."""

import logging
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from croniter import croniter

from crewportal.config import settings
from crewportal.connectors.zoho_client import ZohoClient
from crewportal.database import SessionLocal
from crewportal.services.cache import ProjectCache
from crewportal.services.reconciler import ReconciliationService

log = logging.getLogger(__name__)

JOB_ID = "periodic_reconcile_job"

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)

# Guard against overlapping runs in this process
_reconcile_running = False


async def scheduled_reconcile_job(zoho_client: ZohoClient, cache: Optional[ProjectCache]):
    """Execute a scheduled reconciliation, skipping if one is still active."""
    global _reconcile_running

    if _reconcile_running:
        log.warning("Scheduled reconcile skipped: previous run still active")
        return

    _reconcile_running = True
    db = SessionLocal()
    try:
        log.info("Starting scheduled reconcile job")
        service = ReconciliationService(zoho_client=zoho_client, db=db, cache=cache)
        summary = await service.run(trigger_type="scheduled")
        log.info(f"Scheduled reconcile #{summary.run_id} completed: {summary.model_dump(by_alias=True)}")
    except Exception as e:
        log.error(f"Scheduled reconcile failed: {e}", exc_info=True)
    finally:
        _reconcile_running = False
        db.close()


def next_run_times(cron: str, tz: str, count: int = 5) -> List[str]:
    """Next `count` fire times for a cron expression, ISO formatted."""
    base = datetime.now(ZoneInfo(tz))
    it = croniter(cron, base)
    return [it.get_next(datetime).isoformat() for _ in range(count)]


def start_scheduler(zoho_client: ZohoClient, cache: Optional[ProjectCache]):
    """Register the reconcile job and start the scheduler."""
    trigger = CronTrigger.from_crontab(settings.reconcile_cron, timezone=settings.scheduler_timezone)
    scheduler.add_job(
        scheduled_reconcile_job,
        trigger=trigger,
        id=JOB_ID,
        replace_existing=True,
        kwargs={"zoho_client": zoho_client, "cache": cache},
    )
    if not scheduler.running:
        scheduler.start()
    log.info(f"Scheduler started: reconcile cron='{settings.reconcile_cron}' ({settings.scheduler_timezone})")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        log.info("Scheduler shut down")
