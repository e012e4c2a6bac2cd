import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crewportal.auth import verify_cron_secret
from crewportal.config import settings
from crewportal.connectors.zoho_client import ZohoClient
from crewportal.database import get_db
from crewportal.dependencies import get_cache, get_zoho_client
from crewportal.models.reconcile_run import ReconcileRun
from crewportal.scheduler import next_run_times
from crewportal.schemas.reconcile import ReconcileRunResponse, ReconcileSchedule, ReconcileSummary
from crewportal.services.cache import ProjectCache
from crewportal.services.reconciler import ReconciliationService

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
log = logging.getLogger(__name__)


@router.api_route("/run", methods=["GET", "POST"], response_model=ReconcileSummary)
async def run_reconcile(
    db: Session = Depends(get_db),
    zoho_client: ZohoClient = Depends(get_zoho_client),
    cache: Optional[ProjectCache] = Depends(get_cache),
):
    """Pull projects, users, assignments and painters from Zoho. Invoked by cron."""
    service = ReconciliationService(zoho_client=zoho_client, db=db, cache=cache)
    summary = await service.run(trigger_type="cron")
    if summary.errors:
        log.warning(f"Reconcile #{summary.run_id} finished with errors: {summary.errors}")
    return summary


@router.get("/runs", response_model=List[ReconcileRunResponse])
def list_reconcile_runs(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return db.query(ReconcileRun).order_by(ReconcileRun.start_time.desc()).limit(limit).all()


@router.get("/schedule", response_model=ReconcileSchedule)
def get_reconcile_schedule():
    return ReconcileSchedule(
        enabled=settings.scheduler_enabled,
        cron=settings.reconcile_cron,
        timezone=settings.scheduler_timezone,
        next_runs=next_run_times(settings.reconcile_cron, settings.scheduler_timezone),
    )
