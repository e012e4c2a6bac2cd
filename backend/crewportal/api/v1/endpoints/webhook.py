import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crewportal.auth import verify_webhook_secret
from crewportal.database import get_db
from crewportal.dependencies import get_cache
from crewportal.schemas.webhook import AssignmentWebhook, PainterWebhook, ProjectWebhook, UserWebhook
from crewportal.services.cache import ProjectCache
from crewportal.services.crm_updates import CrmUpdateService, UnknownPortalUser, UpdateNotApplied

router = APIRouter(dependencies=[Depends(verify_webhook_secret)])
log = logging.getLogger(__name__)


@router.post("/projects", status_code=status.HTTP_200_OK)
async def project_webhook(
    payload: ProjectWebhook,
    db: Session = Depends(get_db),
    cache: Optional[ProjectCache] = Depends(get_cache),
):
    """Create or partially update a project from a Deal workflow rule."""
    service = CrmUpdateService(db, cache)
    try:
        project, created = await service.apply_project(payload)
    except UpdateNotApplied as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"success": True, "action": "created" if created else "updated", "project": project}


@router.post("/assignments", status_code=status.HTTP_200_OK)
async def assignment_webhook(
    payload: AssignmentWebhook,
    db: Session = Depends(get_db),
    cache: Optional[ProjectCache] = Depends(get_cache),
):
    service = CrmUpdateService(db, cache)
    try:
        email = await service.apply_assignment(payload)
    except UnknownPortalUser as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SQLAlchemyError as e:
        log.error(f"Assignment webhook failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Assignment not stored")
    return {"success": True, "action": payload.action, "email": email, "projectId": payload.deal_id}


@router.post("/users", status_code=status.HTTP_200_OK)
async def user_webhook(
    payload: UserWebhook,
    db: Session = Depends(get_db),
    cache: Optional[ProjectCache] = Depends(get_cache),
):
    service = CrmUpdateService(db, cache)
    try:
        email = await service.apply_user(payload)
    except SQLAlchemyError as e:
        log.error(f"User webhook failed for {payload.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="User not stored")
    return {"success": True, "id": payload.id, "email": email}


@router.post("/painters", status_code=status.HTTP_200_OK)
def painter_webhook(payload: PainterWebhook, db: Session = Depends(get_db)):
    service = CrmUpdateService(db)
    try:
        painter = service.apply_painter(payload)
    except SQLAlchemyError as e:
        log.error(f"Painter webhook failed for {payload.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Painter not stored")
    return {"success": True, "painter": painter}
