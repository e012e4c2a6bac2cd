from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crewportal.auth import get_current_user
from crewportal.database import get_db
from crewportal.dependencies import get_cache
from crewportal.schemas.auth import CurrentUser
from crewportal.schemas.project import ProjectResponse
from crewportal.services.cache import ProjectCache
from crewportal.services.project_access import ProjectAccessService

router = APIRouter()


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Session = Depends(get_db),
    cache: Optional[ProjectCache] = Depends(get_cache),
):
    """Projects the current user is assigned to. Never fails on cache or database outages."""
    service = ProjectAccessService(db, cache)
    return await service.list_projects(current_user.email)
