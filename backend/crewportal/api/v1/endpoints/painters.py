from typing import Annotated, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crewportal.auth import get_current_user
from crewportal.database import get_db
from crewportal.models.painter import Painter
from crewportal.schemas.auth import CurrentUser
from crewportal.schemas.project import PainterResponse

router = APIRouter()


@router.get("", response_model=List[PainterResponse])
def list_painters(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    query = db.query(Painter)
    if not include_inactive:
        query = query.filter(Painter.active.is_(True))
    return query.order_by(Painter.active.desc(), Painter.name).all()
