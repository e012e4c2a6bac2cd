"""Relational projection of CRM-owned records: projects, portal users, painters and assignments."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from crewportal.models.painter import Painter
from crewportal.models.project import Project
from crewportal.models.user import User
from crewportal.models.user_project import UserProjectAssignment

log = logging.getLogger(__name__)

# cache/API field name -> Project column
PROJECT_FIELDS = {
    "name": "name",
    "customer": "customer",
    "status": "status",
    "date": "date",
    "address": "address",
    "salesRep": "sales_rep",
    "supplierColor": "supplier_color",
    "trimColor": "trim_color",
    "accessoryColor": "accessory_color",
    "gutterType": "gutter_type",
    "sidingStyle": "siding_style",
    "workOrderLink": "work_order_link",
}


def project_to_dict(project: Project) -> Dict[str, Any]:
    data = {"id": project.id}
    for key, column in PROJECT_FIELDS.items():
        data[key] = getattr(project, column) or ""
    data["updatedAt"] = project.updated_at.isoformat() if project.updated_at else None
    return data


def upsert_project(db: Session, data: Dict[str, Any]) -> Project:
    """Insert or update a project keyed by its Deal id. Does not commit."""
    project = db.get(Project, data["id"])
    if project is None:
        project = Project(id=data["id"])
        db.add(project)
    for key, column in PROJECT_FIELDS.items():
        if key in data and data[key] is not None:
            setattr(project, column, data[key])
    if not project.name:
        project.name = data.get("name") or ""
    return project


def upsert_user(db: Session, email: str, zoho_id: Optional[str] = None, username: Optional[str] = None) -> User:
    """Insert or update a portal user keyed by email. Does not commit."""
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, username=username or email.split("@")[0])
        db.add(user)
    elif username:
        user.username = username
    if zoho_id:
        user.zoho_id = zoho_id
    return user


def upsert_painter(db: Session, data: Dict[str, Any]) -> Painter:
    """Insert or update a painter keyed by Zoho id. Does not commit."""
    painter = db.get(Painter, data["id"])
    if painter is None:
        painter = Painter(id=data["id"])
        db.add(painter)
    painter.name = data["name"]
    painter.email = data.get("email")
    painter.phone = data.get("phone")
    painter.active = bool(data.get("active", True))
    return painter


def replace_user_assignments(db: Session, email: str, project_ids: Iterable[str]) -> int:
    """
    Delete every assignment for the user and insert the given set, in one transaction.

    Rolls back and re-raises on failure so the user keeps the previous set.
    """
    email = email.lower()
    ids = sorted(set(project_ids))
    try:
        db.query(UserProjectAssignment).filter(
            UserProjectAssignment.user_email == email
        ).delete(synchronize_session=False)
        for project_id in ids:
            db.add(UserProjectAssignment(user_email=email, project_id=project_id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(ids)


def add_user_assignment(db: Session, email: str, project_id: str) -> bool:
    """Grant one project; returns False when the grant already existed. Does not commit."""
    email = email.lower()
    exists = db.query(UserProjectAssignment).filter(
        UserProjectAssignment.user_email == email,
        UserProjectAssignment.project_id == project_id,
    ).first()
    if exists:
        return False
    db.add(UserProjectAssignment(user_email=email, project_id=project_id))
    return True


def remove_user_assignment(db: Session, email: str, project_id: str) -> int:
    """Revoke one project. Does not commit."""
    return db.query(UserProjectAssignment).filter(
        UserProjectAssignment.user_email == email.lower(),
        UserProjectAssignment.project_id == project_id,
    ).delete(synchronize_session=False)


def load_assigned_projects(db: Session, email: str) -> List[Project]:
    """Projects the user may see, via user_projects JOIN projects."""
    return (
        db.query(Project)
        .join(UserProjectAssignment, UserProjectAssignment.project_id == Project.id)
        .filter(UserProjectAssignment.user_email == email.lower())
        .order_by(Project.name)
        .all()
    )


def find_email_by_zoho_id(db: Session, zoho_id: str) -> Optional[str]:
    user = db.query(User).filter(User.zoho_id == zoho_id).first()
    return user.email if user else None


def find_zoho_id_by_email(db: Session, email: str) -> Optional[str]:
    user = db.query(User).filter(User.email == email.lower()).first()
    return user.zoho_id if user and user.zoho_id else None
