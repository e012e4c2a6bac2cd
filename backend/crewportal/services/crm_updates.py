"""Single-record updates pushed by Zoho workflow webhooks."""

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crewportal.models.project import Project
from crewportal.schemas.webhook import AssignmentWebhook, PainterWebhook, ProjectWebhook, UserWebhook
from crewportal.services.cache import CacheUnavailable, ProjectCache
from crewportal.services.crm_projection import (
    add_user_assignment,
    find_email_by_zoho_id,
    project_to_dict,
    remove_user_assignment,
    upsert_painter,
    upsert_project,
    upsert_user,
)
from crewportal.services.normalizer import NormalizerService

log = logging.getLogger(__name__)


class UpdateNotApplied(Exception):
    """Neither the database nor the cache accepted the update."""


class UnknownPortalUser(LookupError):
    """An assignment references a Zoho portal user the portal has never seen."""


class CrmUpdateService:

    def __init__(
        self,
        db: Session,
        cache: Optional[ProjectCache] = None,
        normalizer_service: Optional[NormalizerService] = None,
    ):
        self.db = db
        self.cache = cache
        self.normalizer = normalizer_service or NormalizerService()

    async def apply_project(self, payload: ProjectWebhook) -> Tuple[Dict[str, Any], bool]:
        """
        Merge a partial Deal into the stored project.

        Fields follow the same Deal rules as reconciliation. Only fields that
        carry a value change; absent, null or empty ones keep their stored (or
        cached) value. Returns the merged project and whether it was new.
        """
        changes = self.normalizer.deal_changes(payload.model_dump())

        existing = self._load_existing_project(payload.id)
        if existing is None and self.cache is not None:
            try:
                existing = await self.cache.get_project(payload.id)
            except CacheUnavailable as e:
                log.warning(f"Cache unavailable while reading project {payload.id}: {e}")
        created = existing is None

        merged = {"id": payload.id, "name": "", "customer": "Unknown", "status": "Active"}
        merged.update(existing or {})
        merged.update(changes)

        db_ok = cache_ok = False
        try:
            project = upsert_project(self.db, merged)
            self.db.commit()
            self.db.refresh(project)
            merged = project_to_dict(project)
            db_ok = True
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Project webhook {payload.id}: database write failed: {e}", exc_info=True)

        if self.cache is not None:
            try:
                await self.cache.put_project(merged)
                cache_ok = True
            except CacheUnavailable as e:
                log.error(f"Project webhook {payload.id}: cache write failed: {e}")

        if not db_ok and not cache_ok:
            raise UpdateNotApplied(f"Project {payload.id} could not be stored")
        log.info(f"Project {payload.id} {'created' if created else 'updated'} from webhook: {sorted(changes)}")
        return merged, created

    def _load_existing_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        try:
            project = self.db.get(Project, project_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            log.warning(f"Database unavailable while reading project {project_id}: {e}")
            return None
        return project_to_dict(project) if project else None

    async def apply_assignment(self, payload: AssignmentWebhook) -> str:
        """Grant or revoke one project for one portal user; returns the user's email."""
        email = find_email_by_zoho_id(self.db, payload.portal_user_id)
        if not email and self.cache is not None:
            try:
                email = await self.cache.get_email_for_zoho_id(payload.portal_user_id)
            except CacheUnavailable as e:
                log.warning(f"Cache unavailable while resolving portal user {payload.portal_user_id}: {e}")
        if not email:
            raise UnknownPortalUser(f"Unknown portal user {payload.portal_user_id}")

        try:
            if payload.action == "add":
                add_user_assignment(self.db, email, payload.deal_id)
            else:
                remove_user_assignment(self.db, email, payload.deal_id)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if self.cache is not None:
            try:
                if payload.action == "add":
                    await self.cache.add_user_projects(email, [payload.deal_id])
                else:
                    await self.cache.remove_user_project(email, payload.deal_id)
            except CacheUnavailable as e:
                log.error(f"Assignment webhook for {email}: cache write failed: {e}")

        log.info(f"Assignment {payload.action}: {email} -> project {payload.deal_id}")
        return email

    async def apply_user(self, payload: UserWebhook) -> str:
        email = payload.Email.strip().lower()
        try:
            upsert_user(self.db, email, zoho_id=payload.id)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if self.cache is not None:
            try:
                await self.cache.set_user_maps({payload.id: email}, replace=False)
            except CacheUnavailable as e:
                log.error(f"User webhook for {email}: cache write failed: {e}")

        log.info(f"Portal user {payload.id} ({email}) updated from webhook")
        return email

    def apply_painter(self, payload: PainterWebhook) -> Dict[str, Any]:
        data = payload.model_dump()
        try:
            upsert_painter(self.db, data)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        log.info(f"Painter {payload.id} updated from webhook")
        return data
