import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crewportal.services.cache import CacheUnavailable, ProjectCache
from crewportal.services.crm_projection import load_assigned_projects, project_to_dict

log = logging.getLogger(__name__)


class ProjectAccessService:
    """
    Resolves the projects a user may see.

    Reads the user's id set and the project detail hash from the cache, and
    falls back to the relational assignments when the set is missing, empty or
    the cache is down. A relational failure yields an empty list.
    """

    def __init__(self, db: Session, cache: Optional[ProjectCache]):
        self.db = db
        self.cache = cache

    async def list_projects(self, email: str) -> List[Dict[str, Any]]:
        email = email.lower()
        cache_ok = self.cache is not None

        if cache_ok:
            try:
                project_ids = await self.cache.get_project_ids(email)
                if project_ids:
                    cached = await self.cache.get_projects(project_ids)
                    missing = project_ids - set(cached)
                    if not missing:
                        log.debug(f"Served {len(cached)} projects for {email} from cache")
                        return _sorted(cached.values())
                    log.debug(f"{len(missing)} project details missing from cache for {email}")
            except CacheUnavailable as e:
                log.warning(f"Project cache unavailable for {email}, using database: {e}")
                cache_ok = False

        try:
            projects = [project_to_dict(p) for p in load_assigned_projects(self.db, email)]
        except SQLAlchemyError as e:
            log.error(f"Project lookup failed for {email}, returning no projects: {e}", exc_info=True)
            return []

        if cache_ok and projects:
            try:
                await self.cache.put_projects(projects)
                await self.cache.add_user_projects(email, [p["id"] for p in projects])
                log.debug(f"Cache filled with {len(projects)} projects for {email}")
            except CacheUnavailable as e:
                log.warning(f"Could not refill project cache for {email}: {e}")

        return projects


def _sorted(projects) -> List[Dict[str, Any]]:
    return sorted(projects, key=lambda p: (p.get("name") or "").lower())
