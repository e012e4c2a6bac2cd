import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crewportal.connectors.zoho_client import ZohoClient
from crewportal.models.project import Project
from crewportal.models.reconcile_run import ReconcileRun
from crewportal.schemas.reconcile import ReconcileSummary
from crewportal.services.cache import CacheUnavailable, ProjectCache
from crewportal.services.crm_projection import replace_user_assignments, upsert_painter, upsert_project, upsert_user
from crewportal.services.normalizer import NormalizerService

log = logging.getLogger(__name__)


class ReconciliationService:
    """
    Rebuilds the local projection of Zoho data: projects, portal users,
    per-user project assignments and the painter directory.

    Every step runs even when an earlier one failed; step errors are collected
    in the summary. Running twice against unchanged Zoho data leaves the
    database and cache unchanged.
    """

    def __init__(
        self,
        zoho_client: ZohoClient,
        db: Session,
        cache: Optional[ProjectCache] = None,
        normalizer_service: Optional[NormalizerService] = None,
    ):
        self.zoho_client = zoho_client
        self.db = db
        self.cache = cache
        self.normalizer = normalizer_service or NormalizerService()

    async def run(self, trigger_type: str = "manual") -> ReconcileSummary:
        summary = ReconcileSummary()
        reconcile_run = self._start_run(trigger_type)
        if reconcile_run is not None:
            summary.run_id = reconcile_run.id
        log.info(f"Starting reconciliation (trigger={trigger_type}, run_id={summary.run_id})")

        project_ids = await self._sync_projects(summary)
        user_map = await self._sync_users(summary)
        assignments = await self._collect_connections(summary, user_map, project_ids)
        if assignments is None:
            log.warning("Skipping assignment rebuild: connections could not be fetched")
            summary.errors.setdefault("assignments", "skipped: connections unavailable")
        else:
            await self._replace_assignments(summary, user_map, assignments)
        await self._sync_painters(summary)

        self._finish_run(reconcile_run, summary)
        log.info(
            f"Reconciliation finished: projects={summary.projects_count}, users={summary.users_synced}, "
            f"connections={summary.connections_processed}, painters={summary.painters_synced}, "
            f"errors={list(summary.errors)}"
        )
        return summary

    # Step 1
    async def _sync_projects(self, summary: ReconcileSummary) -> Optional[Set[str]]:
        """Upsert every Deal; returns the id set, or None when Zoho could not be read."""
        try:
            deals = await self.zoho_client.get_deals()
        except Exception as e:
            log.error(f"Reconcile step 'projects' failed to fetch deals: {e}", exc_info=True)
            summary.errors["projects"] = str(e)
            return None

        projects: Dict[str, dict] = {}
        for deal in deals:
            project = self.normalizer.normalize_deal(deal)
            if project is None:
                log.warning(f"Skipping deal without id: {str(deal)[:200]}")
                continue
            projects[project["id"]] = project
        summary.projects_count = len(projects)

        try:
            for project in projects.values():
                upsert_project(self.db, project)
            self.db.commit()
            log.debug(f"Upserted {len(projects)} projects")
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Reconcile step 'projects' failed to write database: {e}", exc_info=True)
            summary.errors["projects"] = str(e)

        if self.cache is not None:
            try:
                await self.cache.put_projects(list(projects.values()), replace=True)
            except CacheUnavailable as e:
                log.error(f"Reconcile step 'projects' failed to write cache: {e}")
                summary.errors["projects_cache"] = str(e)

        return set(projects)

    # Step 2
    async def _sync_users(self, summary: ReconcileSummary) -> Dict[str, str]:
        """Upsert portal users; returns the Zoho user id -> email map."""
        try:
            raw_users = await self.zoho_client.get_portal_users()
        except Exception as e:
            log.error(f"Reconcile step 'users' failed to fetch portal users: {e}", exc_info=True)
            summary.errors["users"] = str(e)
            return {}

        user_map: Dict[str, str] = {}
        for raw in raw_users:
            normalized = self.normalizer.normalize_portal_user(raw)
            if normalized is None:
                log.warning(f"Skipping portal user without id or email: {str(raw)[:200]}")
                continue
            zoho_id, email = normalized
            user_map[zoho_id] = email

        try:
            # One row per email; the last Zoho id seen wins
            for email, zoho_id in {email: zoho_id for zoho_id, email in user_map.items()}.items():
                upsert_user(self.db, email, zoho_id=zoho_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Reconcile step 'users' failed to write database: {e}", exc_info=True)
            summary.errors["users"] = str(e)

        if self.cache is not None:
            try:
                await self.cache.set_user_maps(user_map)
            except CacheUnavailable as e:
                log.error(f"Reconcile step 'users' failed to write cache maps: {e}")
                summary.errors["users_cache"] = str(e)

        log.debug(f"Mapped {len(user_map)} portal users")
        return user_map

    # Step 3
    async def _collect_connections(
        self,
        summary: ReconcileSummary,
        user_map: Dict[str, str],
        project_ids: Optional[Set[str]],
    ) -> Optional[Dict[str, Set[str]]]:
        """Group junction records into email -> project ids; None when Zoho could not be read."""
        try:
            connections = await self.zoho_client.get_user_job_connections()
        except Exception as e:
            log.error(f"Reconcile step 'connections' failed to fetch: {e}", exc_info=True)
            summary.errors["connections"] = str(e)
            return None

        if project_ids is None:
            # Deals could not be fetched this pass; trust the stored projects
            try:
                project_ids = {row[0] for row in self.db.query(Project.id).all()}
            except SQLAlchemyError as e:
                self.db.rollback()
                log.error(f"Reconcile step 'connections' could not load stored projects: {e}")
                summary.errors["connections"] = str(e)
                return None

        assignments: Dict[str, Set[str]] = {}
        unresolved_users = unknown_projects = 0
        for connection in connections:
            normalized = self.normalizer.normalize_connection(connection)
            if normalized is None:
                continue
            zoho_user_id, deal_id = normalized
            email = user_map.get(zoho_user_id)
            if not email:
                unresolved_users += 1
                continue
            if deal_id not in project_ids:
                unknown_projects += 1
                continue
            assignments.setdefault(email, set()).add(deal_id)
            summary.connections_processed += 1

        if unresolved_users or unknown_projects:
            log.warning(
                f"Ignored connections: {unresolved_users} with unknown portal user, "
                f"{unknown_projects} with unknown deal"
            )
        return assignments

    # Step 4
    async def _replace_assignments(
        self,
        summary: ReconcileSummary,
        user_map: Dict[str, str],
        assignments: Dict[str, Set[str]],
    ) -> None:
        failed = []
        for email in sorted(set(user_map.values())):
            project_ids = assignments.get(email, set())
            try:
                replace_user_assignments(self.db, email, project_ids)
            except SQLAlchemyError as e:
                log.error(f"Failed to replace assignments for {email}: {e}", exc_info=True)
                failed.append(email)
                continue

            if self.cache is not None:
                try:
                    await self.cache.replace_user_projects(email, project_ids)
                except CacheUnavailable as e:
                    log.error(f"Failed to replace cached project set for {email}: {e}")
                    summary.errors["assignments_cache"] = str(e)

            if project_ids:
                summary.users_synced += 1

        if failed:
            summary.errors["assignments"] = f"{len(failed)} user(s) failed: {', '.join(failed[:10])}"

    # Step 5
    async def _sync_painters(self, summary: ReconcileSummary) -> None:
        try:
            raw_painters = await self.zoho_client.get_painters()
        except Exception as e:
            log.error(f"Reconcile step 'painters' failed to fetch: {e}", exc_info=True)
            summary.errors["painters"] = str(e)
            return

        painters = {}
        for raw in raw_painters:
            painter = self.normalizer.normalize_painter(raw)
            if painter is not None:
                painters[painter["id"]] = painter

        try:
            for painter in painters.values():
                upsert_painter(self.db, painter)
            self.db.commit()
            summary.painters_synced = len(painters)
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Reconcile step 'painters' failed to write database: {e}", exc_info=True)
            summary.errors["painters"] = str(e)

    # Run history

    def _start_run(self, trigger_type: str) -> Optional[ReconcileRun]:
        try:
            reconcile_run = ReconcileRun(
                trigger_type=trigger_type,
                start_time=datetime.now(timezone.utc),
                status="running",
            )
            self.db.add(reconcile_run)
            self.db.commit()
            return reconcile_run
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Could not record reconcile run: {e}")
            return None

    def _finish_run(self, reconcile_run: Optional[ReconcileRun], summary: ReconcileSummary) -> None:
        if reconcile_run is None:
            return
        try:
            reconcile_run.end_time = datetime.now(timezone.utc)
            reconcile_run.status = "partial" if summary.errors else "completed"
            reconcile_run.projects_count = summary.projects_count
            reconcile_run.users_synced = summary.users_synced
            reconcile_run.connections_processed = summary.connections_processed
            reconcile_run.painters_synced = summary.painters_synced
            reconcile_run.step_errors = dict(summary.errors) or None
            if summary.errors:
                reconcile_run.error_message = "; ".join(f"{k}: {v}" for k, v in summary.errors.items())[:2000]
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Could not update reconcile run #{reconcile_run.id}: {e}")
