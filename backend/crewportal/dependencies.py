"""Request dependencies for the long-lived clients created at startup."""

from typing import Optional

from fastapi import Request

from crewportal.config import settings
from crewportal.connectors.zoho_client import ZohoClient
from crewportal.services.cache import EntryCache, ProjectCache
from crewportal.services.dispatcher import SyncDispatcher


def get_zoho_client(request: Request) -> ZohoClient:
    return request.app.state.zoho_client


def get_cache(request: Request) -> Optional[ProjectCache]:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return None
    return ProjectCache(redis, ttl_seconds=settings.project_cache_ttl_seconds)


def get_entry_cache(request: Request) -> Optional[EntryCache]:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return None
    return EntryCache(redis, ttl_seconds=settings.entry_cache_ttl_seconds)


def get_dispatcher(request: Request) -> SyncDispatcher:
    return request.app.state.sync_dispatcher
