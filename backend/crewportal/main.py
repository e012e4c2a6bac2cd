"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crewportal import __version__
from crewportal.api.v1.api import api_router
from crewportal.config import settings
from crewportal.connectors.zoho_client import ZohoClient
from crewportal.logging_config import configure_logging
from crewportal.scheduler import shutdown_scheduler, start_scheduler
from crewportal.services.cache import EntryCache, ProjectCache
from crewportal.services.dispatcher import SyncDispatcher

configure_logging(settings.log_level)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Zoho client and Redis connection once per process."""
    zoho_client = ZohoClient.from_settings(settings)
    if not settings.zoho_has_credentials:
        log.warning("Zoho credentials are not configured; CRM sync and reconciliation will fail")
    redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
    cache = ProjectCache(redis_client, ttl_seconds=settings.project_cache_ttl_seconds)

    app.state.zoho_client = zoho_client
    app.state.redis = redis_client
    entry_cache = EntryCache(redis_client, ttl_seconds=settings.entry_cache_ttl_seconds)
    app.state.sync_dispatcher = SyncDispatcher(zoho_client=zoho_client, cache=cache, entry_cache=entry_cache)

    if settings.scheduler_enabled:
        start_scheduler(zoho_client, cache)
    try:
        yield
    finally:
        shutdown_scheduler()
        await zoho_client.aclose()
        await redis_client.aclose()
        log.info("Application shut down")


app = FastAPI(
    title="Crew Timesheet Portal",
    description="Timesheet submission and Zoho CRM mirroring for field crews",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__
    }


@app.get("/")
async def root():
    return {
        "message": "Crew Timesheet Portal API",
        "version": __version__,
        "docs": "/docs"
    }


app.include_router(api_router, prefix=settings.api_v1_str)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    log.debug(f"Rejected payload for {request.url.path}: {details}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid payload", "details": details}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
