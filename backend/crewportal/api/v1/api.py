from fastapi import APIRouter

from crewportal.api.v1.endpoints import painters, projects, reconcile, time_entries, webhook

api_router = APIRouter()
api_router.include_router(time_entries.router, prefix="/time-entries", tags=["time-entries"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(painters.router, prefix="/painters", tags=["painters"])
api_router.include_router(reconcile.router, prefix="/reconcile", tags=["reconcile"])
api_router.include_router(webhook.router, prefix="/webhooks", tags=["webhooks"])
