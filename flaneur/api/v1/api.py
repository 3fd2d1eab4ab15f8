"""
API v1 router configuration.
"""
from fastapi import APIRouter

from .endpoints import cron
from flaneur.pipeline.jobs import JOB_NAMES

api_router = APIRouter()

api_router.include_router(cron.router, prefix="/cron", tags=["cron"])


@api_router.get("/")
async def api_info():
    """API v1 information endpoint."""
    return {
        "message": "Flaneur Pipelines API v1",
        "version": "1.0.0",
        "endpoints": {name: f"/v1/cron/{name}" for name in JOB_NAMES},
    }
