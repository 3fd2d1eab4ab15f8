"""
Health check endpoints.
"""
from fastapi import APIRouter

from flaneur.core.config import settings
from flaneur.core.logging import get_logger
from flaneur.core.monitoring import metrics_collector
from flaneur.schemas.common import ApiResponse, DetailedHealthCheck, HealthCheck
from flaneur.utils.dates import utcnow

logger = get_logger(__name__)
health_router = APIRouter()


@health_router.get("/", response_model=ApiResponse[HealthCheck])
async def health_check():
    """Basic health check endpoint."""
    return ApiResponse(
        success=True,
        data=HealthCheck(
            status="healthy",
            timestamp=utcnow().isoformat(),
            version="1.0.0",
            environment=settings.environment,
        )
    )


@health_router.get("/detailed", response_model=ApiResponse[DetailedHealthCheck])
async def detailed_health_check():
    """Report which external services are configured; no calls are made."""
    configured = {
        "supabase": bool(settings.supabase_url and settings.supabase_service_key),
        "gemini": bool(settings.gemini_api_key),
        "grok": bool(settings.grok_api_key),
        "cron_secret": bool(settings.cron_secret),
    }
    services = {
        name: {"status": "configured" if ok else "missing"}
        for name, ok in configured.items()
    }
    status = "healthy" if configured["supabase"] and configured["gemini"] else "degraded"
    if status != "healthy":
        logger.warning("Health check degraded", services=services)

    return ApiResponse(
        success=True,
        data=DetailedHealthCheck(
            status=status,
            timestamp=utcnow().isoformat(),
            version="1.0.0",
            environment=settings.environment,
            services=services,
            application=metrics_collector.get_app_info(),
        )
    )


@health_router.get("/liveness")
async def liveness_check():
    """Liveness probe endpoint."""
    return {
        "status": "alive",
        "message": "Application process is alive"
    }
