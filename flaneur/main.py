"""
FastAPI application main module.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from flaneur.core.config import settings
from flaneur.core.logging import configure_logging, get_logger
from flaneur.core.middleware import LoggingMiddleware
from flaneur.core.monitoring import setup_monitoring
from flaneur.core.exceptions import (
    FlaneurException,
    flaneur_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    general_exception_handler,
)
from flaneur.api.v1.api import api_router
from flaneur.api.health import health_router


# Configure logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting Flaneur Pipelines API",
        environment=settings.environment,
        cron_secret_configured=bool(settings.cron_secret),
    )
    try:
        yield
    finally:
        logger.info("Shutting down Flaneur Pipelines API")


# Create FastAPI application
app = FastAPI(
    title="Flaneur Pipelines API",
    description="Cron-triggered enrichment and syndication pipelines for hyper-local news",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)

# Add exception handlers
app.add_exception_handler(FlaneurException, flaneur_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include routers
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(api_router, prefix="/v1")

setup_monitoring(app)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Flaneur Pipelines API",
        "version": "1.0.0",
        "docs": "/docs" if settings.debug else "Documentation not available in production",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flaneur.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
