"""
Prometheus metrics for HTTP traffic and pipeline runs.
"""
import time
from datetime import datetime
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from .config import settings
from .logging import get_logger

logger = get_logger(__name__)

# HTTP metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Pipeline metrics
pipeline_runs_total = Counter(
    'flaneur_pipeline_runs_total',
    'Total pipeline runs',
    ['job_name', 'status']
)

pipeline_items_total = Counter(
    'flaneur_pipeline_items_total',
    'Total work items processed by pipelines',
    ['job_name', 'outcome']
)

pipeline_duration = Histogram(
    'flaneur_pipeline_duration_seconds',
    'Pipeline run duration in seconds',
    ['job_name'],
    buckets=(1, 5, 15, 30, 60, 120, 180, 240, 280, 300),
)


class MetricsCollector:
    """Collects and manages application metrics."""

    def __init__(self):
        self.start_time = time.time()

    def record_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        http_request_duration.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_pipeline_run(
        self,
        job_name: str,
        success: bool,
        duration: float,
        succeeded: int = 0,
        failed: int = 0,
    ):
        """Record the outcome of one pipeline run."""
        pipeline_runs_total.labels(
            job_name=job_name,
            status="success" if success else "failure"
        ).inc()
        pipeline_duration.labels(job_name=job_name).observe(duration)
        if succeeded:
            pipeline_items_total.labels(job_name=job_name, outcome="succeeded").inc(succeeded)
        if failed:
            pipeline_items_total.labels(job_name=job_name, outcome="failed").inc(failed)

    def get_app_info(self) -> Dict[str, Any]:
        """Get application information."""
        uptime = time.time() - self.start_time
        return {
            "app_name": "Flaneur Pipelines",
            "version": "1.0.0",
            "environment": settings.environment,
            "uptime_seconds": round(uptime, 2),
            "started_at": datetime.fromtimestamp(self.start_time).isoformat()
        }


# Global metrics collector instance
metrics_collector = MetricsCollector()


def setup_monitoring(app: FastAPI):
    """Expose the Prometheus metrics endpoint."""

    @app.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
    async def get_metrics():
        """Prometheus metrics endpoint."""
        return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    logger.info("Monitoring endpoint configured")
