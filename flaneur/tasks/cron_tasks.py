"""
Celery tasks that run the cron pipelines on the beat schedule.
"""
import asyncio
from typing import Any, Dict, Optional

from celery import shared_task

from flaneur.core.config import settings
from flaneur.core.exceptions import ConfigurationException
from flaneur.core.logging import get_logger
from flaneur.pipeline.jobs import run_job

logger = get_logger(__name__)


@shared_task(bind=True, name='flaneur.tasks.cron_tasks.run_cron_job')
def run_cron_job(self, job_name: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Run one named cron job to completion.

    Args:
        job_name: Registered job name, e.g. ``enrich-briefs``
        options: Extra keyword arguments for the job (batch, days, ...)

    Returns:
        The run summary as a JSON-compatible dict
    """
    logger.info("Scheduled job starting", job_name=job_name, task_id=self.request.id)
    try:
        summary = asyncio.run(run_job(job_name, settings, **(options or {})))
    except ConfigurationException as e:
        logger.error("Scheduled job misconfigured", job_name=job_name, error=e.message)
        self.update_state(state='FAILURE', meta={"success": False, "error": e.message, "job_name": job_name})
        raise

    result = summary.model_dump(mode="json")
    logger.info("Scheduled job finished", job_name=job_name, success=result.get("success"))
    return result
