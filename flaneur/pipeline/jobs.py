"""
Cron job registry shared by the HTTP surface and the Celery tasks.
"""
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

from flaneur.core.config import Settings
from flaneur.core.logging import get_logger
from flaneur.domains.alfresco import AlfrescoPermitsPipeline
from flaneur.domains.auctions import AuctionCalendarPipeline
from flaneur.domains.global_auctions import GlobalAuctionCalendarPipeline
from flaneur.domains.property_watch import PROPERTY_WATCH_JOB, PropertyWatchPipeline
from flaneur.domains.residency import ResidencyRadarPipeline
from flaneur.pipeline.context import PipelineContext
from flaneur.pipeline.engine import PIPELINE_CONFIGS, EnrichmentPipeline

logger = get_logger(__name__)

ContextFactory = Callable[..., Awaitable[PipelineContext]]

DOMAIN_PIPELINES = {
    AuctionCalendarPipeline.job_name: AuctionCalendarPipeline,
    GlobalAuctionCalendarPipeline.job_name: GlobalAuctionCalendarPipeline,
    AlfrescoPermitsPipeline.job_name: AlfrescoPermitsPipeline,
    ResidencyRadarPipeline.job_name: ResidencyRadarPipeline,
}

JOB_NAMES = [*PIPELINE_CONFIGS, *DOMAIN_PIPELINES, PROPERTY_WATCH_JOB]


async def run_job(
    job_name: str,
    settings: Settings,
    context_factory: ContextFactory = PipelineContext.create,
    test: Optional[str] = None,
    batch: Optional[int] = None,
    neighborhood: Optional[str] = None,
    manual: bool = False,
    **options: Any,
) -> BaseModel:
    """
    Build a context and run one named job.

    Raises:
        KeyError: unknown job name
        ConfigurationException: a credential the job needs is missing
    """
    logger.info("Cron job triggered", job_name=job_name, test=test, batch=batch, neighborhood=neighborhood)

    if job_name in PIPELINE_CONFIGS:
        context = await context_factory(settings, require_generation=True)
        pipeline = EnrichmentPipeline(context, PIPELINE_CONFIGS[job_name](settings))
        return await pipeline.run(test_id=test, batch=batch)

    if job_name in DOMAIN_PIPELINES:
        context = await context_factory(settings, require_generation=True)
        domain = DOMAIN_PIPELINES[job_name](context)
        fetch_options: Dict[str, Any] = {k: v for k, v in options.items() if v is not None}
        return await domain.run(neighborhood=neighborhood, manual=manual, **fetch_options)

    if job_name == PROPERTY_WATCH_JOB:
        context = await context_factory(settings, require_generation=False)
        return await PropertyWatchPipeline(context).run(manual=manual)

    raise KeyError(job_name)
