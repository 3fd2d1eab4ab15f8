"""
Cron trigger endpoints.

Every route is authorised by ``verify_cron``. Configuration errors surface
as 500 through the exception handlers; every other outcome is a 200 with
the run summary.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from flaneur.core.config import Settings, get_settings
from flaneur.core.logging import get_logger
from flaneur.core.security import verify_cron
from flaneur.domains.alfresco import AlfrescoPermitsPipeline
from flaneur.domains.auctions import AuctionCalendarPipeline
from flaneur.domains.global_auctions import GlobalAuctionCalendarPipeline
from flaneur.domains.property_watch import PROPERTY_WATCH_JOB
from flaneur.domains.residency import ResidencyRadarPipeline
from flaneur.pipeline.context import PipelineContext
from flaneur.pipeline.engine import ENRICH_BRIEFS_BACKFILL_JOB, ENRICH_BRIEFS_JOB
from flaneur.pipeline.jobs import ContextFactory, run_job
from flaneur.schemas.pipeline import DomainRunSummary, PropertyWatchSummary, RunSummary

logger = get_logger(__name__)
router = APIRouter(dependencies=[Depends(verify_cron)])


def get_context_factory() -> ContextFactory:
    """Dependency returning the builder of per-run pipeline contexts."""
    return PipelineContext.create


@router.get(f"/{ENRICH_BRIEFS_JOB}", response_model=RunSummary)
async def enrich_briefs(
    test: Optional[str] = Query(None, description="Enrich only this brief or article id"),
    batch: Optional[int] = Query(None, ge=1, le=500, description="Candidate limit per phase"),
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """Enrich pending briefs, then pending articles, under the run budget."""
    return await run_job(ENRICH_BRIEFS_JOB, settings, context_factory, test=test, batch=batch)


@router.get(f"/{ENRICH_BRIEFS_BACKFILL_JOB}", response_model=RunSummary)
async def enrich_briefs_backfill(
    test: Optional[str] = Query(None),
    batch: Optional[int] = Query(None, ge=1, le=500),
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """Catch-up enrichment over wider windows."""
    return await run_job(ENRICH_BRIEFS_BACKFILL_JOB, settings, context_factory, test=test, batch=batch)


@router.get(f"/{AuctionCalendarPipeline.job_name}", response_model=DomainRunSummary)
async def sync_auction_calendar(
    sample: bool = Query(False, description="Use built-in sample events"),
    days: int = Query(14, ge=1, le=60, description="Look-ahead window in days"),
    neighborhood: Optional[str] = Query(None, description="Only syndicate to this locale"),
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """New York Blue Chip auctions, syndicated to the luxury corridor."""
    return await run_job(
        AuctionCalendarPipeline.job_name,
        settings,
        context_factory,
        neighborhood=neighborhood,
        manual=sample or neighborhood is not None,
        sample=sample,
        days=days,
    )


@router.get(f"/{GlobalAuctionCalendarPipeline.job_name}", response_model=DomainRunSummary)
async def sync_global_auction_calendar(
    days: int = Query(14, ge=1, le=60),
    neighborhood: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """International hub auctions, syndicated to each hub's locales."""
    return await run_job(
        GlobalAuctionCalendarPipeline.job_name,
        settings,
        context_factory,
        neighborhood=neighborhood,
        manual=neighborhood is not None,
        days=days,
    )


@router.get(f"/{AlfrescoPermitsPipeline.job_name}", response_model=DomainRunSummary)
async def sync_alfresco_permits(
    days: int = Query(7, ge=1, le=60),
    neighborhood: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """Outdoor dining filings for covered Manhattan zip codes."""
    return await run_job(
        AlfrescoPermitsPipeline.job_name,
        settings,
        context_factory,
        neighborhood=neighborhood,
        manual=neighborhood is not None,
        days=days,
    )


@router.get(f"/{ResidencyRadarPipeline.job_name}", response_model=DomainRunSummary)
async def sync_residency_radar(
    sample: bool = Query(False),
    neighborhood: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """Seasonal brand outposts, syndicated to hotspot and feeder locales."""
    return await run_job(
        ResidencyRadarPipeline.job_name,
        settings,
        context_factory,
        neighborhood=neighborhood,
        manual=sample or neighborhood is not None,
        sample=sample,
    )


@router.get(f"/{PROPERTY_WATCH_JOB}", response_model=PropertyWatchSummary)
async def process_property_watch(
    settings: Settings = Depends(get_settings),
    context_factory: ContextFactory = Depends(get_context_factory),
):
    """Summarise pending property submissions."""
    return await run_job(PROPERTY_WATCH_JOB, settings, context_factory)
