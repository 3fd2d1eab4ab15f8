"""
Run summary schemas returned by every cron job.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

MAX_SUMMARY_ERRORS = 50


class RunSummary(BaseModel):
    """Result of one enrichment pipeline run."""
    success: bool = Field(..., description="Made forward progress (no failures, or at least one success)")
    briefs_processed: int = 0
    briefs_enriched: int = 0
    briefs_failed: int = 0
    articles_processed: int = 0
    articles_enriched: int = 0
    articles_failed: int = 0
    brief_articles_created: int = 0
    errors: List[str] = Field(default_factory=list)
    elapsed_ms: int = 0
    skipped_time_budget: bool = False
    quota_exhausted: bool = False
    message: Optional[str] = None
    timestamp: datetime


class DomainRunSummary(BaseModel):
    """Result of one domain event pipeline run (auctions, alfresco, residency)."""
    success: bool
    candidates_found: int = 0
    candidates_selected: int = 0
    stories_generated: int = 0
    stories_excluded: int = 0
    articles_created: int = 0
    articles_skipped: int = 0
    locales_syndicated: int = 0
    breakdown: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    elapsed_ms: int = 0
    message: Optional[str] = None
    timestamp: datetime


class SubmissionCounts(BaseModel):
    """Per-table property-watch counters."""
    processed: int = 0
    published: int = 0
    pending: int = 0


class PropertyWatchSummary(BaseModel):
    """Result of one property-watch triage run."""
    success: bool
    dry_run: bool = False
    sightings: SubmissionCounts = Field(default_factory=SubmissionCounts)
    storefronts: SubmissionCounts = Field(default_factory=SubmissionCounts)
    projects: SubmissionCounts = Field(default_factory=SubmissionCounts)
    errors: List[str] = Field(default_factory=list)
    elapsed_ms: int = 0
    timestamp: datetime
