"""
Pydantic schemas package.
"""
from .common import ApiError, ApiResponse, DetailedHealthCheck, HealthCheck
from .content import Article, ArticleSource, Brief, CronExecution, Locale, NewArticle
from .events import (
    AuctionEvent,
    GlobalAuctionEvent,
    OutdoorDiningEvent,
    PropertySubmission,
    ResidencyAnnouncement,
    Story,
    SubmissionTriage,
)
from .pipeline import DomainRunSummary, PropertyWatchSummary, RunSummary, SubmissionCounts

__all__ = [
    # Common
    "ApiError",
    "ApiResponse",
    "HealthCheck",
    "DetailedHealthCheck",

    # Content
    "Locale",
    "Brief",
    "Article",
    "NewArticle",
    "ArticleSource",
    "CronExecution",

    # Domain events
    "AuctionEvent",
    "GlobalAuctionEvent",
    "OutdoorDiningEvent",
    "ResidencyAnnouncement",
    "PropertySubmission",
    "SubmissionTriage",
    "Story",

    # Run summaries
    "RunSummary",
    "DomainRunSummary",
    "SubmissionCounts",
    "PropertyWatchSummary",
]
