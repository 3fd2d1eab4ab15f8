"""
Content store schemas: locales, briefs, articles and their citations.

Rows coming back from PostgREST are validated into these models on ingress so
that downstream code never re-checks for missing fields.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from flaneur.utils.dates import resolve_timezone


class ArticleStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    REJECTED = "rejected"


class SourceType(str, Enum):
    PUBLICATION = "publication"
    PLATFORM = "platform"
    X_USER = "x_user"
    OTHER = "other"


# Article types that run their own enrichment and are never picked up here
SELF_ENRICHING_ARTICLE_TYPES = ("brief_summary", "look_ahead", "weekly_recap")

BRIEF_SUMMARY_TYPE = "brief_summary"


class Locale(BaseModel):
    """A coverage area (a row of ``neighborhoods``)."""
    id: str = Field(..., description="Locale id, e.g. nyc-tribeca")
    name: str = Field(..., description="Display name")
    city: str = Field(default="", description="City display name")
    country: str = Field(default="USA", description="Country name")
    timezone: Optional[str] = Field(None, description="IANA timezone")
    currency: Optional[str] = Field(None, description="ISO currency code")
    has_listings_api: bool = Field(default=False)
    enable_crowdsourced_sightings: bool = Field(default=False)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("city", mode="before")
    @classmethod
    def _city_default(cls, v):
        return v or ""

    @field_validator("country", mode="before")
    @classmethod
    def _country_default(cls, v):
        return v or "USA"

    @field_validator("has_listings_api", "enable_crowdsourced_sightings", mode="before")
    @classmethod
    def _flag_default(cls, v):
        return bool(v)

    @property
    def tz(self):
        """Resolved pytz timezone for this locale."""
        return resolve_timezone(self.timezone, self.country)


def _locale_from_row(row: Dict[str, Any]) -> Locale:
    hood = row.pop("neighborhoods", None)
    if isinstance(hood, list):
        hood = hood[0] if hood else None
    locale_id = row.get("neighborhood_id")
    hood = dict(hood) if hood else {"name": locale_id}
    hood.setdefault("id", locale_id)
    return Locale.model_validate(hood)


class Brief(BaseModel):
    """A generated daily digest awaiting (or holding) enrichment."""
    id: str
    locale: Locale
    content: str = ""
    headline: Optional[str] = None
    generated_at: datetime
    enriched_content: Optional[str] = None
    enriched_categories: Optional[List[Dict[str, Any]]] = None
    enriched_at: Optional[datetime] = None
    enrichment_model: Optional[str] = None
    subject_teaser: Optional[str] = None
    email_teaser: Optional[str] = None

    @field_validator("content", mode="before")
    @classmethod
    def _content_default(cls, v):
        return v or ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Brief":
        data = dict(row)
        locale = _locale_from_row(data)
        return cls.model_validate({**data, "locale": locale})


class Article(BaseModel):
    """A published content unit of a locale."""
    id: str
    locale: Locale
    headline: str = ""
    body_text: str = ""
    preview_text: Optional[str] = None
    slug: Optional[str] = None
    status: ArticleStatus = ArticleStatus.PUBLISHED
    published_at: Optional[datetime] = None
    article_type: Optional[str] = None
    brief_id: Optional[str] = None
    enriched_at: Optional[datetime] = None
    enrichment_model: Optional[str] = None

    @field_validator("headline", "body_text", mode="before")
    @classmethod
    def _text_default(cls, v):
        return v or ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Article":
        data = dict(row)
        locale = _locale_from_row(data)
        return cls.model_validate({**data, "locale": locale})


class ArticleSource(BaseModel):
    """A citation attached to an article."""
    article_id: Optional[str] = None
    source_name: str
    source_type: SourceType = SourceType.PUBLICATION
    source_url: Optional[str] = None


class NewArticle(BaseModel):
    """Insert payload for the ``articles`` table."""
    neighborhood_id: str
    headline: str
    body_text: str
    preview_text: str
    slug: str
    status: ArticleStatus = ArticleStatus.PUBLISHED
    published_at: datetime
    author_type: str = "ai"
    ai_model: Optional[str] = None
    ai_prompt: Optional[str] = None
    article_type: Optional[str] = None
    category_label: Optional[str] = None
    brief_id: Optional[str] = None
    image_url: str = ""
    enriched_at: Optional[datetime] = None
    enrichment_model: Optional[str] = None


class ContinuityItem(BaseModel):
    """Recent locale content handed to a generation call for continuity."""
    date: str = Field(..., description="Day label in the locale timezone")
    headline: str
    excerpt: Optional[str] = None
    kind: Literal["brief", "article"]
    article_type: Optional[str] = None
    occurred_at: datetime = Field(..., exclude=True)


class CronExecution(BaseModel):
    """Audit row written once per pipeline run."""
    job_name: str
    started_at: datetime
    completed_at: datetime
    success: bool
    articles_created: int = 0
    errors: Optional[List[str]] = None
    response_data: Dict[str, Any] = Field(default_factory=dict)
    triggered_by: str = "cron"
