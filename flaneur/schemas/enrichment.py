"""
Enrichment request/result schemas.
"""
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flaneur.schemas.content import ContinuityItem, Locale
from flaneur.utils.dates import utcnow

ArticleTypeHint = Literal["daily_brief", "weekly_recap", "look_ahead", "rss_article"]


class SourceRef(BaseModel):
    """A cited source as returned by the generation service."""
    name: str
    url: Optional[str] = None


class EnrichedStory(BaseModel):
    """One verified story inside a category."""
    model_config = ConfigDict(populate_by_name=True)

    entity: str = ""
    source: Optional[SourceRef] = None
    secondary_source: Optional[SourceRef] = Field(None, alias="secondarySource")
    context: str = ""
    note: Optional[str] = None
    google_fallback_url: Optional[str] = Field(None, alias="googleFallbackUrl")

    @field_validator("source", "secondary_source", mode="before")
    @classmethod
    def _drop_nameless_source(cls, v):
        if isinstance(v, dict) and not v.get("name"):
            return None
        return v

    @field_validator("entity", "context", mode="before")
    @classmethod
    def _text_default(cls, v):
        return v or ""


class EnrichedCategory(BaseModel):
    """A named group of stories, e.g. "Food & Drink"."""
    name: str
    stories: List[EnrichedStory] = Field(default_factory=list)


class LinkCandidate(BaseModel):
    """A span of generated prose that should become a search link."""
    text: str


class EnrichmentRequest(BaseModel):
    """Input of one enrichment call."""
    content: str
    locale: Locale
    model: str
    continuity: List[ContinuityItem] = Field(default_factory=list)
    article_type: ArticleTypeHint = "daily_brief"
    generated_at: Optional[datetime] = None


class EnrichmentResult(BaseModel):
    """Output of one enrichment call."""
    content: str
    categories: List[EnrichedCategory] = Field(default_factory=list)
    model: str
    subject_teaser: Optional[str] = None
    email_teaser: Optional[str] = None
    link_candidates: List[LinkCandidate] = Field(default_factory=list)
    processed_at: datetime = Field(default_factory=utcnow)

    def categories_payload(self) -> List[dict]:
        """Categories as stored in ``enriched_categories``."""
        return [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in self.categories]


def parse_categories(raw: Any) -> List[EnrichedCategory]:
    """Validate a loosely-typed category list, skipping malformed entries."""
    if not isinstance(raw, list):
        return []
    categories = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        stories = []
        for story in item.get("stories") or []:
            try:
                stories.append(EnrichedStory.model_validate(story))
            except ValidationError:
                continue
        name = item.get("name")
        if name:
            categories.append(EnrichedCategory(name=str(name), stories=stories))
    return categories


def parse_link_candidates(raw: Any) -> List[LinkCandidate]:
    """Keep candidates whose text is a string of at least two characters."""
    if not isinstance(raw, list):
        return []
    candidates = []
    for item in raw:
        text = item.get("text") if isinstance(item, dict) else None
        if isinstance(text, str) and len(text.strip()) >= 2:
            candidates.append(LinkCandidate(text=text.strip()))
    return candidates
