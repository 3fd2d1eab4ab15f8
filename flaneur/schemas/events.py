"""
Domain event schemas for the syndication pipelines.

Third-party payloads are loosely typed; every field except identity defaults
so a partial record still validates.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from flaneur.schemas.enrichment import LinkCandidate

AuctionHouse = Literal["Sothebys", "Christies", "Phillips"]
AuctionTier = Literal["Mega", "Standard"]
SeatingType = Literal["Sidewalk", "Both", "Roadway"]
ResidencyType = Literal["Restaurant", "Beach_Club", "Pop_Up_Shop", "Spa", "Hotel_Takeover"]
SubmissionKind = Literal["sighting", "storefront", "project"]


class AuctionEvent(BaseModel):
    """An upcoming sale at one of the major auction houses."""
    event_id: str
    house: AuctionHouse
    title: str
    date: str = Field(..., description="Start date, YYYY-MM-DD")
    end_date: Optional[str] = None
    location: str = "New York"
    tier: AuctionTier = "Standard"
    category: Optional[str] = None
    total_lots: Optional[int] = None
    estimate_range: Optional[str] = None
    url: Optional[str] = None
    matched_keywords: List[str] = Field(default_factory=list)


class GlobalAuctionEvent(AuctionEvent):
    """An auction held in one of the international art hubs."""
    hub: str
    currency: str
    currency_symbol: str
    localized_keywords: List[str] = Field(default_factory=list)


class OutdoorDiningEvent(BaseModel):
    """An open-restaurant filing inside a covered zip code."""
    event_id: str
    restaurant_name: str
    legal_name: str
    address: str
    locale_id: str
    seating_type: SeatingType
    has_alcohol: bool = False
    is_pending: bool = False
    sidewalk_area: Optional[float] = None
    roadway_area: Optional[float] = None
    total_seats: int = 0
    submitted_at: Optional[datetime] = None
    borough: str = "Manhattan"


class ResidencyAnnouncement(BaseModel):
    """A luxury brand opening a seasonal outpost in a vacation hotspot."""
    id: str
    brand_name: str
    brand_category: str
    brand_tier: str
    brand_home_city: str
    hotspot_id: str
    hotspot_name: str
    residency_type: ResidencyType = "Pop_Up_Shop"
    headline: str
    description: str = ""
    opening_date: Optional[str] = None
    closing_date: Optional[str] = None
    source_url: Optional[str] = None


class Story(BaseModel):
    """Generated copy for one domain event, ready for distribution."""
    event_id: str
    headline: str
    body: str
    preview_text: str
    category_label: str
    link_candidates: List[LinkCandidate] = Field(default_factory=list)
    model: str
    prompt_summary: Optional[str] = None


class PropertySubmission(BaseModel):
    """A user-submitted sighting, storefront change or development project."""
    id: str
    kind: SubmissionKind
    neighborhood_id: str
    fields: Dict[str, Any] = Field(default_factory=dict)


class SubmissionTriage(BaseModel):
    """Generated one-line summary with the model's confidence."""
    summary: str
    is_notable: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
