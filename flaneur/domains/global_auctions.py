"""
Global auction calendar: London, Paris, Hong Kong, Los Angeles and Geneva.

Each hub is searched separately; its stories are written in the hub's tone
and currency and syndicated to the hub's spoke locales only.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from flaneur.core.logging import get_logger
from flaneur.domains.auctions import (
    HOUSE_DISPLAY,
    HOUSE_STYLE,
    MAX_MEGA,
    MAX_STANDARD,
    SEARCH_SYSTEM_PROMPT,
    STORY_JSON_SHAPE,
    auction_search_prompt,
    auction_tier,
    blue_chip_keywords,
    make_event_id,
    normalize_house,
    parse_auction_date,
    select_top_by_tier,
    int_or_none,
    story_data_lines,
)
from flaneur.domains.base import DomainEventPipeline
from flaneur.pipeline.context import PipelineContext
from flaneur.schemas.events import GlobalAuctionEvent
from flaneur.services.event_search import EventSearchClient, GrokEventSearch
from flaneur.utils.text import clean_identifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArtHub:
    """An international auction city and the locales it feeds."""
    key: str
    city: str
    currency: str
    currency_symbol: str
    target_feeds: Sequence[str]
    tone: str
    tone_guidance: str
    landmarks: Sequence[str]
    regional_keywords: Sequence[str]


ART_HUBS = {
    "London": ArtHub(
        key="London",
        city="London",
        currency="GBP",
        currency_symbol="£",
        target_feeds=("london-mayfair", "london-chelsea", "london-kensington", "london-notting-hill", "london-hampstead"),
        tone="Traditional & Sharp",
        tone_guidance="Reference Bond Street or King Street. Old money meets new collectors.",
        landmarks=("Bond Street", "King Street", "St James's"),
        regional_keywords=("old master", "british art", "impressionist", "english furniture"),
    ),
    "Paris": ArtHub(
        key="Paris",
        city="Paris",
        currency="EUR",
        currency_symbol="€",
        target_feeds=("paris-7th-arr", "paris-16th-arr", "paris-le-marais", "paris-saint-germain"),
        tone="Chic & Intellectual",
        tone_guidance="Reference Avenue Matignon or Drouot. Design and surrealism carry the room.",
        landmarks=("Drouot", "Avenue Matignon", "Rue du Faubourg Saint-Honoré"),
        regional_keywords=("design", "surrealist", "art d'asie", "mobilier", "art nouveau"),
    ),
    "Hong_Kong": ArtHub(
        key="Hong_Kong",
        city="Hong Kong",
        currency="HKD",
        currency_symbol="HK$",
        target_feeds=("hong-kong-central", "hong-kong-soho", "hong-kong-the-peak"),
        tone="Fast-Paced & Investment Heavy",
        tone_guidance="Reference the Convention Centre or Pacific Place. Collectors treat art as an asset class.",
        landmarks=("Hong Kong Convention Centre", "Pacific Place", "The Peninsula"),
        regional_keywords=("20th century", "contemporary asian", "watches", "chinese works of art", "southeast asian"),
    ),
    "Los_Angeles": ArtHub(
        key="Los_Angeles",
        city="Los Angeles",
        currency="USD",
        currency_symbol="$",
        target_feeds=("la-beverly-hills", "la-west-hollywood", "la-santa-monica", "la-bel-air", "la-brentwood"),
        tone="Hollywood Glamour & Contemporary Edge",
        tone_guidance="Reference Beverly Hills or the Westside. Celebrity collections and California art lead.",
        landmarks=("Beverly Hills", "West Hollywood", "the Westside"),
        regional_keywords=("california art", "contemporary", "photography", "design", "pop art"),
    ),
    "Geneva": ArtHub(
        key="Geneva",
        city="Geneva",
        currency="CHF",
        currency_symbol="CHF ",
        target_feeds=("geneva-old-town", "zurich-bahnhofstrasse", "european-vacation"),
        tone="Stealth Wealth",
        tone_guidance="Reference the lakefront or Hotel des Bergues. Swiss collectors value discretion above all.",
        landmarks=("Hotel des Bergues", "Quai du Mont-Blanc", "Place Vendôme"),
        regional_keywords=("luxury", "watches", "jewels", "gemstones", "rare diamonds", "patek philippe", "rolex daytona"),
    ),
}


def passes_hub_filter(title: str, hub: ArtHub) -> Dict[str, Any]:
    """
    Base Blue Chip filter OR a regional keyword match.

    Returns ``passes`` with the base and regional keywords that matched.
    """
    passes, keywords = blue_chip_keywords(title)
    lower = title.lower()
    regional = [kw for kw in hub.regional_keywords if kw in lower]
    return {"passes": passes or bool(regional), "keywords": keywords, "regional": regional}


def parse_hub_events(raw: List[Dict[str, Any]], hub: ArtHub, today: datetime) -> List[GlobalAuctionEvent]:
    events = []
    for item in raw:
        title = (item.get("title") or "").strip()
        if not title:
            continue
        result = passes_hub_filter(title, hub)
        if not result["passes"]:
            continue
        house = normalize_house(item.get("house"))
        date = parse_auction_date(item.get("date"), today)
        end_date = item.get("endDate") or item.get("end_date")
        events.append(GlobalAuctionEvent(
            event_id=f"{hub.key.lower()}-{make_event_id(house, title, item.get('date') or date)}",
            house=house,
            title=title,
            date=date,
            end_date=parse_auction_date(end_date, today) if end_date else None,
            location=hub.city,
            tier=auction_tier(title, result["keywords"]),
            category=item.get("category") or None,
            total_lots=int_or_none(item.get("totalLots") or item.get("total_lots")),
            estimate_range=item.get("estimateRange") or item.get("estimate_range") or None,
            url=item.get("url") or None,
            matched_keywords=result["keywords"],
            hub=hub.key,
            currency=hub.currency,
            currency_symbol=hub.currency_symbol,
            localized_keywords=result["regional"],
        ))
    events.sort(key=lambda e: (e.date, 0 if e.tier == "Mega" else 1))
    return events


class GlobalAuctionCalendarPipeline(DomainEventPipeline[GlobalAuctionEvent]):
    """Per-hub Blue Chip sales syndicated to each hub's spokes."""

    job_name = "sync-global-auction-calendar"

    def __init__(
        self,
        context: PipelineContext,
        search: Optional[EventSearchClient] = None,
        hubs: Optional[Sequence[str]] = None,
        generation_delay: Optional[float] = None,
    ):
        super().__init__(context, generation_delay=generation_delay)
        self.search = search
        self.hubs = [ART_HUBS[key] for key in (hubs or ART_HUBS.keys())]

    async def fetch(self, days: int = 14, **options) -> List[GlobalAuctionEvent]:
        if self.search is None:
            self.search = GrokEventSearch.from_settings(self.context.settings)
        today = self.context.now()
        events: List[GlobalAuctionEvent] = []
        for hub in self.hubs:
            try:
                raw = await self.search.search(auction_search_prompt(days, hub.city), system_prompt=SEARCH_SYSTEM_PROMPT)
            except Exception as e:
                logger.error("Hub search failed", hub=hub.key, error=str(e))
                continue
            hub_events = parse_hub_events(raw, hub, today)
            logger.info("Hub auctions fetched", hub=hub.key, found=len(raw), qualifying=len(hub_events))
            events.extend(hub_events)
        return events

    def select(self, events: List[GlobalAuctionEvent]) -> List[GlobalAuctionEvent]:
        selected = []
        for hub in self.hubs:
            hub_events = [e for e in events if e.hub == hub.key]
            selected.extend(select_top_by_tier(hub_events, MAX_MEGA, MAX_STANDARD))
        return selected

    def event_id(self, event: GlobalAuctionEvent) -> str:
        return event.event_id

    def target_locale_ids(self, event: GlobalAuctionEvent) -> List[str]:
        return list(ART_HUBS[event.hub].target_feeds)

    def base_slug(self, event: GlobalAuctionEvent) -> str:
        return f"global-auction-{clean_identifier(event.event_id, 40)}"

    def label_for(self, event: GlobalAuctionEvent) -> str:
        return "Auction: Marquee Sale" if event.tier == "Mega" else "Auction Watch"

    def link_context(self, event: GlobalAuctionEvent) -> Dict[str, str]:
        return {"locale_name": event.location, "city": event.location}

    def build_prompt(self, event: GlobalAuctionEvent) -> str:
        hub = ART_HUBS[event.hub]
        if event.tier == "Mega":
            tier_guidance = "This is a MARQUEE SALE. Collectors fly in specifically for this. Emphasize prestige and rarity."
        else:
            tier_guidance = "A solid sale for engaged collectors. Mention categories that appeal to local tastes."
        return "\n".join([
            f"You are the Art Market Editor for Flâneur in {event.location}.",
            "",
            f"Tone: {hub.tone}. {hub.tone_guidance}",
            "",
            "Writing Style:",
            f"- {tier_guidance}",
            "- Reference the auction house's reputation",
            f"- Use the correct local currency symbol ({event.currency_symbol.strip()})",
            "- No emojis",
            "",
            "Data:",
            *story_data_lines(event),
            f"- Blue Chip Keywords: {', '.join(event.matched_keywords) or 'N/A'}",
            f"- Regional Keywords: {', '.join(event.localized_keywords) or 'N/A'}",
            "",
            f"House Note: {HOUSE_STYLE[event.house]}",
            f"Reference Landmarks: {', '.join(hub.landmarks)}",
            "",
            "Task: Write a 35-word blurb about this upcoming auction for local residents.",
            "",
            STORY_JSON_SHAPE,
            "",
            "Include 1-3 link candidates for key entities mentioned in the body.",
        ])

    def fallback_story(self, event: GlobalAuctionEvent) -> Dict[str, Any]:
        house = HOUSE_DISPLAY[event.house]
        return {
            "headline": f"Auction Alert: {house} brings {event.title} to {event.location}",
            "body": f"The collectors are circling {event.location} for this key sale.",
            "preview_text": f"Major auction at {house} in {event.location}.",
            "prompt_summary": f"Global Auction Watch: {event.hub} {event.house} {event.title} ({event.tier})",
        }
