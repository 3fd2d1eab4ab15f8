"""
NYC auction calendar.

Searches the Sotheby's, Christie's and Phillips New York calendars, keeps
Blue Chip sales, and syndicates each story to the Northeast Luxury Corridor.
"""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flaneur.core.logging import get_logger
from flaneur.domains.base import DomainEventPipeline
from flaneur.pipeline.context import PipelineContext
from flaneur.schemas.events import AuctionEvent
from flaneur.services.event_search import EventSearchClient, GrokEventSearch
from flaneur.services.prompts import INSIDER_PERSONA
from flaneur.utils.text import clean_identifier

logger = get_logger(__name__)

BLUE_CHIP_KEYWORDS = [
    "evening sale",
    "important",
    "magnificent",
    "contemporary",
    "impressionist",
    "modern art",
    "modern design",
    "design",
    "luxury week",
    "the one",
    "masterpiece",
    "masterworks",
    "exceptional",
    "20th century",
    "21st century",
    "post-war",
    "old masters",
    "latin american",
    "asian art",
    "american art",
    "jewelry",
    "jewels",
    "watches",
    "handbags",
    "fashion",
]

MEGA_TIER_KEYWORDS = ["evening sale", "magnificent", "the one", "masterpiece", "exceptional"]

EXCLUSION_KEYWORDS = [
    "wine",
    "spirits",
    "whisky",
    "whiskey",
    "posters",
    "online only",
    "online auction",
    "prints",
    "multiples",
    "books",
    "manuscripts",
    "maps",
    "photographs",
    "cameras",
    "interiors",
    "rugs",
    "carpets",
]

NORTHEAST_LUXURY_CORRIDOR = [
    "tribeca",
    "soho",
    "west-village",
    "greenwich-village",
    "chelsea",
    "meatpacking",
    "hudson-yards",
    "upper-east-side",
    "upper-west-side",
    "fidi",
    "williamsburg",
    "brooklyn-west",
    "westchester",
    "old-westbury",
    "the-hamptons",
    "greenwich",
    "new-canaan",
    "darien",
    "westport",
    "bergen-gold",
    "montclair",
    "summit",
    "the-hills",
    "marthas-vineyard",
    "nantucket",
]

AUCTION_URLS = {
    "Sothebys": "https://www.sothebys.com/en/calendar",
    "Christies": "https://www.christies.com/en/calendar",
    "Phillips": "https://www.phillips.com/calendar",
}

HOUSE_STYLE = {
    "Sothebys": "Sotheby's brings centuries of expertise",
    "Christies": "Christie's signature white-glove presentation",
    "Phillips": "Phillips' contemporary edge and emerging categories",
}

HOUSE_DISPLAY = {"Sothebys": "Sotheby's", "Christies": "Christie's", "Phillips": "Phillips"}

MAX_MEGA = 5
MAX_STANDARD = 5

SEARCH_SYSTEM_PROMPT = "You are an art market research assistant. Return ONLY a valid JSON array, no commentary."


def blue_chip_keywords(title: str) -> Tuple[bool, List[str]]:
    """
    Apply the Blue Chip filter to a sale title.

    Exclusions are checked first; a title passes when any whitelist keyword
    is a substring of it. Returns the pass flag and the matched keywords.
    """
    lower = title.lower()
    if any(excluded in lower for excluded in EXCLUSION_KEYWORDS):
        return False, []
    matched = [kw for kw in BLUE_CHIP_KEYWORDS if kw in lower]
    return bool(matched), matched


def auction_tier(title: str, keywords: Iterable[str]) -> str:
    lower = title.lower()
    keywords = set(keywords)
    if any(kw in lower or kw in keywords for kw in MEGA_TIER_KEYWORDS):
        return "Mega"
    return "Standard"


def normalize_house(raw: Optional[str]) -> str:
    value = re.sub(r"['’]", "", raw or "").lower()
    if "christie" in value:
        return "Christies"
    if "phillips" in value:
        return "Phillips"
    return "Sothebys"


def parse_auction_date(value: Optional[str], today: datetime) -> str:
    if not value:
        return today.strftime("%Y-%m-%d")
    try:
        return datetime.fromisoformat(str(value)[:10]).strftime("%Y-%m-%d")
    except ValueError:
        return str(value)


def make_event_id(house: str, title: str, date: str) -> str:
    return f"{house.lower()}-{re.sub(r'[^a-zA-Z0-9]', '-', title)[:40]}-{date}"


def int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def parse_auction_events(raw: List[Dict[str, Any]], today: datetime, location: str = "New York") -> List[AuctionEvent]:
    """Validate search results into Blue Chip AuctionEvents, soonest first, Mega before Standard."""
    events = []
    for item in raw:
        title = (item.get("title") or "").strip()
        if not title:
            continue
        passes, keywords = blue_chip_keywords(title)
        if not passes:
            continue
        house = normalize_house(item.get("house"))
        date = parse_auction_date(item.get("date"), today)
        end_date = item.get("endDate") or item.get("end_date")
        events.append(AuctionEvent(
            event_id=make_event_id(house, title, item.get("date") or date),
            house=house,
            title=title,
            date=date,
            end_date=parse_auction_date(end_date, today) if end_date else None,
            location=location,
            tier=auction_tier(title, keywords),
            category=item.get("category") or None,
            total_lots=int_or_none(item.get("totalLots") or item.get("total_lots")),
            estimate_range=item.get("estimateRange") or item.get("estimate_range") or None,
            url=item.get("url") or AUCTION_URLS[house],
            matched_keywords=keywords,
        ))
    events.sort(key=lambda e: (e.date, 0 if e.tier == "Mega" else 1))
    return events


def select_top_by_tier(events: List[AuctionEvent], max_mega: int = MAX_MEGA, max_standard: int = MAX_STANDARD):
    """Keep the first ``max_mega`` Mega and ``max_standard`` Standard sales, Mega first."""
    mega = [e for e in events if e.tier == "Mega"][:max_mega]
    standard = [e for e in events if e.tier == "Standard"][:max_standard]
    return mega + standard


def sample_auction_events(today: datetime) -> List[AuctionEvent]:
    """Fixed sales used to exercise the pipeline without a search call."""
    raw = [
        {
            "house": "Sothebys",
            "title": "Contemporary Art Evening Sale",
            "date": (today + timedelta(days=3)).strftime("%Y-%m-%d"),
            "category": "Contemporary Art",
            "totalLots": 45,
            "estimateRange": "$150M - $200M",
        },
        {
            "house": "Christies",
            "title": "Magnificent Jewels",
            "date": (today + timedelta(days=5)).strftime("%Y-%m-%d"),
            "category": "Jewelry",
            "totalLots": 250,
            "estimateRange": "$40M - $60M",
        },
        {
            "house": "Phillips",
            "title": "20th Century & Contemporary Art Day Sale",
            "date": (today + timedelta(days=6)).strftime("%Y-%m-%d"),
            "category": "Contemporary Art",
            "totalLots": 180,
        },
    ]
    return parse_auction_events(raw, today)


def auction_search_prompt(days: int, city: str = "New York") -> str:
    return (
        f"Search for upcoming auctions at Sotheby's, Christie's, and Phillips in {city} within the next "
        f"{days} days. Include live in-person auctions only (not online-only sales).\n\n"
        "Return a JSON array of objects with these fields:\n"
        '- "house": "Sothebys" or "Christies" or "Phillips"\n'
        '- "title": auction title (string)\n'
        '- "date": start date in YYYY-MM-DD format (string)\n'
        '- "endDate": end date in YYYY-MM-DD format if multi-day, or null\n'
        '- "category": auction category like "Contemporary Art", "Jewelry", "Watches" (string)\n'
        '- "totalLots": number of lots if known, or null\n'
        '- "estimateRange": total sale estimate if known like "$50M - $75M", or null\n'
        '- "url": link to the auction page if known, or null\n\n'
        "If no upcoming auctions are found, return an empty array []."
    )


def story_data_lines(event: AuctionEvent) -> List[str]:
    when = event.date
    if re.match(r"^\d{4}-\d{2}-\d{2}$", event.date):
        day = datetime.strptime(event.date, "%Y-%m-%d")
        when = f"{day:%A, %B} {day.day}"
    lines = [
        f"- Auction House: {event.house}",
        f"- Title: {event.title}",
        f"- Date: {when}",
        f"- Location: {event.location}",
        f"- Tier: {event.tier}",
        f"- Category: {event.category or 'Fine Art & Luxury'}",
    ]
    if event.total_lots:
        lines.append(f"- Total Lots: {event.total_lots}")
    if event.estimate_range:
        lines.append(f"- Estimate Range: {event.estimate_range}")
    return lines


STORY_JSON_SHAPE = """Return JSON:
{
  "headline": "Headline mentioning house and key category (under 70 chars)",
  "body": "description emphasizing prestige and collector appeal",
  "previewText": "One sentence teaser for feed",
  "link_candidates": [{"text": "exact text from body"}]
}"""


class AuctionCalendarPipeline(DomainEventPipeline[AuctionEvent]):
    """Blue Chip NYC sales, hub & spoke to the Northeast corridor."""

    job_name = "sync-auction-calendar"

    def __init__(
        self,
        context: PipelineContext,
        search: Optional[EventSearchClient] = None,
        generation_delay: Optional[float] = None,
    ):
        super().__init__(context, generation_delay=generation_delay)
        self.search = search

    async def fetch(self, sample: bool = False, days: int = 14, **options) -> List[AuctionEvent]:
        today = self.context.now()
        if sample:
            logger.info("Using sample auction events")
            return sample_auction_events(today)
        if self.search is None:
            self.search = GrokEventSearch.from_settings(self.context.settings)
        raw = await self.search.search(auction_search_prompt(days), system_prompt=SEARCH_SYSTEM_PROMPT)
        events = parse_auction_events(raw, today)
        logger.info("NYC auctions fetched", found=len(raw), blue_chip=len(events))
        return events

    def select(self, events: List[AuctionEvent]) -> List[AuctionEvent]:
        return select_top_by_tier(events)

    def event_id(self, event: AuctionEvent) -> str:
        return event.event_id

    def target_locale_ids(self, event: AuctionEvent) -> List[str]:
        return list(NORTHEAST_LUXURY_CORRIDOR)

    def base_slug(self, event: AuctionEvent) -> str:
        return f"auction-{clean_identifier(event.event_id, 30)}"

    def label_for(self, event: AuctionEvent) -> str:
        return "Auction: Marquee Sale" if event.tier == "Mega" else "Auction Watch"

    def link_context(self, event: AuctionEvent) -> Dict[str, str]:
        return {"locale_name": "Manhattan", "city": "New York"}

    def build_prompt(self, event: AuctionEvent) -> str:
        if event.tier == "Mega":
            tone = (
                "Tone: 'Destination Event'. This is a marquee sale that serious collectors travel for. "
                "Imply it's worth the drive from Greenwich or the flight from Nantucket."
            )
        else:
            tone = "Tone: 'Informed Insider'. A solid sale for engaged collectors. Mention specific categories."
        persona = INSIDER_PERSONA.format(locale="the Tri-State area and the Hamptons/Nantucket")
        return "\n".join([
            f"{persona} You are the Art Market Editor.",
            "",
            "Writing Style:",
            f"- {tone}",
            "- Reference the auction house's reputation",
            "- If known, mention notable lots or estimate ranges",
            "- No emojis",
            "",
            "Data:",
            *story_data_lines(event),
            f"- Keywords: {', '.join(event.matched_keywords)}",
            "",
            f"House Note: {HOUSE_STYLE[event.house]}",
            "",
            "Task: Write a 45-word blurb about this upcoming auction.",
            "",
            STORY_JSON_SHAPE,
            "",
            "Include 2-4 link candidates for key entities mentioned in the body.",
        ])

    def fallback_story(self, event: AuctionEvent) -> Dict[str, Any]:
        house = HOUSE_DISPLAY[event.house]
        return {
            "headline": f"{house}: {event.title}",
            "body": f"{event.title} at {house} on {event.date}.",
            "preview_text": f"Major auction at {house}.",
            "prompt_summary": f"Auction Watch: {event.house} {event.title} ({event.tier})",
        }
