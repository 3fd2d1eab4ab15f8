"""
Residency radar: city brands opening seasonal outposts in vacation hotspots.

A story goes to the hotspot's own locale and to the locales of the feeder
cities whose residents vacation there.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from flaneur.core.logging import get_logger
from flaneur.domains.base import DomainEventPipeline
from flaneur.pipeline.context import PipelineContext
from flaneur.schemas.events import ResidencyAnnouncement
from flaneur.services.event_search import EventSearchClient, GrokEventSearch
from flaneur.services.prompts import INSIDER_PERSONA
from flaneur.utils.text import clean_identifier, slugify

logger = get_logger(__name__)


@dataclass(frozen=True)
class SeasonalHotspot:
    id: str
    name: str
    country: str
    region: str
    season: str
    peak_months: Sequence[int]
    feeder_cities: Sequence[str]
    vibe: str
    locale_id: Optional[str] = None


@dataclass(frozen=True)
class LuxuryBrand:
    name: str
    pattern: "re.Pattern"
    category: str
    home_city: str
    tier: str = "Iconic"


SEASONAL_HOTSPOTS = [
    SeasonalHotspot("st-moritz", "St. Moritz", "Switzerland", "Alps", "Winter", (12, 1, 2, 3),
                    ("New York", "London", "Milan", "Paris", "Geneva"),
                    "Old money ski glamour, après-ski at Badrutt's Palace", "switzerland-st-moritz"),
    SeasonalHotspot("aspen", "Aspen", "USA", "Colorado", "Winter", (12, 1, 2, 3),
                    ("New York", "Los Angeles", "San Francisco", "Chicago", "Miami"),
                    "Celebrity ski scene, Ajax Mountain, Casa Tua crowd", "aspen"),
    SeasonalHotspot("courchevel", "Courchevel 1850", "France", "French Alps", "Winter", (12, 1, 2, 3),
                    ("Paris", "London", "Geneva"),
                    "Cheval Blanc, helicopter arrivals", "france-courchevel"),
    SeasonalHotspot("gstaad", "Gstaad", "Switzerland", "Bernese Alps", "Winter", (12, 1, 2, 3),
                    ("Geneva", "Zurich", "London", "Paris"),
                    "Discreet old money, The Palace, chalet culture"),
    SeasonalHotspot("verbier", "Verbier", "Switzerland", "Valais", "Winter", (12, 1, 2, 3),
                    ("London", "Geneva", "Paris"),
                    "Younger crowd, extreme skiing, Le Chalet d'Adrien"),
    SeasonalHotspot("mykonos", "Mykonos", "Greece", "Cyclades", "Summer", (6, 7, 8, 9),
                    ("London", "Paris", "Milan", "Athens", "Dubai"),
                    "Beach clubs, Nammos, Scorpios, sunset parties", "greece-mykonos"),
    SeasonalHotspot("st-tropez", "Saint-Tropez", "France", "Côte d'Azur", "Summer", (6, 7, 8),
                    ("Paris", "London", "Monaco", "Milan"),
                    "Brigitte Bardot legacy, Club 55, rosé all day", "saint-tropez"),
    SeasonalHotspot("hamptons", "The Hamptons", "USA", "Long Island", "Summer", (5, 6, 7, 8, 9),
                    ("New York",),
                    "NYC escape, farm stands, beach house scene", "the-hamptons"),
    SeasonalHotspot("capri", "Capri", "Italy", "Campania", "Summer", (5, 6, 7, 8, 9),
                    ("Rome", "Milan", "Naples", "London"),
                    "La Fontelina, limoncello, yacht hopping", "italy-capri"),
    SeasonalHotspot("ibiza", "Ibiza", "Spain", "Balearic Islands", "Summer", (5, 6, 7, 8, 9),
                    ("London", "Madrid", "Barcelona", "Paris"),
                    "Superclub culture meets boutique hotels", "spain-ibiza"),
    SeasonalHotspot("st-barts", "St. Barths", "France", "Caribbean", "Winter", (12, 1, 2, 3, 4),
                    ("New York", "Miami", "Paris", "Los Angeles"),
                    "Billionaire beach, Eden Rock, New Year's scene", "st-barts"),
    SeasonalHotspot("marbella", "Marbella", "Spain", "Costa del Sol", "Summer", (5, 6, 7, 8, 9),
                    ("London", "Madrid", "Dubai"),
                    "Puerto Banús, beach clubs, golf lifestyle", "marbella"),
    SeasonalHotspot("amalfi", "Amalfi Coast", "Italy", "Campania", "Summer", (5, 6, 7, 8, 9),
                    ("Rome", "Milan", "London", "New York"),
                    "Positano cliffs, Le Sirenuse, lemons everything", "italy-amalfi"),
    SeasonalHotspot("sardinia", "Porto Cervo", "Italy", "Sardinia", "Summer", (6, 7, 8),
                    ("Milan", "Rome", "Monaco"),
                    "Superyacht central, Billionaire club, Costa Smeralda", "italy-sardinia"),
]

HOTSPOTS_BY_ID = {hotspot.id: hotspot for hotspot in SEASONAL_HOTSPOTS}


def _brand(name, pattern, category, home_city, tier="Iconic"):
    return LuxuryBrand(name, re.compile(pattern, re.IGNORECASE), category, home_city, tier)


MIGRATING_BRANDS = [
    _brand("Nobu", r"\bnobu\b", "Hospitality", "New York/Los Angeles"),
    _brand("Cipriani", r"\bcipriani\b", "Hospitality", "Venice/New York"),
    _brand("Carbone", r"\bcarbone\b", "Hospitality", "New York"),
    _brand("Casa Tua", r"casa\s*tua", "Hospitality", "Miami"),
    _brand("Zuma", r"\bzuma\b", "Hospitality", "London"),
    _brand("Nikki Beach", r"nikki\s*beach", "Hospitality", "Miami"),
    _brand("Bagatelle", r"\bbagatelle\b", "Hospitality", "New York/St. Tropez"),
    _brand("Sexy Fish", r"sexy\s*fish", "Hospitality", "London"),
    _brand("Cecconi's", r"cecconi", "Hospitality", "London", "Aspirational"),
    _brand("Costes", r"\bcostes\b", "Hospitality", "Paris", "Aspirational"),
    _brand("Nammos", r"\bnammos\b", "Hospitality", "Mykonos"),
    _brand("Scorpios", r"\bscorpios\b", "Hospitality", "Mykonos", "Aspirational"),
    _brand("Club 55", r"club\s*55", "Hospitality", "St. Tropez"),
    _brand("Dior", r"\bdior\b", "Fashion", "Paris"),
    _brand("Louis Vuitton", r"louis\s*vuitton|\blv\b", "Fashion", "Paris"),
    _brand("Chanel", r"\bchanel\b", "Fashion", "Paris"),
    _brand("Gucci", r"\bgucci\b", "Fashion", "Florence/Milan"),
    _brand("Jacquemus", r"\bjacquemus\b", "Fashion", "Paris", "Emerging"),
    _brand("Loro Piana", r"loro\s*piana", "Fashion", "Milan"),
    _brand("Brunello Cucinelli", r"brunello\s*cucinelli", "Fashion", "Solomeo"),
    _brand("The Row", r"\bthe\s*row\b", "Fashion", "New York"),
    _brand("Bottega Veneta", r"bottega\s*veneta", "Fashion", "Milan"),
    _brand("Prada", r"\bprada\b", "Fashion", "Milan"),
    _brand("Fendi", r"\bfendi\b", "Fashion", "Rome"),
    _brand("Cartier", r"\bcartier\b", "Jewelry", "Paris"),
    _brand("Bulgari", r"\bbulgari\b|\bbvlgari\b", "Jewelry", "Rome"),
    _brand("Van Cleef & Arpels", r"van\s*cleef", "Jewelry", "Paris"),
    _brand("Rolex", r"\brolex\b", "Jewelry", "Geneva"),
    _brand("Aman", r"\baman\b", "Lifestyle", "Global"),
    _brand("Six Senses", r"six\s*senses", "Lifestyle", "Global", "Aspirational"),
    _brand("Soho House", r"soho\s*house", "Lifestyle", "London", "Aspirational"),
]

FEEDER_CITY_LOCALES = {
    "New York": ("nyc-upper-east-side", "nyc-tribeca", "nyc-soho", "nyc-west-village"),
    "Los Angeles": ("la-beverly-hills", "la-bel-air", "la-malibu", "la-west-hollywood"),
    "London": ("london-mayfair", "london-chelsea", "london-notting-hill", "london-hampstead"),
    "Paris": ("paris-le-marais", "paris-saint-germain-des-pres", "paris-8th-arrondissement"),
    "Milan": ("milan-brera", "milan-quadrilatero"),
    "Miami": ("miami-miami-beach", "miami-design-district"),
    "San Francisco": ("sf-pacific-heights", "sf-nob-hill"),
    "Chicago": ("chicago-gold-coast", "chicago-lincoln-park"),
    "Geneva": ("geneva-old-town",),
    "Monaco": ("monaco-monte-carlo",),
    "Dubai": ("dubai-downtown",),
}

RESIDENCY_TYPES = ("Restaurant", "Beach_Club", "Pop_Up_Shop", "Spa", "Hotel_Takeover")

SEARCH_SYSTEM_PROMPT = """You are a luxury hospitality researcher. Search the web and X for recent announcements of luxury brands opening seasonal pop-ups, restaurants, beach clubs, or hotel residencies at vacation destinations.

Return ONLY a JSON array (no markdown, no explanation). Each object must have:
- brandName: string
- locationName: string
- residencyType: "Restaurant" | "Beach_Club" | "Pop_Up_Shop" | "Spa" | "Hotel_Takeover"
- headline: string
- description: string (1-2 sentences)
- openingDate: string or null (ISO date)
- closingDate: string or null (ISO date)
- sourceUrl: string or null

If no announcements are found, return an empty array: []"""


def match_brand(name: str) -> Optional[LuxuryBrand]:
    return next((brand for brand in MIGRATING_BRANDS if brand.pattern.search(name or "")), None)


def match_hotspot(location: str) -> Optional[SeasonalHotspot]:
    lower = (location or "").lower()
    if not lower:
        return None
    return next(
        (h for h in SEASONAL_HOTSPOTS if h.name.lower() == lower or h.name.lower() in lower),
        None,
    )


def in_season_hotspots(month: int) -> List[SeasonalHotspot]:
    return [h for h in SEASONAL_HOTSPOTS if month in h.peak_months]


def parse_announcements(raw: List[Dict[str, Any]]) -> List[ResidencyAnnouncement]:
    """Whitelisted brands at known hotspots, one per brand and hotspot."""
    announcements = []
    seen = set()
    for item in raw:
        brand = match_brand(item.get("brandName") or item.get("brand_name") or "")
        hotspot = match_hotspot(item.get("locationName") or item.get("location_name") or "")
        if brand is None or hotspot is None:
            continue
        key = (brand.name, hotspot.id)
        if key in seen:
            continue
        seen.add(key)
        residency_type = item.get("residencyType") or item.get("residency_type")
        announcements.append(ResidencyAnnouncement(
            id=f"{slugify(brand.name)}-{hotspot.id}",
            brand_name=brand.name,
            brand_category=brand.category,
            brand_tier=brand.tier,
            brand_home_city=brand.home_city,
            hotspot_id=hotspot.id,
            hotspot_name=hotspot.name,
            residency_type=residency_type if residency_type in RESIDENCY_TYPES else "Pop_Up_Shop",
            headline=item.get("headline") or f"{brand.name} opens in {hotspot.name}",
            description=item.get("description") or "",
            opening_date=item.get("openingDate") or None,
            closing_date=item.get("closingDate") or None,
            source_url=item.get("sourceUrl") or None,
        ))
    return announcements


def target_locales(hotspot: SeasonalHotspot) -> List[str]:
    """The hotspot's locale followed by every feeder-city locale, without repeats."""
    targets = []
    if hotspot.locale_id:
        targets.append(hotspot.locale_id)
    for city in hotspot.feeder_cities:
        for locale_id in FEEDER_CITY_LOCALES.get(city, ()):
            if locale_id not in targets:
                targets.append(locale_id)
    return targets


SAMPLE_ANNOUNCEMENTS = [
    {
        "brandName": "Carbone",
        "locationName": "The Hamptons",
        "residencyType": "Restaurant",
        "headline": "Carbone Opens Summer Outpost in the Hamptons",
        "description": "The Greenwich Village Italian spot brings its red sauce to Montauk for the summer.",
        "sourceUrl": "https://eater.com",
    },
    {
        "brandName": "Dior",
        "locationName": "Mykonos",
        "residencyType": "Beach_Club",
        "headline": "Dior Takes Over Nammos Beach Club in Mykonos",
        "description": "The French house transforms the Psarou Beach club with a summer-long pop-up.",
        "sourceUrl": "https://wwd.com",
    },
    {
        "brandName": "Nobu",
        "locationName": "St. Moritz",
        "residencyType": "Restaurant",
        "headline": "Nobu Returns to St. Moritz for Winter Season",
        "description": "The sushi empire reopens its alpine outpost at Badrutt's Palace for the ski season.",
        "sourceUrl": "https://robbreport.com",
    },
]


class ResidencyRadarPipeline(DomainEventPipeline[ResidencyAnnouncement]):
    """Seasonal brand outposts, syndicated to hotspot and feeder locales."""

    job_name = "sync-residency-radar"

    def __init__(
        self,
        context: PipelineContext,
        search: Optional[EventSearchClient] = None,
        generation_delay: Optional[float] = None,
    ):
        super().__init__(context, generation_delay=generation_delay)
        self.search = search

    async def fetch(self, sample: bool = False, **options) -> List[ResidencyAnnouncement]:
        if sample:
            return parse_announcements(SAMPLE_ANNOUNCEMENTS)
        if self.search is None:
            self.search = GrokEventSearch.from_settings(self.context.settings)

        month = self.context.now().month
        hotspots = ", ".join(h.name for h in in_season_hotspots(month)) or ", ".join(
            h.name for h in SEASONAL_HOTSPOTS
        )
        brands = ", ".join(b.name for b in MIGRATING_BRANDS[:15])
        prompt = (
            "Search for luxury brand hospitality announcements in the last 30 days: new hotel restaurants, "
            "pop-up cafes by fashion houses, seasonal beach clubs, or branded experiences at vacation "
            f"destinations. Focus on brands like {brands} opening in destinations like {hotspots}."
        )
        raw = await self.search.search(prompt, system_prompt=SEARCH_SYSTEM_PROMPT)
        announcements = parse_announcements(raw)
        logger.info("Residency announcements fetched", found=len(raw), matched=len(announcements))
        return announcements

    def event_id(self, event: ResidencyAnnouncement) -> str:
        return event.id

    def target_locale_ids(self, event: ResidencyAnnouncement) -> List[str]:
        return target_locales(HOTSPOTS_BY_ID[event.hotspot_id])

    def base_slug(self, event: ResidencyAnnouncement) -> str:
        return f"residency-{clean_identifier(event.id, 40)}"

    def label_for(self, event: ResidencyAnnouncement) -> str:
        return f"Scene Watch: {HOTSPOTS_BY_ID[event.hotspot_id].season}"

    def link_context(self, event: ResidencyAnnouncement) -> Dict[str, str]:
        return {"locale_name": event.hotspot_name, "city": event.hotspot_name}

    def build_prompt(self, event: ResidencyAnnouncement) -> str:
        hotspot = HOTSPOTS_BY_ID[event.hotspot_id]
        persona = INSIDER_PERSONA.format(locale=hotspot.name)
        return "\n".join([
            f"{persona} You are the Lifestyle Editor.",
            "",
            f"Brand: {event.brand_name}",
            f"- Category: {event.brand_category}",
            f"- Home City: {event.brand_home_city}",
            f"- Tier: {event.brand_tier}",
            "",
            f"Vacation Location: {hotspot.name}, {hotspot.country}",
            f"- Region: {hotspot.region}",
            f"- Season: {hotspot.season}",
            f"- Vibe: {hotspot.vibe}",
            "",
            f"Residency Type: {event.residency_type.replace('_', ' ')}",
            f"Headline from source: {event.headline}",
            f"Description: {event.description}",
            "",
            "Context:",
            "- A famous city brand is opening a vacation outpost",
            f"- Relevant to residents of: {', '.join(hotspot.feeder_cities)}",
            "- Tone: 'Scene Watch'",
            "",
            "Task: Write a 35-word blurb.",
            f"Format headline as: 'Scene Watch: {event.brand_name} lands in {hotspot.name} for the {hotspot.season}'",
            "",
            'Return JSON: {"headline": "...", "body": "...", "link_candidates": [{"text": "exact text from body"}]}',
        ])

    def fallback_story(self, event: ResidencyAnnouncement) -> Dict[str, Any]:
        hotspot = HOTSPOTS_BY_ID[event.hotspot_id]
        return {
            "headline": f"Scene Watch: {event.brand_name} lands in {hotspot.name} for the {hotspot.season}",
            "body": event.description or event.headline,
            "prompt_summary": f"Residency Radar: {event.brand_name} at {hotspot.name}",
        }
