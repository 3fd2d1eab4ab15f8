"""
Alfresco watch: new outdoor dining setups from NYC Open Restaurants filings.

Filings are geofenced by zip code, chains are dropped, and each story goes to
the single locale the restaurant belongs to.
"""
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

from flaneur.core.logging import get_logger
from flaneur.domains.base import DomainEventPipeline
from flaneur.pipeline.context import PipelineContext
from flaneur.schemas.events import OutdoorDiningEvent
from flaneur.services.open_data import OpenDataClient
from flaneur.utils.dates import parse_timestamp
from flaneur.utils.text import clean_identifier

logger = get_logger(__name__)

CHAIN_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"dunkin",
        r"subway",
        r"starbucks",
        r"mcdonald",
        r"burger king",
        r"wendy'?s",
        r"taco bell",
        r"chipotle",
        r"panera",
        r"panda express",
        r"chick-fil-a",
        r"popeyes",
        r"domino",
        r"papa john",
        r"pizza hut",
        r"kfc",
        r"five guys",
        r"shake shack",
        r"sweetgreen",
        r"cava",
        r"chopt",
        r"dig inn",
        r"just salad",
        r"pret a manger",
        r"au bon pain",
        r"tim hortons",
        r"baskin.?robbins",
        r"cold stone",
        r"dairy queen",
        r"jamba",
        r"smoothie king",
        r"7.?eleven",
        r"wawa",
        r"applebee",
        r"chili'?s",
        r"olive garden",
        r"red lobster",
        r"outback",
        r"cheesecake factory",
        r"ihop",
        r"denny'?s",
        r"waffle house",
        r"buffalo wild wings",
        r"hooters",
        r"dave.?buster",
    )
]

# Locale id -> (display name, zips)
NYC_ZIP_LOCALES = {
    "chelsea": ("Chelsea", ("10001", "10011")),
    "greenwich-village": ("Greenwich Village", ("10003", "10012", "10014")),
    "west-village": ("West Village", ("10014",)),
    "hudson-yards": ("Hudson Yards", ("10001", "10018")),
    "meatpacking": ("Meatpacking District", ("10014",)),
    "fidi": ("FiDi", ("10004", "10005", "10006", "10007", "10038")),
    "upper-east-side": ("Upper East Side", ("10021", "10028", "10065", "10075", "10128")),
    "upper-west-side": ("Upper West Side", ("10023", "10024", "10025")),
    "williamsburg": ("Williamsburg", ("11211", "11249")),
    "dumbo": ("Dumbo", ("11201",)),
    "cobble-hill": ("Cobble Hill", ("11201", "11231")),
    "park-slope": ("Park Slope", ("11215", "11217")),
    "tribeca": ("Tribeca", ("10007", "10013")),
    "soho": ("SoHo", ("10012", "10013")),
    "noho": ("NoHo", ("10003", "10012")),
    "nolita": ("Nolita", ("10012", "10013")),
}

ALL_TARGET_ZIPS = sorted({z for _, zips in NYC_ZIP_LOCALES.values() for z in zips})

MEATPACKING_MARKERS = ("MEATPACKING", "GANSEVOORT", "LITTLE W 12", "WASHINGTON ST")
WEST_VILLAGE_MARKERS = ("BLEECKER", "CHRISTOPHER", "PERRY", "CHARLES", "W 4", "BANK ST", "BETHUNE")
HUDSON_YARDS_MARKERS = ("HUDSON YARDS", "11TH AVE", "12TH AVE")

SEATING_PRIORITY = {"Sidewalk": 0, "Both": 1, "Roadway": 2}
SEATS_PER_SQFT = 25
MAX_PER_LOCALE = 2


def is_chain(name: Optional[str]) -> bool:
    return bool(name) and any(pattern.search(name) for pattern in CHAIN_PATTERNS)


def locale_for_zip(zip_code: str, address: str = "") -> Optional[str]:
    """
    Resolve a zip (and street address, for shared zips) to a locale id.

    10001 splits Chelsea from Hudson Yards and 10014 splits the Meatpacking
    District and the West Village from Greenwich Village by street name.
    """
    matches = [locale_id for locale_id, (_, zips) in NYC_ZIP_LOCALES.items() if zip_code in zips]
    if not matches:
        return None
    if len(matches) == 1:
        return matches[0]
    upper = (address or "").upper()
    if zip_code == "10001":
        return "hudson-yards" if any(m in upper for m in HUDSON_YARDS_MARKERS) else "chelsea"
    if zip_code == "10014":
        if any(m in upper for m in MEATPACKING_MARKERS):
            return "meatpacking"
        if any(m in upper for m in WEST_VILLAGE_MARKERS):
            return "west-village"
        return "greenwich-village"
    return matches[0]


def _yes(value: Any) -> bool:
    return str(value or "").strip().lower() == "yes"


def _area(value: Any) -> Optional[float]:
    try:
        area = float(value or 0)
    except (TypeError, ValueError):
        return None
    return area or None


def _seating_type(sidewalk: bool, roadway: bool) -> str:
    if sidewalk and roadway:
        return "Both"
    if sidewalk:
        return "Sidewalk"
    return "Roadway"


def parse_dining_events(rows: List[Dict[str, Any]]) -> List[OutdoorDiningEvent]:
    """
    Turn raw filings into prioritised dining events.

    Chains are dropped before anything else, whatever their approval status.
    Ordering: sidewalk, then both, then roadway; alcohol first; newest first.
    """
    events = []
    for row in rows:
        name = row.get("doing_business_as_dba") or row.get("restaurant_name") or row.get("legal_business_name")
        name = name or "Unknown Restaurant"
        if is_chain(name):
            continue

        zip_code = str(row.get("zip") or "")
        address = row.get("business_address") or f"{row.get('building') or ''} {row.get('street') or ''}".strip()
        locale_id = locale_for_zip(zip_code, address)
        if locale_id is None:
            continue

        sidewalk_approved = _yes(row.get("approved_for_sidewalk_seating"))
        roadway_approved = _yes(row.get("approved_for_roadway_seating"))
        sidewalk_interest = _yes(row.get("seating_interest_sidewalk"))
        roadway_interest = _yes(row.get("seating_interest_roadway"))
        approved = sidewalk_approved or roadway_approved
        pending = not approved and (sidewalk_interest or roadway_interest)
        if not approved and not pending:
            continue

        sidewalk_area = _area(row.get("sidewalk_dimensions_area"))
        roadway_area = _area(row.get("roadway_dimensions_area"))
        try:
            submitted_at = parse_timestamp(row.get("time_submitted"))
        except ValueError:
            submitted_at = None

        events.append(OutdoorDiningEvent(
            event_id=str(row.get("globalid") or row.get("objectid") or f"{zip_code}-{name}"),
            restaurant_name=name,
            legal_name=row.get("legal_business_name") or name,
            address=address,
            locale_id=locale_id,
            seating_type=(
                _seating_type(sidewalk_approved, roadway_approved)
                if approved
                else _seating_type(sidewalk_interest, roadway_interest)
            ),
            has_alcohol=_yes(row.get("qualify_alcohol")),
            is_pending=pending,
            sidewalk_area=sidewalk_area,
            roadway_area=roadway_area,
            total_seats=round(((sidewalk_area or 0) + (roadway_area or 0)) / SEATS_PER_SQFT),
            submitted_at=submitted_at,
            borough=row.get("borough") or "Manhattan",
        ))

    events.sort(key=lambda e: -(e.submitted_at.timestamp() if e.submitted_at else 0))
    events.sort(key=lambda e: (SEATING_PRIORITY[e.seating_type], not e.has_alcohol))
    return events


def season_for(month: int) -> str:
    if 3 <= month <= 5:
        return "Spring"
    if 6 <= month <= 8:
        return "Summer"
    if 9 <= month <= 11:
        return "Fall"
    return "Winter"


SEASON_CONTEXT = {
    "Spring": "Just in time for the season, perfect weather for dining outdoors.",
    "Summer": "Just in time for the season, perfect weather for dining outdoors.",
    "Fall": "Catch the last of the pleasant weather before winter sets in.",
    "Winter": "Look for heated and covered options for cozy outdoor dining.",
}

SEATING_DESCRIPTION = {
    "Sidewalk": "Parisian-style sidewalk seating perfect for people-watching",
    "Both": "both sidewalk and expanded roadway seating",
    "Roadway": "expanded roadway seating with increased capacity",
}


class AlfrescoPermitsPipeline(DomainEventPipeline[OutdoorDiningEvent]):
    """Top filings per covered locale, one article each."""

    job_name = "sync-alfresco-permits"
    category_label = "Al Fresco"

    def __init__(
        self,
        context: PipelineContext,
        open_data: Optional[OpenDataClient] = None,
        generation_delay: Optional[float] = None,
    ):
        super().__init__(context, generation_delay=generation_delay)
        self.open_data = open_data or OpenDataClient.from_settings(context.settings)

    async def fetch(self, days: int = 7, **options) -> List[OutdoorDiningEvent]:
        since = self.context.now() - timedelta(days=days)
        rows = await self.open_data.open_restaurant_applications(since, ALL_TARGET_ZIPS)
        events = parse_dining_events(rows)
        logger.info("Alfresco filings fetched", rows=len(rows), in_coverage=len(events))
        return events

    def select(self, events: List[OutdoorDiningEvent]) -> List[OutdoorDiningEvent]:
        per_locale: Dict[str, int] = {}
        selected = []
        for event in events:
            if per_locale.get(event.locale_id, 0) >= MAX_PER_LOCALE:
                continue
            per_locale[event.locale_id] = per_locale.get(event.locale_id, 0) + 1
            selected.append(event)
        return selected

    def event_id(self, event: OutdoorDiningEvent) -> str:
        return event.event_id

    def target_locale_ids(self, event: OutdoorDiningEvent) -> List[str]:
        return [event.locale_id]

    def base_slug(self, event: OutdoorDiningEvent) -> str:
        return f"alfresco-{clean_identifier(event.event_id, 30)}"

    def link_context(self, event: OutdoorDiningEvent) -> Dict[str, str]:
        return {"locale_name": NYC_ZIP_LOCALES[event.locale_id][0], "city": "New York"}

    def build_prompt(self, event: OutdoorDiningEvent) -> str:
        locale_name = NYC_ZIP_LOCALES[event.locale_id][0]
        season = season_for(self.context.now().month)
        if event.is_pending:
            status = (
                "This restaurant has APPLIED for outdoor seating but is not yet approved. "
                'Use language like "has applied for" rather than stating it as confirmed.'
            )
        else:
            status = "This restaurant has been APPROVED for outdoor seating."
        lines = [
            f'You are the Flâneur Editor writing an "Alfresco Alert" for {locale_name} residents.',
            "",
            "Writing Style:",
            "- Breezy, social, inviting tone",
            "- Reference specific streets and the vibe of the location",
            "- If sidewalk seating, frame as cafe culture and people-watching",
            "- No emojis",
            "",
            "Data:",
            f"- Restaurant: {event.restaurant_name}",
            f"- Address: {event.address}",
            f"- Neighborhood: {locale_name}",
            f"- Seating Type: {event.seating_type} ({SEATING_DESCRIPTION[event.seating_type]})",
            f"- Status: {'Application Pending' if event.is_pending else 'Approved'}",
            f"- Alcohol Service: {'Yes' if event.has_alcohol else 'No'}",
            f"- Estimated Seats: {event.total_seats or 'Unknown'}",
            f"- Season: {season}",
            "",
            status,
            SEASON_CONTEXT[season],
        ]
        if event.has_alcohol:
            lines.append("Licensed for outdoor alcohol service.")
        lines.extend([
            "",
            "Task: Write a 35-40 word blurb about this outdoor dining spot.",
            "",
            "Return JSON:",
            '{"headline": "Al Fresco Alert: [Restaurant Name] adds [seating type] seats (under 60 chars)",',
            ' "body": "35-40 word description", "previewText": "One sentence teaser",',
            ' "link_candidates": [{"text": "exact text from body"}]}',
        ])
        return "\n".join(lines)

    def fallback_story(self, event: OutdoorDiningEvent) -> Dict[str, Any]:
        return {
            "headline": f"Al Fresco Alert: {event.restaurant_name} adds outdoor seating",
            "body": (
                f"{event.restaurant_name} at {event.address} now offers "
                f"{event.seating_type.lower()} seating."
            ),
            "preview_text": f"New outdoor dining at {event.restaurant_name}.",
            "prompt_summary": f"Al Fresco Alert: {event.restaurant_name} ({event.seating_type})",
        }
