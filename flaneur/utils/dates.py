"""
Timezone helpers for locale-relative dates.
"""
from datetime import datetime, timezone
from typing import Optional, Union

import pytz

DEFAULT_TIMEZONE = "America/New_York"

COUNTRY_TIMEZONES = {
    "USA": "America/New_York",
    "United States": "America/New_York",
    "UK": "Europe/London",
    "United Kingdom": "Europe/London",
    "France": "Europe/Paris",
    "Sweden": "Europe/Stockholm",
    "Germany": "Europe/Berlin",
    "Italy": "Europe/Rome",
    "Spain": "Europe/Madrid",
    "Switzerland": "Europe/Zurich",
    "Greece": "Europe/Athens",
    "Netherlands": "Europe/Amsterdam",
    "Hong Kong": "Asia/Hong_Kong",
    "Japan": "Asia/Tokyo",
    "Singapore": "Asia/Singapore",
    "UAE": "Asia/Dubai",
    "Australia": "Australia/Sydney",
    "New Zealand": "Pacific/Auckland",
    "South Africa": "Africa/Johannesburg",
    "Canada": "America/Toronto",
    "Monaco": "Europe/Monaco",
}


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def resolve_timezone(name: Optional[str], country: Optional[str] = None):
    """
    Resolve an IANA timezone, falling back to the country's zone.

    Unknown names fall back to ``DEFAULT_TIMEZONE`` instead of raising.
    """
    for candidate in (name, COUNTRY_TIMEZONES.get(country or "")):
        if not candidate:
            continue
        try:
            return pytz.timezone(candidate)
        except pytz.UnknownTimeZoneError:
            continue
    return pytz.timezone(DEFAULT_TIMEZONE)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by PostgREST."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def local_date(value: datetime, tz) -> str:
    """``YYYY-MM-DD`` of ``value`` in the given timezone."""
    return ensure_aware(value).astimezone(tz).strftime("%Y-%m-%d")


def day_label(value: datetime, tz) -> str:
    """Human day label such as ``Monday, February 16`` in the given timezone."""
    local = ensure_aware(value).astimezone(tz)
    return f"{local.strftime('%A')}, {local.strftime('%B')} {local.day}"
