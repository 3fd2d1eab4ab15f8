"""
Parsing of raw generation responses into enrichment results.

The generation service answers with prose followed by a fenced JSON block.
The prose is cleaned for display; the JSON block carries categories, link
candidates and teasers. Anything malformed degrades to "absent", never to an
exception, except where a caller explicitly asks for JSON.
"""
import json
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from flaneur.core.exceptions import GenerationParseError
from flaneur.core.logging import get_logger
from flaneur.schemas.content import Locale
from flaneur.schemas.enrichment import (
    EnrichedCategory,
    EnrichmentResult,
    parse_categories,
    parse_link_candidates,
)
from flaneur.services.hyperlinks import GOOGLE_SEARCH_URL, inject_hyperlinks

logger = get_logger(__name__)

# Publications that must never be cited for a given locale
BLOCKED_DOMAINS: Dict[str, List[str]] = {
    "nyc-tribeca": ["tribecacitizen.com"],
}

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

_PROSE_RULES = [
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*\n]+)\*"), r"\1"),
    (re.compile(r"```json[\s\S]*?```", re.IGNORECASE), ""),
    (re.compile(r"```[\s\S]*?```"), ""),
    (re.compile(r"^#+\s+", re.MULTILINE), ""),
    (re.compile(r"\{\s*\"?categories\"?[\s\S]*$", re.IGNORECASE), ""),
    (re.compile(r"^subject[_ ]teaser:.*$", re.IGNORECASE | re.MULTILINE), ""),
    (re.compile(r"^email[_ ]teaser:.*$", re.IGNORECASE | re.MULTILINE), ""),
    (re.compile(r"^(?:daily brief|look ahead)[:\s]*[^.!?\n]*[.!?\n]\s*", re.IGNORECASE), ""),
    (re.compile(r"\.\("), "."),
    (re.compile(r"\.\s*\(\d+\)"), "."),
    (re.compile(r"\s*\(\d+\)"), ""),
    (re.compile(r"\(\s*\)"), ""),
    (re.compile(r"\(\s*$", re.MULTILINE), ""),
    (re.compile("\u2014"), " - "),
    (re.compile("\u2013"), "-"),
    (re.compile(r"\n{3,}"), "\n\n"),
]

_CONNECTIVE_FILLER = re.compile(
    r"(?:^|(?<=\.\s))(?:Plus,?\s|Also,?\s|And\s|Meanwhile,?\s|In addition,?\s)",
    re.IGNORECASE,
)
_TEASER_REWRITES = [
    (re.compile(r"\bstarts?\s+tomorrow\b", re.IGNORECASE), "now live"),
    (re.compile(r"\bopens?\s+tomorrow\b", re.IGNORECASE), "just opened"),
    (re.compile(r"\bbegins?\s+tomorrow\b", re.IGNORECASE), "now live"),
    (re.compile(r"\bwill\s+open\b", re.IGNORECASE), "opens"),
]
_GREETING = re.compile(
    r"^(good morning|god morgon|bonjour|buongiorno|guten morgen|buenos d[ií]as|bom dia|goedemorgen|morning)",
    re.IGNORECASE,
)


def clean_prose(raw: str) -> str:
    """Strip formatting artifacts from generated prose, keeping markdown links."""
    text = raw or ""
    for pattern, replacement in _PROSE_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def extract_json_block(raw: str) -> Optional[Any]:
    """Decode the fenced ```json block, or None when absent or invalid."""
    match = _JSON_FENCE.search(raw or "")
    if not match:
        return None
    try:
        return json.loads(match.group(1).strip())
    except json.JSONDecodeError as e:
        logger.warning("Failed to decode JSON block", error=str(e))
        return None


def extract_json_object(raw: str) -> Dict[str, Any]:
    """
    Return the first JSON object found in a response.

    Looks in a fenced block first, then at the outermost braces.

    Raises:
        GenerationParseError: no decodable object was found
    """
    text = raw or ""
    fence = _ANY_FENCE.search(text)
    candidates = [fence.group(1).strip()] if fence else []
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    raise GenerationParseError("No JSON object in generation response")


def extract_json_array(raw: str) -> List[Any]:
    """Return the outermost JSON array in a response, or [] when there is none."""
    text = raw or ""
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return []
    try:
        value = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        logger.warning("Failed to decode JSON array", error=str(e))
        return []
    return value if isinstance(value, list) else []


def parse_subject_teaser(value: Any) -> Optional[str]:
    """Accept 1-5 words of at most 40 characters."""
    if not isinstance(value, str):
        return None
    teaser = value.strip()
    words = len(teaser.split())
    if 1 <= words <= 5 and len(teaser) <= 40:
        return teaser
    logger.debug("Subject teaser rejected", words=words, length=len(teaser))
    return None


def clean_email_teaser(value: str) -> str:
    cleaned = _CONNECTIVE_FILLER.sub("", value)
    for pattern, replacement in _TEASER_REWRITES:
        cleaned = pattern.sub(replacement, cleaned)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()
    return cleaned[:1].upper() + cleaned[1:] if cleaned else cleaned


def parse_email_teaser(value: Any) -> Optional[str]:
    """Accept 10-200 sentence-terminated characters that do not open with a greeting."""
    if not isinstance(value, str):
        return None
    teaser = clean_email_teaser(value.strip())
    has_ending = bool(re.search(r"[.!]", teaser))
    if 10 <= len(teaser) <= 200 and has_ending and not _GREETING.match(teaser):
        return teaser
    logger.debug("Email teaser rejected", length=len(teaser), has_ending=has_ending)
    return None


def filter_sources(
    categories: List[EnrichedCategory], locale: Locale, blocked_domains: Sequence[str]
) -> List[EnrichedCategory]:
    """Drop blocked sources and attach a search fallback URL to every story."""
    for category in categories:
        for story in category.stories:
            url = (story.source.url or "").lower() if story.source else ""
            if url and any(domain in url for domain in blocked_domains):
                story.source = None
                story.context = f"[Source excluded] {story.context}"
            entity = re.sub(r"\s*\([^)]*\)", "", story.entity, count=1)
            story.google_fallback_url = GOOGLE_SEARCH_URL + quote(f"{locale.name} {entity}".strip(), safe="")
    return categories


def parse_enrichment_response(
    raw: str,
    locale: Locale,
    model: str,
    blocked_domains: Optional[Sequence[str]] = None,
) -> EnrichmentResult:
    """Turn a raw generation response into an EnrichmentResult."""
    blocked = blocked_domains if blocked_domains is not None else BLOCKED_DOMAINS.get(locale.id, [])
    text = clean_prose(raw)
    payload = extract_json_block(raw)
    if not isinstance(payload, dict):
        payload = {}

    categories = filter_sources(parse_categories(payload.get("categories")), locale, blocked)
    link_candidates = parse_link_candidates(payload.get("link_candidates"))
    if link_candidates and text:
        text = inject_hyperlinks(text, link_candidates, locale.name, locale.city)

    if not text and not categories:
        raise GenerationParseError(f"Empty enrichment response for {locale.id}")

    return EnrichmentResult(
        content=text,
        categories=categories,
        model=model,
        subject_teaser=parse_subject_teaser(payload.get("subject_teaser")),
        email_teaser=parse_email_teaser(payload.get("email_teaser")),
        link_candidates=link_candidates,
    )
