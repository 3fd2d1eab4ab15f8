"""
Hyperlink injection: turn link-candidate spans into search links.
"""
import re
from typing import Iterable, List, Tuple
from urllib.parse import quote

from flaneur.schemas.enrichment import LinkCandidate

GOOGLE_SEARCH_URL = "https://www.google.com/search?q="

_MARKDOWN_LINK_SPAN = re.compile(r"\[[^\]]*\]\([^)]*\)")


def build_search_url(text: str, locale_name: str, city: str) -> str:
    """Search URL for ``"{text} {locale} {city}"``."""
    query = " ".join(part for part in (text, locale_name, city) if part)
    return GOOGLE_SEARCH_URL + quote(query, safe="")


def _link_spans(body: str) -> List[Tuple[int, int]]:
    return [m.span() for m in _MARKDOWN_LINK_SPAN.finditer(body)]


def _inside(start: int, end: int, spans: Iterable[Tuple[int, int]]) -> bool:
    return any(start < span_end and end > span_start for span_start, span_end in spans)


def inject_hyperlinks(
    body: str,
    candidates: List[LinkCandidate],
    locale_name: str,
    city: str = "",
) -> str:
    """
    Link the first whole-word occurrence of each candidate.

    Candidates are processed longest first so that "Torrisi Bar & Restaurant"
    claims its span before "Torrisi" is considered. Matching is
    case-insensitive and never touches text already inside a markdown link.
    """
    if not body or not candidates:
        return body

    seen = set()
    ordered = []
    for candidate in sorted(candidates, key=lambda c: len(c.text), reverse=True):
        key = candidate.text.strip().lower()
        if len(key) < 2 or key in seen:
            continue
        seen.add(key)
        ordered.append(candidate.text.strip())

    result = body
    for text in ordered:
        pattern = re.compile(rf"(?<!\w){re.escape(text)}(?!\w)", re.IGNORECASE)
        spans = _link_spans(result)
        for match in pattern.finditer(result):
            start, end = match.span()
            if _inside(start, end, spans):
                continue
            url = build_search_url(text, locale_name, city)
            result = f"{result[:start]}[{match.group(0)}]({url}){result[end:]}"
            break
    return result
