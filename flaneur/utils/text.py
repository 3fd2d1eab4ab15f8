"""
Text utilities shared by the enrichment and domain pipelines.
"""
import re
from typing import Optional

_SECTION_HEADER = re.compile(r"\[\[[^\]]+\]\]")
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HTML_TAG = re.compile(r"<[^>]+>")
_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC = re.compile(r"(?<!\*)\*([^*\n]+)\*(?!\*)")
_HEADING = re.compile(r"^#+\s+", re.MULTILINE)
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_SLUG_INVALID = re.compile(r"[^a-z0-9\s-]")
_SLUG_SEPARATORS = re.compile(r"[\s-]+")


def strip_markup(text: Optional[str]) -> str:
    """
    Reduce enriched prose to plain text.

    Section headers (``[[Header]]``) are dropped, markdown links and HTML
    anchors keep their visible text, emphasis markers are removed and all
    whitespace collapses to single spaces.
    """
    if not text:
        return ""
    cleaned = _SECTION_HEADER.sub("", text)
    cleaned = _MARKDOWN_LINK.sub(r"\1", cleaned)
    cleaned = _HTML_TAG.sub("", cleaned)
    cleaned = _BOLD.sub(r"\1", cleaned)
    cleaned = _ITALIC.sub(r"\1", cleaned)
    cleaned = _HEADING.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def truncate_to_sentence(text: Optional[str], max_len: int = 200, min_len: int = 50) -> str:
    """
    Truncate text to at most ``max_len`` characters.

    Cuts after the last sentence terminator that ends at or beyond ``min_len``
    characters. Without one, cuts at the last word boundary, and only as a
    last resort mid-word.

    Args:
        text: Text to truncate
        max_len: Maximum length of the result
        min_len: Shortest acceptable sentence-boundary cut

    Returns:
        str: Truncated text, never longer than ``max_len``
    """
    if not text:
        return ""
    text = text.strip()
    if len(text) <= max_len:
        return text

    window = text[:max_len]
    sentence_cut = None
    for match in _SENTENCE_END.finditer(text[:max_len + 1]):
        end = match.end()
        if min_len <= end <= max_len:
            sentence_cut = end
    if sentence_cut is not None:
        return text[:sentence_cut].strip()

    last_space = window.rfind(" ")
    if last_space > 0:
        return window[:last_space].rstrip()
    return window


def slugify(text: Optional[str], max_len: int = 50) -> str:
    """Lowercase, hyphen-separated slug limited to ``max_len`` characters."""
    if not text:
        return ""
    slug = _SLUG_INVALID.sub("", text.lower())
    slug = _SLUG_SEPARATORS.sub("-", slug).strip("-")
    return slug[:max_len].rstrip("-")


def clean_identifier(text: str, max_len: int = 30) -> str:
    """Keep only letters, digits and hyphens, as used in generated slugs."""
    return re.sub(r"[^a-zA-Z0-9-]", "", text)[:max_len]
