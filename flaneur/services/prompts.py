"""
Prompt templates for enrichment and story generation.
"""
from flaneur.schemas.enrichment import EnrichmentRequest
from flaneur.services.continuity import render_continuity_block
from flaneur.utils.dates import local_date

INSIDER_PERSONA = (
    "You are a well-travelled, successful 35-year-old who has lived in {locale} for years. "
    "You write as a knowledgeable insider for residents, never as a tourist. "
    "Never explain what the neighborhood is. Never use em dashes."
)

_STYLES = {
    "daily_brief": (
        "Write today's neighborhood update. Lead with the most noteworthy item. "
        "Group stories under [[Section Header]] lines."
    ),
    "weekly_recap": "Write a recap of the past week, grouped by theme, most significant first.",
    "look_ahead": (
        "Write a look ahead at upcoming events, grouped by day. One-time events outrank "
        "recurring ones; time-sensitive items outrank ongoing ones."
    ),
    "rss_article": (
        "Rewrite this article for residents. Verify the facts, keep it tight, "
        "and cite the publications you relied on."
    ),
}

_JSON_INSTRUCTIONS = """
After the prose, output a ```json block with:
{
  "categories": [{"name": "...", "stories": [{"entity": "...", "source": {"name": "...", "url": "..."},
    "secondarySource": {"name": "...", "url": "..."}, "context": "...", "note": "..."}]}],
  "link_candidates": [{"text": "exact text from your prose"}],
  "subject_teaser": "1-5 words",
  "email_teaser": "one or two sentences"
}
Link candidates must be the EXACT text as it appears in your prose: business names, venues, people."""


def build_enrichment_prompt(request: EnrichmentRequest) -> str:
    """Assemble the enrichment prompt for one work item."""
    locale = request.locale
    place = f"{locale.name}, {locale.city}" if locale.city else locale.name
    header = INSIDER_PERSONA.format(locale=place)
    style = _STYLES.get(request.article_type, _STYLES["daily_brief"])
    dated = ""
    if request.generated_at is not None:
        dated = f"\nWritten for {local_date(request.generated_at, locale.tz)} ({locale.tz.zone})."

    parts = [
        header,
        style,
        f"Here are some tips about what might be happening in {place}, {locale.country}. "
        f"Research each one and write the update.{dated}",
        "",
        request.content,
        render_continuity_block(request.continuity),
        _JSON_INSTRUCTIONS,
    ]
    return "\n".join(part for part in parts if part is not None)
