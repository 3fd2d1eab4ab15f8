"""
Continuity context: recent locale content fed into each brief enrichment.
"""
from datetime import datetime, timedelta
from typing import Callable, List

from flaneur.core.logging import get_logger
from flaneur.schemas.content import BRIEF_SUMMARY_TYPE, Brief, ContinuityItem
from flaneur.services.content_store import ContentStore
from flaneur.utils.dates import day_label, ensure_aware, utcnow
from flaneur.utils.text import strip_markup, truncate_to_sentence

logger = get_logger(__name__)

MAX_CONTINUITY_ITEMS = 30
BRIEF_WINDOW = timedelta(days=10)
ARTICLE_WINDOW = timedelta(days=7)
EXCERPT_LENGTH = 200


class ContinuityBuilder:
    """Build the ordered continuity list for a brief."""

    def __init__(
        self,
        store: ContentStore,
        clock: Callable[[], datetime] = utcnow,
        max_items: int = MAX_CONTINUITY_ITEMS,
    ):
        self.store = store
        self.clock = clock
        self.max_items = max_items

    async def build(self, brief: Brief) -> List[ContinuityItem]:
        """
        Return up to ``max_items`` prior items for the brief's locale, newest first.

        Store failures are logged and yield an empty list; enrichment then
        proceeds without continuity.
        """
        now = self.clock()
        locale = brief.locale
        try:
            briefs = await self.store.recent_briefs(
                locale.id, since=now - BRIEF_WINDOW, exclude_id=brief.id, limit=self.max_items
            )
            articles = await self.store.recent_articles(
                locale.id,
                since=now - ARTICLE_WINDOW,
                excluded_types=(BRIEF_SUMMARY_TYPE,),
                limit=self.max_items,
            )
        except Exception as e:
            logger.warning("Continuity fetch failed", brief_id=brief.id, locale=locale.id, error=str(e))
            return []

        tz = locale.tz
        items = []
        for prior in briefs:
            if prior.id == brief.id:
                continue
            excerpt = None
            if prior.enriched_content:
                excerpt = truncate_to_sentence(strip_markup(prior.enriched_content), EXCERPT_LENGTH) or None
            items.append(ContinuityItem(
                date=day_label(prior.generated_at, tz),
                headline=prior.headline or "Daily Brief",
                excerpt=excerpt,
                kind="brief",
                occurred_at=ensure_aware(prior.generated_at),
            ))
        for article in articles:
            if article.published_at is None:
                continue
            items.append(ContinuityItem(
                date=day_label(article.published_at, tz),
                headline=article.headline,
                kind="article",
                article_type=article.article_type,
                occurred_at=ensure_aware(article.published_at),
            ))

        items.sort(key=lambda item: item.occurred_at, reverse=True)
        return items[:self.max_items]


def render_continuity_block(items: List[ContinuityItem]) -> str:
    """Render continuity items as a prompt section; empty input renders nothing."""
    if not items:
        return ""
    lines = [
        "",
        "RECENT COVERAGE (for continuity; do not repeat these stories as new, "
        "reference them only when there is a genuine update):",
    ]
    for item in items:
        label = "Brief" if item.kind == "brief" else (item.article_type or "Article")
        line = f"- {item.date} [{label}] {item.headline}"
        if item.excerpt:
            line += f": {item.excerpt}"
        lines.append(line)
    return "\n".join(lines)
