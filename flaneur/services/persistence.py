"""
Persistence writer: enrichment results back into the content store.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from flaneur.core.exceptions import WriteConflictError, is_write_conflict
from flaneur.core.logging import get_logger
from flaneur.schemas.content import (
    BRIEF_SUMMARY_TYPE,
    Article,
    ArticleSource,
    ArticleStatus,
    Brief,
    NewArticle,
    SourceType,
)
from flaneur.schemas.enrichment import EnrichedCategory, EnrichmentResult, SourceRef
from flaneur.services.content_store import ContentStore
from flaneur.utils.dates import local_date, utcnow
from flaneur.utils.text import slugify, strip_markup, truncate_to_sentence

logger = get_logger(__name__)

PREVIEW_LENGTH = 200

FALLBACK_SOURCES = (
    ArticleSource(source_name="X (Twitter)", source_type=SourceType.PLATFORM),
    ArticleSource(source_name="Google News", source_type=SourceType.PLATFORM),
)


@dataclass
class BriefWriteOutcome:
    """What happened when a brief result was persisted."""
    article_created: bool = False
    article_id: Optional[str] = None


def preview_text(body: str) -> str:
    """Plain-text preview of an article body."""
    return truncate_to_sentence(strip_markup(body), PREVIEW_LENGTH)


def brief_article_slug(brief: Brief) -> str:
    """``{locale-id}-brief-{local date}-{headline slug}``."""
    date = local_date(brief.generated_at, brief.locale.tz)
    headline = slugify(brief.headline or f"What's Happening in {brief.locale.name}")
    return f"{brief.locale.id}-brief-{date}-{headline}".rstrip("-")


def _source_from_ref(ref: SourceRef) -> ArticleSource:
    url = ref.url or ""
    lowered = url.lower()
    is_x = ref.name.startswith("@") or "x.com" in lowered or "twitter.com" in lowered
    keep_url = url.startswith("http") and "google.com/search" not in lowered
    return ArticleSource(
        source_name=ref.name,
        source_type=SourceType.X_USER if is_x else SourceType.PUBLICATION,
        source_url=url if keep_url else None,
    )


def extract_sources(categories: Optional[List[EnrichedCategory]]) -> List[ArticleSource]:
    """
    Collect distinct citations from categorized stories.

    A source is skipped when its lowercased name or its URL was already seen.
    Falls back to the two generic platform citations when nothing is found.
    """
    sources: List[ArticleSource] = []
    seen_names = set()
    seen_urls = set()
    for category in categories or []:
        for story in category.stories:
            for ref in (story.source, story.secondary_source):
                if ref is None or not ref.name:
                    continue
                source = _source_from_ref(ref)
                name_key = source.source_name.lower()
                if name_key in seen_names or (source.source_url and source.source_url in seen_urls):
                    continue
                seen_names.add(name_key)
                if source.source_url:
                    seen_urls.add(source.source_url)
                sources.append(source)
    if not sources:
        return [s.model_copy() for s in FALLBACK_SOURCES]
    return sources


class PersistenceWriter:
    """Write enrichment fields and the derived brief-summary article."""

    def __init__(self, store: ContentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def write_brief(self, brief: Brief, result: EnrichmentResult) -> BriefWriteOutcome:
        """
        Persist an enriched brief, then create its summary article.

        Enrichment fields are written in a single update. A failure of the
        derived article propagates; a write conflict on it does not.
        """
        await self.store.update_brief(brief.id, {
            "enriched_content": result.content,
            "enriched_categories": result.categories_payload(),
            "enriched_at": self.clock().isoformat(),
            "enrichment_model": result.model,
            "subject_teaser": result.subject_teaser,
            "email_teaser": result.email_teaser,
        })
        return await self.create_brief_article(brief, result)

    async def create_brief_article(self, brief: Brief, result: EnrichmentResult) -> BriefWriteOutcome:
        """Insert the brief-summary article unless one already exists."""
        existing = await self.store.find_article_for_brief(brief.id)
        if existing:
            logger.info("Brief article already exists", brief_id=brief.id, article_id=existing)
            return BriefWriteOutcome(article_created=False, article_id=existing)

        locale = brief.locale
        base_headline = brief.headline or f"What's Happening in {locale.name}"
        article = NewArticle(
            neighborhood_id=locale.id,
            headline=f"{locale.name} DAILY BRIEF: {base_headline}",
            body_text=result.content,
            preview_text=preview_text(result.content),
            slug=brief_article_slug(brief),
            status=ArticleStatus.PUBLISHED,
            published_at=brief.generated_at,
            ai_model=result.model,
            article_type=BRIEF_SUMMARY_TYPE,
            category_label=f"{locale.name} Daily Brief",
            brief_id=brief.id,
        )
        try:
            article_id = await self.store.insert_article(article)
        except Exception as e:
            if isinstance(e, WriteConflictError) or is_write_conflict(e):
                logger.info("Brief article created concurrently", brief_id=brief.id, slug=article.slug)
                return BriefWriteOutcome(article_created=False)
            raise

        logger.info("Brief article created", brief_id=brief.id, article_id=article_id, slug=article.slug)
        await self._insert_sources(article_id, result.categories)
        return BriefWriteOutcome(article_created=True, article_id=article_id)

    async def write_article(self, article: Article, result: EnrichmentResult) -> None:
        """Persist an enriched article in one update, then its citations."""
        await self.store.update_article(article.id, {
            "body_text": result.content,
            "preview_text": preview_text(result.content),
            "enriched_at": self.clock().isoformat(),
            "enrichment_model": result.model,
        })
        await self._insert_sources(article.id, result.categories)

    async def _insert_sources(self, article_id: str, categories: List[EnrichedCategory]) -> None:
        sources = [
            s.model_copy(update={"article_id": article_id}) for s in extract_sources(categories)
        ]
        try:
            await self.store.insert_article_sources(sources)
        except Exception as e:
            logger.error("Failed to insert article sources", article_id=article_id, error=str(e))
