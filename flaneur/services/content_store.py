"""
Content store adapter over the Supabase (PostgREST) async client.

Every read returns validated pydantic models; every write is a single
PostgREST call. Unique-constraint violations surface as WriteConflictError so
callers can treat them as "already exists".
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from postgrest.exceptions import APIError
from supabase import AsyncClient

from flaneur.core.exceptions import WriteConflictError, is_write_conflict
from flaneur.core.logging import get_logger
from flaneur.schemas.content import (
    Article,
    ArticleSource,
    Brief,
    CronExecution,
    Locale,
    NewArticle,
)

logger = get_logger(__name__)

LOCALE_COLUMNS = "id, name, city, country, timezone, currency"

BRIEF_COLUMNS = (
    "id, content, headline, neighborhood_id, generated_at, enriched_content, "
    "enriched_categories, enriched_at, enrichment_model, subject_teaser, email_teaser, "
    f"neighborhoods({LOCALE_COLUMNS})"
)

ARTICLE_COLUMNS = (
    "id, headline, body_text, preview_text, slug, status, published_at, article_type, "
    f"brief_id, enriched_at, enrichment_model, neighborhood_id, neighborhoods({LOCALE_COLUMNS})"
)

SUBMISSION_TABLES = {
    "sighting": "property_sightings",
    "storefront": "storefront_changes",
    "project": "development_projects",
}


def _iso(value: datetime) -> str:
    return value.isoformat()


def _type_filter(excluded_types: Sequence[str]) -> str:
    # NOT IN alone would also drop rows whose article_type is NULL
    return f"article_type.is.null,article_type.not.in.({','.join(excluded_types)})"


class ContentStore:
    """Narrow query/mutation contract over the shared content tables."""

    def __init__(self, client: AsyncClient):
        self.client = client

    # Briefs

    async def select_unenriched_briefs(self, since: datetime, limit: int) -> List[Brief]:
        response = await (
            self.client.table("neighborhood_briefs")
            .select(BRIEF_COLUMNS)
            .is_("enriched_at", "null")
            .gt("generated_at", _iso(since))
            .order("generated_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [Brief.from_row(row) for row in response.data or []]

    async def get_brief(self, brief_id: str) -> Optional[Brief]:
        response = await (
            self.client.table("neighborhood_briefs")
            .select(BRIEF_COLUMNS)
            .eq("id", brief_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Brief.from_row(rows[0]) if rows else None

    async def recent_briefs(
        self, locale_id: str, since: datetime, exclude_id: Optional[str], limit: int
    ) -> List[Brief]:
        query = (
            self.client.table("neighborhood_briefs")
            .select(BRIEF_COLUMNS)
            .eq("neighborhood_id", locale_id)
            .gt("generated_at", _iso(since))
        )
        if exclude_id:
            query = query.neq("id", exclude_id)
        response = await query.order("generated_at", desc=True).limit(limit).execute()
        return [Brief.from_row(row) for row in response.data or []]

    async def update_brief(self, brief_id: str, fields: Dict[str, Any]) -> None:
        await self.client.table("neighborhood_briefs").update(fields).eq("id", brief_id).execute()

    # Articles

    async def select_unenriched_articles(
        self, since: datetime, limit: int, excluded_types: Sequence[str]
    ) -> List[Article]:
        response = await (
            self.client.table("articles")
            .select(ARTICLE_COLUMNS)
            .is_("enriched_at", "null")
            .eq("status", "published")
            .gt("published_at", _iso(since))
            .or_(_type_filter(excluded_types))
            .order("published_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [Article.from_row(row) for row in response.data or []]

    async def get_article(self, article_id: str) -> Optional[Article]:
        response = await (
            self.client.table("articles")
            .select(ARTICLE_COLUMNS)
            .eq("id", article_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Article.from_row(rows[0]) if rows else None

    async def recent_articles(
        self, locale_id: str, since: datetime, excluded_types: Sequence[str], limit: int
    ) -> List[Article]:
        response = await (
            self.client.table("articles")
            .select(ARTICLE_COLUMNS)
            .eq("neighborhood_id", locale_id)
            .eq("status", "published")
            .gt("published_at", _iso(since))
            .or_(_type_filter(excluded_types))
            .order("published_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [Article.from_row(row) for row in response.data or []]

    async def update_article(self, article_id: str, fields: Dict[str, Any]) -> None:
        await self.client.table("articles").update(fields).eq("id", article_id).execute()

    async def find_article_for_brief(self, brief_id: str) -> Optional[str]:
        response = await (
            self.client.table("articles").select("id").eq("brief_id", brief_id).limit(1).execute()
        )
        rows = response.data or []
        return str(rows[0]["id"]) if rows else None

    async def slug_exists(self, slug: str) -> bool:
        response = await self.client.table("articles").select("id").eq("slug", slug).limit(1).execute()
        return bool(response.data)

    async def insert_article(self, article: NewArticle) -> str:
        """
        Insert one article and return its id.

        Raises:
            WriteConflictError: the slug or brief back-reference already exists
        """
        try:
            response = await (
                self.client.table("articles")
                .insert(article.model_dump(mode="json", exclude_none=True))
                .execute()
            )
        except APIError as exc:
            if is_write_conflict(exc):
                raise WriteConflictError(exc.message or "Article already exists") from exc
            raise
        return str(response.data[0]["id"])

    async def insert_article_sources(self, sources: List[ArticleSource]) -> None:
        if not sources:
            return
        rows = [s.model_dump(mode="json", exclude_none=True) for s in sources]
        await self.client.table("article_sources").insert(rows).execute()

    # Locales

    async def get_locale(self, locale_id: str) -> Optional[Locale]:
        response = await (
            self.client.table("neighborhoods").select(LOCALE_COLUMNS).eq("id", locale_id).limit(1).execute()
        )
        rows = response.data or []
        return Locale.model_validate(rows[0]) if rows else None

    async def property_currency_symbol(self, locale_id: str) -> Optional[str]:
        response = await (
            self.client.table("neighborhood_property_config")
            .select("currency_symbol")
            .eq("neighborhood_id", locale_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0].get("currency_symbol") if rows else None

    # Property watch

    async def pending_submissions(self, kind: str, limit: int) -> List[Dict[str, Any]]:
        response = await (
            self.client.table(SUBMISSION_TABLES[kind])
            .select("*")
            .eq("is_published", False)
            .is_("ai_summary", "null")
            .limit(limit)
            .execute()
        )
        return list(response.data or [])

    async def update_submission(self, kind: str, submission_id: str, fields: Dict[str, Any]) -> None:
        await self.client.table(SUBMISSION_TABLES[kind]).update(fields).eq("id", submission_id).execute()

    # Audit

    async def insert_cron_execution(self, execution: CronExecution) -> None:
        await self.client.table("cron_executions").insert(execution.model_dump(mode="json")).execute()
