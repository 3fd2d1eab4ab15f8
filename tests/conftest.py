"""
Shared fixtures: an in-memory content store, a scripted text generator and
a manual clock.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

from flaneur.core.config import Settings
from flaneur.core.exceptions import WriteConflictError
from flaneur.pipeline.context import PipelineContext
from flaneur.schemas.content import Article, ArticleSource, Brief, CronExecution, Locale, NewArticle
from flaneur.services.enrichment import BackoffPolicy, EnrichmentInvoker, TextGenerator

NOW = datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc)

TRIBECA = Locale(id="nyc-tribeca", name="Tribeca", city="New York", country="USA")

ENRICHED_RESPONSE = """**Torrisi** is back on Mulberry Street, and the wait list is already three weeks out.

```json
{
  "categories": [{"name": "Food & Drink", "stories": [
    {"entity": "Torrisi (Mulberry St)", "source": {"name": "Eater NY", "url": "https://ny.eater.com/torrisi"},
     "context": "Reopened with a new menu."}
  ]}],
  "link_candidates": [{"text": "Torrisi"}],
  "subject_teaser": "Torrisi returns",
  "email_teaser": "Torrisi reopened on Mulberry Street this week."
}
```"""


class FakeClock:
    """Monotonic clock that only moves when told to, or when slept on."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTextGenerator(TextGenerator):
    """
    Scripted generation backend.

    ``responses`` is consumed in order; once exhausted ``default`` is
    returned. An Exception in either position is raised instead.
    """

    def __init__(
        self,
        responses: Optional[List[Union[str, Exception]]] = None,
        default: Union[str, Exception, Callable[[str], str]] = ENRICHED_RESPONSE,
        on_call: Optional[Callable[[], None]] = None,
    ):
        self.responses = list(responses or [])
        self.default = default
        self.on_call = on_call
        self.calls: List[Dict[str, str]] = []

    async def generate(self, prompt: str, model: str) -> str:
        self.calls.append({"prompt": prompt, "model": model})
        if self.on_call is not None:
            self.on_call()
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response


class FakeContentStore:
    """In-memory implementation of every ContentStore operation."""

    def __init__(self):
        self.locales: Dict[str, Locale] = {}
        self.briefs: Dict[str, Brief] = {}
        self.articles: Dict[str, Article] = {}
        self.brief_updates: Dict[str, Dict[str, Any]] = {}
        self.article_updates: Dict[str, Dict[str, Any]] = {}
        self.inserted: List[NewArticle] = []
        self.sources: List[ArticleSource] = []
        self.executions: List[CronExecution] = []
        self.submissions: Dict[str, List[Dict[str, Any]]] = {"sighting": [], "storefront": [], "project": []}
        self.submission_updates: Dict[str, Dict[str, Any]] = {}
        self.currency_symbols: Dict[str, str] = {}
        self.existing_slugs = set()
        self.failures: Dict[str, Exception] = {}

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    # Setup helpers

    def add_locale(self, locale: Locale) -> Locale:
        self.locales[locale.id] = locale
        return locale

    def add_brief(self, brief: Brief) -> Brief:
        self.briefs[brief.id] = brief
        return brief

    def add_article(self, article: Article) -> Article:
        self.articles[article.id] = article
        return article

    # Briefs

    async def select_unenriched_briefs(self, since: datetime, limit: int) -> List[Brief]:
        self._maybe_fail("select_unenriched_briefs")
        rows = [
            b for b in self.briefs.values()
            if b.enriched_at is None and b.id not in self.brief_updates and b.generated_at > since
        ]
        return sorted(rows, key=lambda b: b.generated_at, reverse=True)[:limit]

    async def get_brief(self, brief_id: str) -> Optional[Brief]:
        return self.briefs.get(brief_id)

    async def recent_briefs(
        self, locale_id: str, since: datetime, exclude_id: Optional[str], limit: int
    ) -> List[Brief]:
        self._maybe_fail("recent_briefs")
        rows = [
            b for b in self.briefs.values()
            if b.locale.id == locale_id and b.generated_at > since and b.id != exclude_id
        ]
        return sorted(rows, key=lambda b: b.generated_at, reverse=True)[:limit]

    async def update_brief(self, brief_id: str, fields: Dict[str, Any]) -> None:
        self._maybe_fail("update_brief")
        self.brief_updates[brief_id] = fields

    # Articles

    async def select_unenriched_articles(
        self, since: datetime, limit: int, excluded_types: Sequence[str]
    ) -> List[Article]:
        rows = [
            a for a in self.articles.values()
            if a.enriched_at is None
            and a.id not in self.article_updates
            and a.status.value == "published"
            and a.published_at is not None
            and a.published_at > since
            and a.article_type not in excluded_types
        ]
        return sorted(rows, key=lambda a: a.published_at, reverse=True)[:limit]

    async def get_article(self, article_id: str) -> Optional[Article]:
        return self.articles.get(article_id)

    async def recent_articles(
        self, locale_id: str, since: datetime, excluded_types: Sequence[str], limit: int
    ) -> List[Article]:
        rows = [
            a for a in self.articles.values()
            if a.locale.id == locale_id
            and a.published_at is not None
            and a.published_at > since
            and a.article_type not in excluded_types
        ]
        return sorted(rows, key=lambda a: a.published_at, reverse=True)[:limit]

    async def update_article(self, article_id: str, fields: Dict[str, Any]) -> None:
        self._maybe_fail("update_article")
        self.article_updates[article_id] = fields

    async def find_article_for_brief(self, brief_id: str) -> Optional[str]:
        for index, article in enumerate(self.inserted):
            if article.brief_id == brief_id:
                return f"new-{index}"
        return None

    async def slug_exists(self, slug: str) -> bool:
        return slug in self.existing_slugs or any(a.slug == slug for a in self.inserted)

    async def insert_article(self, article: NewArticle) -> str:
        self._maybe_fail("insert_article")
        if await self.slug_exists(article.slug):
            raise WriteConflictError("duplicate key value violates unique constraint articles_slug_key")
        self.inserted.append(article)
        return f"new-{len(self.inserted) - 1}"

    async def insert_article_sources(self, sources: List[ArticleSource]) -> None:
        self._maybe_fail("insert_article_sources")
        self.sources.extend(sources)

    # Locales

    async def get_locale(self, locale_id: str) -> Optional[Locale]:
        return self.locales.get(locale_id)

    async def property_currency_symbol(self, locale_id: str) -> Optional[str]:
        return self.currency_symbols.get(locale_id)

    # Property watch

    async def pending_submissions(self, kind: str, limit: int) -> List[Dict[str, Any]]:
        return [
            row for row in self.submissions[kind]
            if not row.get("is_published") and row.get("ai_summary") is None
        ][:limit]

    async def update_submission(self, kind: str, submission_id: str, fields: Dict[str, Any]) -> None:
        self._maybe_fail("update_submission")
        self.submission_updates[f"{kind}:{submission_id}"] = fields

    # Audit

    async def insert_cron_execution(self, execution: CronExecution) -> None:
        self.executions.append(execution)


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "test",
        "gemini_api_key": "test-gemini-key",
        "supabase_url": "https://example.supabase.co",
        "supabase_service_key": "service-key",
        "generation_delay_seconds": 0.0,
        "enrichment_pacing_seconds": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_context(
    store: FakeContentStore,
    generator: Optional[TextGenerator] = None,
    clock: Optional[FakeClock] = None,
    settings: Optional[Settings] = None,
    now: datetime = NOW,
    delays=(1.0,),
) -> PipelineContext:
    clock = clock or FakeClock()
    invoker = None
    if generator is not None:
        invoker = EnrichmentInvoker(generator, backoff=BackoffPolicy(tuple(delays)), sleep=clock.sleep)
    return PipelineContext(
        settings=settings or make_settings(),
        store=store,
        invoker=invoker,
        monotonic=clock.monotonic,
        sleep=clock.sleep,
        now=lambda: now,
    )


def make_brief(brief_id: str = "b1", locale: Locale = TRIBECA, **fields) -> Brief:
    values = {
        "id": brief_id,
        "locale": locale,
        "content": "Torrisi reopens. Street fair on Saturday.",
        "headline": "Torrisi Returns",
        "generated_at": datetime(2024, 6, 1, 14, 0, tzinfo=timezone.utc),
    }
    values.update(fields)
    return Brief(**values)


def make_article(article_id: str = "a1", locale: Locale = TRIBECA, **fields) -> Article:
    values = {
        "id": article_id,
        "locale": locale,
        "headline": "New bakery on Greenwich Street",
        "body_text": "A new bakery opened on Greenwich Street this morning.",
        "published_at": datetime(2024, 6, 2, 8, 0, tzinfo=timezone.utc),
    }
    values.update(fields)
    return Article(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    store = FakeContentStore()
    store.add_locale(TRIBECA)
    return store
