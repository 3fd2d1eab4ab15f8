"""
Domain event pipeline base.

fetch -> filter -> select -> generate -> inject links -> distribute.

Subclasses supply the event source, the filter and ordering rules, the
generation prompt and the target locales of each event. Each event is
isolated: a failure is recorded in the run's error list and the remaining
events are still processed.
"""
import re
from typing import Any, Dict, Generic, List, Optional, TypeVar

from flaneur.core.exceptions import ConfigurationException, QuotaExhaustedError, WriteConflictError
from flaneur.core.logging import get_logger
from flaneur.pipeline.context import PipelineContext
from flaneur.pipeline.execution_log import ExecutionLogger, run_succeeded
from flaneur.schemas.content import Locale, NewArticle
from flaneur.schemas.enrichment import parse_link_candidates
from flaneur.schemas.events import Story
from flaneur.schemas.pipeline import MAX_SUMMARY_ERRORS, DomainRunSummary
from flaneur.services.hyperlinks import inject_hyperlinks
from flaneur.utils.text import strip_markup, truncate_to_sentence

logger = get_logger(__name__)

E = TypeVar("E")

SENSITIVE_HEADLINE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bdeath\b",
        r"\bdead\b",
        r"\bdies\b",
        r"\bdied\b",
        r"\bkilled\b",
        r"\bfatal",
        r"\bshooting\b",
        r"\bshot\b",
        r"\bstabbing\b",
        r"\bstabbed\b",
        r"\bassault",
        r"\bmurder",
        r"\bhomicide\b",
        r"\brape\b",
        r"\bsexual abuse\b",
        r"\bsuicide\b",
        r"\boverdose\b",
        r"\bobituary\b",
    )
]


def is_sensitive_headline(headline: str) -> bool:
    """Headlines about violence or death are never syndicated."""
    return any(pattern.search(headline or "") for pattern in SENSITIVE_HEADLINE_PATTERNS)


class DomainEventPipeline(Generic[E]):
    """Shared run loop of the syndication pipelines."""

    job_name: str = ""
    category_label: str = ""
    max_candidates: Optional[int] = None

    def __init__(self, context: PipelineContext, generation_delay: Optional[float] = None):
        self.context = context
        self.generation_delay = (
            context.settings.generation_delay_seconds if generation_delay is None else generation_delay
        )
        self._locales: Dict[str, Optional[Locale]] = {}

    # Steps supplied by subclasses

    async def fetch(self, **options) -> List[E]:
        raise NotImplementedError

    def keep(self, event: E) -> bool:
        return True

    def select(self, events: List[E]) -> List[E]:
        if self.max_candidates is None:
            return list(events)
        return list(events)[:self.max_candidates]

    def event_id(self, event: E) -> str:
        raise NotImplementedError

    def build_prompt(self, event: E) -> str:
        raise NotImplementedError

    def fallback_story(self, event: E) -> Dict[str, Any]:
        """Headline, body and preview used when the model leaves a field out."""
        raise NotImplementedError

    def target_locale_ids(self, event: E) -> List[str]:
        raise NotImplementedError

    def base_slug(self, event: E) -> str:
        raise NotImplementedError

    def link_context(self, event: E) -> Dict[str, str]:
        """Locale name and city appended to hyperlink search queries."""
        return {"locale_name": "", "city": ""}

    def label_for(self, event: E) -> str:
        return self.category_label

    # Shared behaviour

    async def resolve_locale(self, locale_id: str) -> Optional[Locale]:
        """Look a locale up by id, then by its ``nyc-`` prefixed id."""
        if locale_id not in self._locales:
            locale = await self.context.store.get_locale(locale_id)
            if locale is None and not locale_id.startswith("nyc-"):
                locale = await self.context.store.get_locale(f"nyc-{locale_id}")
            if locale is None:
                logger.warning("Unknown target locale", job_name=self.job_name, locale_id=locale_id)
            self._locales[locale_id] = locale
        return self._locales[locale_id]

    async def generate(self, event: E) -> Story:
        """
        One generation call for an event.

        Raises:
            GenerationParseError: the response holds no JSON object
        """
        if self.context.invoker is None:
            self.context.settings.require("gemini_api_key")
        model = self.context.settings.gemini_fast_model
        data = await self.context.invoker.generate_json(self.build_prompt(event), model)
        fallback = self.fallback_story(event)

        body = data.get("body") if isinstance(data.get("body"), str) else None
        body = body or fallback["body"]
        headline = data.get("headline") if isinstance(data.get("headline"), str) else None
        preview = data.get("previewText") or data.get("preview_text")
        if not isinstance(preview, str) or not preview.strip():
            preview = fallback.get("preview_text") or truncate_to_sentence(strip_markup(body), 200)

        return Story(
            event_id=self.event_id(event),
            headline=(headline or fallback["headline"]).strip(),
            body=body.strip(),
            preview_text=preview.strip(),
            category_label=self.label_for(event),
            link_candidates=parse_link_candidates(data.get("link_candidates")),
            model=model,
            prompt_summary=fallback.get("prompt_summary"),
        )

    def inject_links(self, event: E, story: Story) -> Story:
        context = self.link_context(event)
        body = inject_hyperlinks(story.body, story.link_candidates, context["locale_name"], context["city"])
        return story.model_copy(update={"body": body})

    async def distribute(
        self, event: E, story: Story, locales: List[Locale], summary: DomainRunSummary
    ) -> List[str]:
        """Insert one published article per target locale, skipping existing slugs.

        Returns the ids of the locales that received a new article.
        """
        created = []
        base = self.base_slug(event)
        for locale in locales:
            slug = f"{base}-{locale.id}"
            if await self.context.store.slug_exists(slug):
                summary.articles_skipped += 1
                continue
            now = self.context.now()
            article = NewArticle(
                neighborhood_id=locale.id,
                headline=story.headline,
                body_text=story.body,
                preview_text=story.preview_text,
                slug=slug,
                published_at=now,
                ai_model=story.model,
                ai_prompt=story.prompt_summary,
                category_label=story.category_label,
                enriched_at=now,
                enrichment_model=story.model,
            )
            try:
                await self.context.store.insert_article(article)
            except WriteConflictError:
                summary.articles_skipped += 1
                continue
            summary.articles_created += 1
            counts = summary.breakdown.setdefault(locale.id, {"articles_created": 0})
            counts["articles_created"] = counts.get("articles_created", 0) + 1
            created.append(locale.id)
        return created

    async def _targets(self, event: E, neighborhood: Optional[str]) -> List[Locale]:
        locales = []
        seen = set()
        for locale_id in self.target_locale_ids(event):
            if neighborhood and locale_id != neighborhood and f"nyc-{locale_id}" != neighborhood:
                continue
            locale = await self.resolve_locale(locale_id)
            if locale is None or locale.id in seen:
                continue
            seen.add(locale.id)
            locales.append(locale)
        return locales

    async def _all_exist(self, event: E, locales: List[Locale]) -> bool:
        base = self.base_slug(event)
        for locale in locales:
            if not await self.context.store.slug_exists(f"{base}-{locale.id}"):
                return False
        return True

    async def run(self, neighborhood: Optional[str] = None, manual: bool = False, **options) -> DomainRunSummary:
        """
        Run the pipeline once.

        Args:
            neighborhood: only distribute to this locale id
            manual: skip the execution record (manual test invocation)
            options: passed to ``fetch``
        """
        started = self.context.monotonic()
        summary = DomainRunSummary(success=True, timestamp=self.context.now())
        execution_logger = ExecutionLogger(self.context.store, enabled=not manual, now=self.context.now)

        async with execution_logger.track(self.job_name) as record:
            await self._run(summary, neighborhood, options)

            record.succeeded = summary.articles_created
            record.failed = len(summary.errors)
            record.articles_created = summary.articles_created
            record.errors = list(summary.errors)
            record.response_data = summary.model_dump(
                include={
                    "candidates_found",
                    "candidates_selected",
                    "stories_generated",
                    "stories_excluded",
                    "articles_created",
                    "articles_skipped",
                    "locales_syndicated",
                }
            )

        summary.success = run_succeeded(summary.articles_created, len(summary.errors))
        summary.errors = summary.errors[:MAX_SUMMARY_ERRORS]
        summary.elapsed_ms = int((self.context.monotonic() - started) * 1000)
        logger.info(
            "Domain pipeline finished",
            job_name=self.job_name,
            candidates=summary.candidates_found,
            stories=summary.stories_generated,
            created=summary.articles_created,
            skipped=summary.articles_skipped,
            errors=len(summary.errors),
        )
        return summary

    async def _run(self, summary: DomainRunSummary, neighborhood: Optional[str], options: Dict[str, Any]) -> None:
        try:
            events = await self.fetch(**options)
        except ConfigurationException:
            raise
        except Exception as e:
            logger.error("Event fetch failed", job_name=self.job_name, error=str(e))
            summary.errors.append(f"fetch: {e}")
            summary.message = "Event source unavailable"
            return

        summary.candidates_found = len(events)
        selected = self.select([event for event in events if self.keep(event)])
        summary.candidates_selected = len(selected)
        if not selected:
            summary.message = "No qualifying events"
            return

        syndicated = set()
        generated = 0
        for event in selected:
            event_id = self.event_id(event)
            try:
                locales = await self._targets(event, neighborhood)
                if not locales:
                    continue
                if await self._all_exist(event, locales):
                    summary.articles_skipped += len(locales)
                    continue

                if generated and self.generation_delay > 0:
                    await self.context.sleep(self.generation_delay)
                generated += 1
                story = await self.generate(event)
                summary.stories_generated += 1

                if is_sensitive_headline(story.headline):
                    logger.info("Story excluded by headline filter", job_name=self.job_name, event_id=event_id)
                    summary.stories_excluded += 1
                    continue

                story = self.inject_links(event, story)
                syndicated.update(await self.distribute(event, story, locales, summary))
            except ConfigurationException:
                raise
            except QuotaExhaustedError as e:
                summary.errors.append(f"{event_id}: {e}")
                logger.warning("Generation quota exhausted, stopping", job_name=self.job_name)
                break
            except Exception as e:
                logger.warning("Event failed", job_name=self.job_name, event_id=event_id, error=str(e))
                summary.errors.append(f"{event_id}: {e}")

        summary.locales_syndicated = len(syndicated)
