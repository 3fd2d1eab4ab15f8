"""
Enrichment pipeline engine.

One engine, parameterised by a PipelineConfig, enriches pending Briefs and
then pending Articles under a shared wall-clock budget. The canonical cron
job and the backfill job are two named configurations of this engine.
"""
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Dict, List, Optional

from flaneur.core.config import Settings
from flaneur.core.logging import get_logger
from flaneur.pipeline.context import PipelineContext
from flaneur.pipeline.execution_log import ExecutionLogger, run_succeeded
from flaneur.pipeline.scheduler import PhaseConfig, PhaseResult, StopReason, TimeBudgetScheduler
from flaneur.schemas.content import Article, Brief
from flaneur.schemas.enrichment import EnrichmentRequest
from flaneur.schemas.pipeline import MAX_SUMMARY_ERRORS, RunSummary
from flaneur.services.candidate_selector import CandidateSelector, WorkItem, WorkKind
from flaneur.services.continuity import ContinuityBuilder
from flaneur.services.persistence import BriefWriteOutcome, PersistenceWriter

logger = get_logger(__name__)

ENRICH_BRIEFS_JOB = "enrich-briefs"
ENRICH_BRIEFS_BACKFILL_JOB = "enrich-briefs-backfill"


@dataclass(frozen=True)
class PipelineConfig:
    """Named set of phase parameters for one engine run."""
    job_name: str
    global_budget: float
    briefs: PhaseConfig
    articles: PhaseConfig

    def with_batch(self, batch: Optional[int]) -> "PipelineConfig":
        """Copy with both phases limited to ``batch`` candidates."""
        if not batch or batch <= 0:
            return self
        return replace(
            self,
            briefs=replace(self.briefs, batch_size=batch),
            articles=replace(self.articles, batch_size=batch),
        )


def enrich_briefs_config(settings: Settings) -> PipelineConfig:
    """Hourly enrichment: largest batch, explicit phase budgets."""
    return PipelineConfig(
        job_name=ENRICH_BRIEFS_JOB,
        global_budget=settings.pipeline_global_budget_seconds,
        briefs=PhaseConfig(
            name="briefs",
            concurrency=settings.enrichment_concurrency,
            phase_budget=settings.brief_phase_budget_seconds,
            pacing_delay=settings.enrichment_pacing_seconds,
            lookback=timedelta(days=settings.brief_lookback_days),
            batch_size=settings.enrichment_batch_size,
        ),
        articles=PhaseConfig(
            name="articles",
            concurrency=settings.enrichment_concurrency,
            phase_budget=settings.article_phase_budget_seconds,
            pacing_delay=settings.enrichment_pacing_seconds,
            lookback=timedelta(days=settings.article_lookback_days),
            batch_size=settings.enrichment_batch_size,
        ),
    )


def enrich_briefs_backfill_config(settings: Settings) -> PipelineConfig:
    """Catch-up run over wider windows at lower concurrency."""
    canonical = enrich_briefs_config(settings)
    return PipelineConfig(
        job_name=ENRICH_BRIEFS_BACKFILL_JOB,
        global_budget=canonical.global_budget,
        briefs=replace(
            canonical.briefs,
            concurrency=2,
            lookback=timedelta(days=settings.brief_lookback_days * 3),
            batch_size=settings.enrichment_batch_size // 2 or 1,
        ),
        articles=replace(
            canonical.articles,
            concurrency=2,
            lookback=timedelta(days=settings.article_lookback_days * 3),
            batch_size=settings.enrichment_batch_size // 2 or 1,
        ),
    )


PIPELINE_CONFIGS = {
    ENRICH_BRIEFS_JOB: enrich_briefs_config,
    ENRICH_BRIEFS_BACKFILL_JOB: enrich_briefs_backfill_config,
}


def describe_item(item: WorkItem) -> str:
    kind = "brief" if isinstance(item, Brief) else "article"
    return f"{kind} {item.id}"


class EnrichmentPipeline:
    """Select, enrich and persist Briefs then Articles under one time budget."""

    def __init__(self, context: PipelineContext, config: PipelineConfig):
        self.context = context
        self.config = config
        self.selector = CandidateSelector(context.store, clock=context.now)
        self.continuity = ContinuityBuilder(context.store, clock=context.now)
        self.writer = PersistenceWriter(context.store, clock=context.now)

    async def run(self, test_id: Optional[str] = None, batch: Optional[int] = None) -> RunSummary:
        """
        Run both phases and return the run summary.

        A ``test_id`` processes that single item (brief first, then article)
        and writes no execution record.
        """
        settings = self.context.settings
        config = self.config.with_batch(batch)
        execution_logger = ExecutionLogger(
            self.context.store,
            enabled=test_id is None,
            now=self.context.now,
        )
        reserve = self.context.invoker.backoff.worst_case_delay if self.context.invoker else 0.0
        scheduler = TimeBudgetScheduler(
            config.global_budget,
            clock=self.context.monotonic,
            sleep=self.context.sleep,
            describe=describe_item,
            reserve=reserve,
        )

        logger.info(
            "Enrichment run starting",
            job_name=config.job_name,
            test_id=test_id,
            batch=batch,
            quality_model=settings.gemini_quality_model,
            fast_model=settings.gemini_fast_model,
        )

        async with execution_logger.track(config.job_name) as record:
            briefs, articles = await self._select(config, test_id)

            brief_result = await scheduler.run_phase(config.briefs, briefs, self._enrich_brief)

            skipped_time_budget = brief_result.budget_stopped
            if scheduler.global_expired:
                skipped_time_budget = True
                article_result = PhaseResult(
                    name=config.articles.name,
                    stop_reason=StopReason.GLOBAL_BUDGET,
                    remaining=len(articles),
                )
                logger.info("Skipping articles phase, global budget expired", pending=len(articles))
            else:
                article_result = await scheduler.run_phase(config.articles, articles, self._enrich_article)
                skipped_time_budget = skipped_time_budget or article_result.budget_stopped

            brief_articles_created = sum(
                1
                for outcome in brief_result.outcomes
                if outcome.ok and isinstance(outcome.value, BriefWriteOutcome) and outcome.value.article_created
            )
            errors: List[str] = brief_result.errors + article_result.errors
            succeeded = brief_result.succeeded + article_result.succeeded
            failed = brief_result.failed + article_result.failed

            summary = RunSummary(
                success=run_succeeded(succeeded, failed),
                briefs_processed=brief_result.processed,
                briefs_enriched=brief_result.succeeded,
                briefs_failed=brief_result.failed,
                articles_processed=article_result.processed,
                articles_enriched=article_result.succeeded,
                articles_failed=article_result.failed,
                brief_articles_created=brief_articles_created,
                errors=errors[:MAX_SUMMARY_ERRORS],
                elapsed_ms=int(scheduler.elapsed * 1000),
                skipped_time_budget=skipped_time_budget,
                quota_exhausted=StopReason.QUOTA in (brief_result.stop_reason, article_result.stop_reason),
                message=self._message(test_id, briefs, articles),
                timestamp=self.context.now(),
            )

            record.succeeded = succeeded
            record.failed = failed
            record.articles_created = brief_articles_created
            record.errors = errors
            record.response_data = self._response_data(summary)

        logger.info(
            "Enrichment run finished",
            job_name=config.job_name,
            briefs_enriched=summary.briefs_enriched,
            articles_enriched=summary.articles_enriched,
            failed=failed,
            elapsed_ms=summary.elapsed_ms,
            skipped_time_budget=summary.skipped_time_budget,
            quota_exhausted=summary.quota_exhausted,
        )
        return summary

    async def _select(self, config: PipelineConfig, test_id: Optional[str]):
        if test_id:
            briefs = await self.selector.select(
                WorkKind.BRIEF, lookback=config.briefs.lookback, limit=1, test_id=test_id
            )
            if briefs:
                return briefs, []
            articles = await self.selector.select(
                WorkKind.ARTICLE, lookback=config.articles.lookback, limit=1, test_id=test_id
            )
            return [], articles

        briefs = await self.selector.select(
            WorkKind.BRIEF, lookback=config.briefs.lookback, limit=config.briefs.batch_size
        )
        articles = await self.selector.select(
            WorkKind.ARTICLE, lookback=config.articles.lookback, limit=config.articles.batch_size
        )
        return briefs, articles

    async def _enrich_brief(self, brief: Brief) -> BriefWriteOutcome:
        continuity = await self.continuity.build(brief)
        result = await self.context.invoker.enrich(EnrichmentRequest(
            content=brief.content,
            locale=brief.locale,
            model=self.context.settings.gemini_quality_model,
            continuity=continuity,
            article_type="daily_brief",
            generated_at=brief.generated_at,
        ))
        return await self.writer.write_brief(brief, result)

    async def _enrich_article(self, article: Article) -> None:
        result = await self.context.invoker.enrich(EnrichmentRequest(
            content=article.body_text,
            locale=article.locale,
            model=self.context.settings.gemini_fast_model,
            article_type="rss_article",
            generated_at=article.published_at,
        ))
        await self.writer.write_article(article, result)

    @staticmethod
    def _message(test_id: Optional[str], briefs: List[Brief], articles: List[Article]) -> Optional[str]:
        if test_id and not briefs and not articles:
            return f"No brief or article found with id {test_id}"
        if not briefs and not articles:
            return "Nothing to enrich"
        return None

    @staticmethod
    def _response_data(summary: RunSummary) -> Dict[str, int]:
        return summary.model_dump(
            include={
                "briefs_processed",
                "briefs_enriched",
                "briefs_failed",
                "articles_processed",
                "articles_enriched",
                "articles_failed",
                "brief_articles_created",
                "elapsed_ms",
            }
        )
