"""
End-to-end tests of the enrichment pipeline engine over in-memory fakes.
"""
from datetime import timedelta

import pytest

from flaneur.pipeline.engine import (
    ENRICH_BRIEFS_BACKFILL_JOB,
    ENRICH_BRIEFS_JOB,
    EnrichmentPipeline,
    enrich_briefs_backfill_config,
    enrich_briefs_config,
)
from tests.conftest import NOW, FakeClock, FakeTextGenerator, make_article, make_brief, make_context, make_settings


def pipeline_for(store, generator, clock=None, settings=None):
    context = make_context(store, generator, clock=clock, settings=settings)
    config = enrich_briefs_config(context.settings)
    return EnrichmentPipeline(context, config)


class TestPipelineConfigs:
    """Test the named engine configurations."""

    def test_canonical_config_from_settings(self):
        config = enrich_briefs_config(make_settings(enrichment_batch_size=30))
        assert config.job_name == ENRICH_BRIEFS_JOB
        assert config.briefs.batch_size == 30
        assert config.briefs.lookback == timedelta(days=10)
        assert config.articles.lookback == timedelta(days=4)

    def test_backfill_config_widens_windows(self):
        config = enrich_briefs_backfill_config(make_settings(enrichment_batch_size=40))
        assert config.job_name == ENRICH_BRIEFS_BACKFILL_JOB
        assert config.briefs.concurrency == 2
        assert config.briefs.lookback == timedelta(days=30)
        assert config.articles.batch_size == 20

    def test_batch_override(self):
        config = enrich_briefs_config(make_settings()).with_batch(5)
        assert config.briefs.batch_size == 5
        assert config.articles.batch_size == 5
        assert enrich_briefs_config(make_settings()).with_batch(None).briefs.batch_size == 40


class TestEnrichmentPipeline:
    """Test full runs over briefs and articles."""

    @pytest.mark.asyncio
    async def test_enriches_briefs_then_articles(self, store):
        store.add_brief(make_brief())
        store.add_article(make_article())
        generator = FakeTextGenerator()

        summary = await pipeline_for(store, generator).run()

        assert summary.success
        assert summary.briefs_enriched == 1
        assert summary.articles_enriched == 1
        assert summary.brief_articles_created == 1
        assert summary.errors == []
        assert not summary.skipped_time_budget
        assert [call["model"] for call in generator.calls] == ["gemini-2.5-pro", "gemini-2.5-flash"]

        article = store.inserted[0]
        assert article.slug.startswith("nyc-tribeca-brief-2024-06-01-")
        assert article.neighborhood_id == "nyc-tribeca"
        assert "[Torrisi](https://www.google.com/search?q=Torrisi%20Tribeca%20New%20York)" in article.body_text
        assert store.article_updates["a1"]["enrichment_model"] == "gemini-2.5-flash"

        execution = store.executions[0]
        assert execution.job_name == ENRICH_BRIEFS_JOB
        assert execution.success
        assert execution.articles_created == 1
        assert execution.response_data["briefs_enriched"] == 1

    @pytest.mark.asyncio
    async def test_brief_prompt_carries_continuity(self, store):
        store.add_brief(make_brief("prior", headline="Street fair", generated_at=NOW - timedelta(days=2)))
        store.add_brief(make_brief("b1", generated_at=NOW - timedelta(hours=1)))
        generator = FakeTextGenerator()

        await pipeline_for(store, generator).run(test_id="b1")

        assert "Street fair" in generator.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_test_mode_processes_one_item_without_audit_row(self, store):
        store.add_brief(make_brief("b1"))
        store.add_brief(make_brief("b2", headline="Another"))
        generator = FakeTextGenerator()

        summary = await pipeline_for(store, generator).run(test_id="b2")

        assert summary.briefs_processed == 1
        assert list(store.brief_updates) == ["b2"]
        assert store.executions == []

    @pytest.mark.asyncio
    async def test_test_mode_falls_back_to_article(self, store):
        store.add_article(make_article("a9"))

        summary = await pipeline_for(store, FakeTextGenerator()).run(test_id="a9")

        assert summary.briefs_processed == 0
        assert summary.articles_enriched == 1

    @pytest.mark.asyncio
    async def test_test_mode_never_reenriches_brief_summary(self, store):
        store.add_brief(make_brief("b1"))
        store.add_article(make_article("s1", article_type="brief_summary", brief_id="b1"))
        generator = FakeTextGenerator()

        summary = await pipeline_for(store, generator).run(test_id="s1")

        assert summary.articles_processed == 0
        assert summary.articles_enriched == 0
        assert summary.message == "No brief or article found with id s1"
        assert store.article_updates == {}
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_second_run_finds_nothing_new(self, store):
        store.add_brief(make_brief())
        store.add_article(make_article())
        generator = FakeTextGenerator()
        await pipeline_for(store, generator).run()

        summary = await pipeline_for(store, generator).run()

        assert summary.briefs_processed == 0
        assert summary.articles_processed == 0
        assert len(store.inserted) == 1
        assert len(generator.calls) == 2

    @pytest.mark.asyncio
    async def test_unknown_test_id(self, store):
        summary = await pipeline_for(store, FakeTextGenerator()).run(test_id="missing")

        assert summary.success
        assert summary.message == "No brief or article found with id missing"

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, store):
        store.add_brief(make_brief("b1", generated_at=NOW - timedelta(hours=1)))
        store.add_brief(make_brief("b2", generated_at=NOW - timedelta(hours=2)))
        generator = FakeTextGenerator(responses=[ValueError("safety block")])

        summary = await pipeline_for(store, generator).run()

        assert summary.briefs_enriched == 1
        assert summary.briefs_failed == 1
        assert summary.success
        assert summary.errors == ["brief b1: safety block"]

    @pytest.mark.asyncio
    async def test_all_failures_mark_run_failed(self, store):
        store.add_brief(make_brief())
        generator = FakeTextGenerator(default=ValueError("safety block"))

        summary = await pipeline_for(store, generator).run()

        assert not summary.success
        assert not store.executions[0].success
        assert store.executions[0].errors == ["brief b1: safety block"]

    @pytest.mark.asyncio
    async def test_quota_exhaustion_stops_phase(self, store):
        for i in range(6):
            store.add_brief(make_brief(f"b{i}", generated_at=NOW - timedelta(hours=i + 1)))
        clock = FakeClock()
        generator = FakeTextGenerator(default=RuntimeError("429 RESOURCE_EXHAUSTED"))
        settings = make_settings(enrichment_concurrency=2)

        summary = await pipeline_for(store, generator, clock=clock, settings=settings).run()

        assert summary.quota_exhausted
        assert summary.briefs_processed == 2
        assert summary.briefs_failed == 2
        assert not summary.success
        # Two attempts per call with the single 1s backoff delay
        assert len(generator.calls) == 4

    @pytest.mark.asyncio
    async def test_global_budget_skips_articles(self, store):
        store.add_brief(make_brief())
        store.add_article(make_article())
        clock = FakeClock()
        generator = FakeTextGenerator(on_call=lambda: clock.advance(300))

        summary = await pipeline_for(store, generator, clock=clock).run()

        assert summary.briefs_enriched == 1
        assert summary.articles_processed == 0
        assert summary.skipped_time_budget
        assert "a1" not in store.article_updates

    @pytest.mark.asyncio
    async def test_nothing_to_enrich(self, store):
        summary = await pipeline_for(store, FakeTextGenerator()).run()

        assert summary.success
        assert summary.message == "Nothing to enrich"
        assert store.executions[0].success
