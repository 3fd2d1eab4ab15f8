"""
Tests for candidate selection, continuity context and persistence.
"""
from datetime import datetime, timedelta, timezone

import pytest

from flaneur.core.exceptions import WriteConflictError
from flaneur.schemas.content import ArticleStatus, SourceType
from flaneur.schemas.enrichment import EnrichedCategory, EnrichedStory, EnrichmentResult, SourceRef
from flaneur.services.candidate_selector import CandidateSelector, WorkKind
from flaneur.services.continuity import ContinuityBuilder, render_continuity_block
from flaneur.services.persistence import PersistenceWriter, brief_article_slug, extract_sources
from tests.conftest import NOW, TRIBECA, make_article, make_brief


def result_with(categories=None, content="Enriched body. Second sentence.") -> EnrichmentResult:
    return EnrichmentResult(content=content, categories=categories or [], model="gemini-2.5-pro")


class TestCandidateSelector:
    """Test selection windows and test-id bypass."""

    @pytest.mark.asyncio
    async def test_briefs_inside_window_newest_first(self, store):
        store.add_brief(make_brief("old", generated_at=NOW - timedelta(days=11)))
        store.add_brief(make_brief("b1", generated_at=NOW - timedelta(days=2)))
        store.add_brief(make_brief("b2", generated_at=NOW - timedelta(hours=3)))
        store.add_brief(make_brief("done", generated_at=NOW - timedelta(hours=1), enriched_at=NOW))
        selector = CandidateSelector(store, clock=lambda: NOW)

        briefs = await selector.select(WorkKind.BRIEF, lookback=timedelta(days=10), limit=10)

        assert [b.id for b in briefs] == ["b2", "b1"]

    @pytest.mark.asyncio
    async def test_limit(self, store):
        for i in range(5):
            store.add_brief(make_brief(f"b{i}", generated_at=NOW - timedelta(hours=i + 1)))
        selector = CandidateSelector(store, clock=lambda: NOW)

        briefs = await selector.select(WorkKind.BRIEF, lookback=timedelta(days=10), limit=2)

        assert [b.id for b in briefs] == ["b0", "b1"]

    @pytest.mark.asyncio
    async def test_self_enriching_articles_excluded(self, store):
        store.add_article(make_article("plain"))
        store.add_article(make_article("summary", article_type="brief_summary"))
        store.add_article(make_article("recap", article_type="weekly_recap"))
        store.add_article(make_article("draft", status=ArticleStatus.DRAFT))
        selector = CandidateSelector(store, clock=lambda: NOW)

        articles = await selector.select(WorkKind.ARTICLE, lookback=timedelta(days=4), limit=10)

        assert [a.id for a in articles] == ["plain"]

    @pytest.mark.asyncio
    async def test_test_id_bypasses_window(self, store):
        store.add_brief(make_brief("ancient", generated_at=NOW - timedelta(days=60)))
        selector = CandidateSelector(store, clock=lambda: NOW)

        found = await selector.select(WorkKind.BRIEF, lookback=timedelta(days=10), limit=0, test_id="ancient")
        missing = await selector.select(WorkKind.BRIEF, lookback=timedelta(days=10), limit=10, test_id="nope")

        assert [b.id for b in found] == ["ancient"]
        assert missing == []

    @pytest.mark.asyncio
    async def test_test_id_keeps_article_type_exclusion(self, store):
        store.add_article(make_article("summary", article_type="brief_summary", brief_id="b1"))
        store.add_article(make_article("recap", article_type="weekly_recap"))
        selector = CandidateSelector(store, clock=lambda: NOW)

        for article_id in ("summary", "recap"):
            found = await selector.select(
                WorkKind.ARTICLE, lookback=timedelta(days=4), limit=1, test_id=article_id
            )
            assert found == []


class TestContinuityBuilder:
    """Test the continuity list handed to brief enrichment."""

    @pytest.mark.asyncio
    async def test_merges_briefs_and_articles_newest_first(self, store):
        current = store.add_brief(make_brief("current", generated_at=NOW - timedelta(hours=1)))
        store.add_brief(make_brief(
            "prior",
            headline="Street fair",
            generated_at=NOW - timedelta(days=2),
            enriched_content="[[Events]] The **street fair** drew crowds. More to come next week.",
        ))
        store.add_brief(make_brief("stale", generated_at=NOW - timedelta(days=12)))
        store.add_article(make_article("recent", headline="Bakery opens", published_at=NOW - timedelta(days=1)))
        store.add_article(make_article(
            "summary", article_type="brief_summary", published_at=NOW - timedelta(hours=5)
        ))
        builder = ContinuityBuilder(store, clock=lambda: NOW)

        items = await builder.build(current)

        assert [i.headline for i in items] == ["Bakery opens", "Street fair"]
        assert items[0].kind == "article"
        assert items[1].kind == "brief"
        assert items[1].excerpt == "The street fair drew crowds. More to come next week."
        assert items[1].date == "Friday, May 31"

    @pytest.mark.asyncio
    async def test_store_failure_yields_empty_list(self, store):
        store.failures["recent_briefs"] = RuntimeError("connection reset")
        builder = ContinuityBuilder(store, clock=lambda: NOW)

        assert await builder.build(make_brief()) == []

    @pytest.mark.asyncio
    async def test_caps_item_count(self, store):
        current = store.add_brief(make_brief("current"))
        for i in range(5):
            store.add_article(make_article(f"a{i}", published_at=NOW - timedelta(hours=i + 1)))
        builder = ContinuityBuilder(store, clock=lambda: NOW, max_items=3)

        assert len(await builder.build(current)) == 3

    @pytest.mark.asyncio
    async def test_mixed_naive_and_aware_timestamps(self):
        class MixedStore:
            async def recent_briefs(self, locale_id, since, exclude_id, limit):
                return [make_brief("naive", headline="Street fair", generated_at=datetime(2024, 6, 1, 9, 0))]

            async def recent_articles(self, locale_id, since, excluded_types, limit):
                return [make_article("aware", headline="Bakery opens")]

        builder = ContinuityBuilder(MixedStore(), clock=lambda: NOW)

        items = await builder.build(make_brief("current"))

        assert [i.headline for i in items] == ["Bakery opens", "Street fair"]
        assert all(i.occurred_at.tzinfo is not None for i in items)

    def test_render_block(self):
        assert render_continuity_block([]) == ""


class TestPersistence:
    """Test enrichment write-back and the derived brief article."""

    def test_brief_article_slug_uses_local_date(self):
        brief = make_brief(generated_at=datetime(2024, 6, 2, 2, 30, tzinfo=timezone.utc))
        # 02:30 UTC is still June 1 in New York
        assert brief_article_slug(brief) == "nyc-tribeca-brief-2024-06-01-torrisi-returns"

    def test_extract_sources_dedupes_and_classifies(self):
        categories = [EnrichedCategory(name="Food", stories=[
            EnrichedStory(entity="A", source=SourceRef(name="Eater NY", url="https://ny.eater.com/a")),
            EnrichedStory(entity="B", source=SourceRef(name="eater ny", url="https://ny.eater.com/b")),
            EnrichedStory(
                entity="C",
                source=SourceRef(name="@tribecatips", url="https://x.com/tribecatips"),
                secondary_source=SourceRef(name="Google", url="https://www.google.com/search?q=c"),
            ),
        ])]

        sources = extract_sources(categories)

        assert [s.source_name for s in sources] == ["Eater NY", "@tribecatips", "Google"]
        assert sources[1].source_type is SourceType.X_USER
        assert sources[2].source_url is None

    def test_extract_sources_fallback(self):
        sources = extract_sources([])
        assert [s.source_name for s in sources] == ["X (Twitter)", "Google News"]
        assert all(s.source_type is SourceType.PLATFORM for s in sources)

    @pytest.mark.asyncio
    async def test_write_brief_creates_summary_article(self, store):
        brief = make_brief()
        writer = PersistenceWriter(store, clock=lambda: NOW)

        outcome = await writer.write_brief(brief, result_with())

        assert outcome.article_created
        fields = store.brief_updates["b1"]
        assert fields["enriched_content"] == "Enriched body. Second sentence."
        assert fields["enrichment_model"] == "gemini-2.5-pro"
        article = store.inserted[0]
        assert article.headline == "Tribeca DAILY BRIEF: Torrisi Returns"
        assert article.article_type == "brief_summary"
        assert article.brief_id == "b1"
        assert article.slug == "nyc-tribeca-brief-2024-06-01-torrisi-returns"
        assert article.published_at == brief.generated_at
        assert [s.article_id for s in store.sources] == [outcome.article_id, outcome.article_id]

    @pytest.mark.asyncio
    async def test_write_brief_is_idempotent(self, store):
        writer = PersistenceWriter(store, clock=lambda: NOW)
        await writer.write_brief(make_brief(), result_with())

        second = await writer.write_brief(make_brief(), result_with())

        assert not second.article_created
        assert len(store.inserted) == 1

    @pytest.mark.asyncio
    async def test_slug_conflict_is_not_an_error(self, store):
        store.failures["insert_article"] = WriteConflictError()
        writer = PersistenceWriter(store, clock=lambda: NOW)

        outcome = await writer.write_brief(make_brief(), result_with())

        assert not outcome.article_created
        assert "b1" in store.brief_updates

    @pytest.mark.asyncio
    async def test_other_insert_errors_propagate(self, store):
        store.failures["insert_article"] = RuntimeError("connection refused")
        writer = PersistenceWriter(store, clock=lambda: NOW)

        with pytest.raises(RuntimeError):
            await writer.write_brief(make_brief(), result_with())

    @pytest.mark.asyncio
    async def test_write_article(self, store):
        article = store.add_article(make_article())
        writer = PersistenceWriter(store, clock=lambda: NOW)

        await writer.write_article(article, result_with(content="Rewritten story. With detail."))

        fields = store.article_updates["a1"]
        assert fields["body_text"] == "Rewritten story. With detail."
        assert fields["preview_text"] == "Rewritten story. With detail."
        assert fields["enriched_at"] == NOW.isoformat()

    @pytest.mark.asyncio
    async def test_source_insert_failure_is_logged_only(self, store):
        store.failures["insert_article_sources"] = RuntimeError("rls violation")
        article = store.add_article(make_article())
        writer = PersistenceWriter(store, clock=lambda: NOW)

        await writer.write_article(article, result_with())

        assert "a1" in store.article_updates
