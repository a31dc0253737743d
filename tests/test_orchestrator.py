"""Tests for the optimization state machine and the trigger boundary."""

import pytest

from article_optimizer.core.exceptions import APIError, AlreadyOptimizedError, ArticleNotFoundError
from article_optimizer.models import Article
from article_optimizer.orchestrator import PipelineOrchestrator
from article_optimizer.schemas import CandidateItem, TaskStatus
from article_optimizer.services.content_optimizer import NO_REFERENCES_NOTE, ContentOptimizer
from article_optimizer.services.task_runner import PipelineTaskRunner

from conftest import FakeAIClient, FakeFetcher, FakeSearch, long_paragraphs

REFERENCE_URL = "https://zendesk.com/blog/chatbots"


async def stored_article(store, slug="chatbots-101", title="Chatbots 101"):
    return await store.insert(Article(
        url=f"https://beyondchats.com/blogs/{slug}",
        title=title,
        content=f"Original content of {title}.",
        source="BeyondChats",
    ))


@pytest.fixture
def search():
    return FakeSearch()


@pytest.fixture
async def orchestrator(store, settings, search, ai_client):
    fetcher = FakeFetcher({REFERENCE_URL: f"<html><body><article>{long_paragraphs('chatbots')}</article></body></html>"})
    orchestrator = PipelineOrchestrator(
        store=store,
        fetcher=fetcher,
        search=search,
        optimizer=ContentOptimizer(ai_client=ai_client, settings=settings),
        runner=PipelineTaskRunner(max_workers=2),
        settings=settings,
    )
    yield orchestrator
    await orchestrator.close()


class TestOptimizeArticle:
    async def test_empty_search_gives_reference_less_rewrite(self, orchestrator, store):
        article = await stored_article(store)

        await orchestrator.optimize_article(article.id)

        saved = await store.find_by_id(article.id)
        assert saved.is_updated is True
        assert saved.references == []
        assert NO_REFERENCES_NOTE in saved.content
        assert saved.original_content == "Original content of Chatbots 101."

    async def test_references_are_attached(self, orchestrator, store, search):
        search.results = [CandidateItem(title="Chatbots guide", url=REFERENCE_URL, preview="snippet")]
        article = await stored_article(store)

        await orchestrator.optimize_article(article.id)

        saved = await store.find_by_id(article.id)
        assert [ref["url"] for ref in saved.references] == [REFERENCE_URL]
        assert f"1. [Chatbots guide]({REFERENCE_URL})" in saved.content
        assert search.queries == ["Chatbots 101"]

    async def test_second_request_rejected_before_any_service_call(self, orchestrator, store, search, ai_client):
        article = await stored_article(store)
        await orchestrator.optimize_article(article.id)

        with pytest.raises(AlreadyOptimizedError):
            await orchestrator.optimize_article(article.id)
        with pytest.raises(AlreadyOptimizedError):
            await orchestrator.request_optimization(article.id)

        assert len(search.queries) == 1
        assert len(ai_client.prompts) == 1

    async def test_original_content_survives_reset_and_rerun(self, orchestrator, store):
        article = await stored_article(store)
        await orchestrator.optimize_article(article.id)

        # Operator reset of the flag
        saved = await store.find_by_id(article.id)
        saved.is_updated = False
        await store.save(saved)
        await orchestrator.optimize_article(article.id)

        final = await store.find_by_id(article.id)
        assert final.original_content == "Original content of Chatbots 101."
        with pytest.raises(ValueError):
            final.original_content = "something else"

    async def test_service_failure_leaves_article_untouched(self, store, settings, search):
        orchestrator = PipelineOrchestrator(
            store=store,
            fetcher=FakeFetcher(),
            search=search,
            optimizer=ContentOptimizer(ai_client=FakeAIClient(fail=True), settings=settings),
            settings=settings,
        )
        article = await stored_article(store)

        with pytest.raises(APIError):
            await orchestrator.optimize_article(article.id)

        saved = await store.find_by_id(article.id)
        assert saved.is_updated is False
        assert saved.original_content is None
        assert saved.content == "Original content of Chatbots 101."
        assert saved.references == []

    async def test_unknown_article(self, orchestrator):
        with pytest.raises(ArticleNotFoundError):
            await orchestrator.optimize_article(999)


class TestOptimizePending:
    async def test_failures_are_isolated(self, store, settings, search):
        orchestrator = PipelineOrchestrator(
            store=store,
            fetcher=FakeFetcher(),
            search=search,
            optimizer=ContentOptimizer(ai_client=FakeAIClient(fail_on=("Title: Broken",)), settings=settings),
            settings=settings,
        )
        await stored_article(store, "first", "First post")
        await stored_article(store, "broken", "Broken post")
        await stored_article(store, "third", "Third post")

        stats = await orchestrator.optimize_pending()

        assert stats["processed"] == 3
        assert stats["optimized"] == 2
        assert stats["failed"] == 1
        assert stats["total_optimized"] == 2
        assert stats["total_original"] == 1


class TestTriggerBoundary:
    async def test_request_is_accepted_and_runs_in_background(self, orchestrator, store):
        article = await stored_article(store)

        record = await orchestrator.request_optimization(article.id)

        assert record.kind == "optimize"
        assert record.article_id == article.id
        finished = await orchestrator.runner.wait(record.task_id, timeout=5)
        assert finished.status == TaskStatus.SUCCEEDED
        assert (await store.find_by_id(article.id)).is_updated is True

    async def test_unknown_article_rejected(self, orchestrator):
        with pytest.raises(ArticleNotFoundError):
            await orchestrator.request_optimization(12345)

    async def test_background_failure_is_recorded_not_raised(self, store, settings, search):
        orchestrator = PipelineOrchestrator(
            store=store,
            fetcher=FakeFetcher(),
            search=search,
            optimizer=ContentOptimizer(ai_client=FakeAIClient(fail=True), settings=settings),
            runner=PipelineTaskRunner(max_workers=1),
            settings=settings,
        )
        article = await stored_article(store)

        record = await orchestrator.request_optimization(article.id)
        finished = await orchestrator.runner.wait(record.task_id, timeout=5)
        await orchestrator.close()

        assert finished.status == TaskStatus.FAILED
        assert "APIError" in finished.error
        assert (await store.find_by_id(article.id)).is_updated is False

    async def test_duplicate_request_returns_in_flight_record(self, orchestrator, store):
        article = await stored_article(store)

        # Holding the article lock keeps the first run in flight
        async with orchestrator.runner.article_lock(article.id):
            first = await orchestrator.request_optimization(article.id)
            second = await orchestrator.request_optimization(article.id)

        assert second.task_id == first.task_id
        await orchestrator.runner.wait(first.task_id, timeout=5)

    async def test_crawl_request_runs_in_background(self, orchestrator):
        record = await orchestrator.request_crawl()

        assert record.kind == "crawl"
        assert record.article_id is None
        finished = await orchestrator.runner.wait(record.task_id, timeout=5)
        # The index page is not served, so the run ends without writing anything
        assert finished.status == TaskStatus.SUCCEEDED
        assert finished.result["created"] == 0
        assert "error" in finished.result
