"""Tests for the rewrite step and its citation branches."""

from datetime import datetime

import pytest

from article_optimizer.core.exceptions import APIError
from article_optimizer.models import Article
from article_optimizer.schemas import ReferenceContent
from article_optimizer.services.content_optimizer import (
    NO_REFERENCES_NOTE,
    REFERENCES_HEADER,
    ContentOptimizer,
)
from article_optimizer.services.prompts import OptimizerPrompts

from conftest import FakeAIClient


def make_article():
    return Article(id=1, url="https://beyondchats.com/blogs/chatbots-101", title="Chatbots 101",
                   content="Original body about chatbots.", is_updated=False)


def make_reference(i, content="Reference body text. " * 10):
    return ReferenceContent(
        title=f"Reference {i}",
        url=f"https://ref{i}.example.com/blog/post",
        content=content,
        scraped_at=datetime(2024, 1, i),
    )


class TestCitationBranches:
    async def test_without_references_appends_disclosure(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)

        result = await optimizer.optimize(make_article(), [])

        assert NO_REFERENCES_NOTE in result.content
        assert "## References" not in result.content
        assert result.references == []
        assert result.used_references is False

    async def test_with_references_appends_numbered_links(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)
        references = [make_reference(1), make_reference(2)]

        result = await optimizer.optimize(make_article(), references)

        assert REFERENCES_HEADER in result.content
        assert "1. [Reference 1](https://ref1.example.com/blog/post)" in result.content
        assert "2. [Reference 2](https://ref2.example.com/blog/post)" in result.content
        assert NO_REFERENCES_NOTE not in result.content
        assert [entry["url"] for entry in result.references] == [r.url for r in references]
        assert result.references[0]["scraped_at"] == "2024-01-01T00:00:00"
        assert result.used_references is True

    async def test_reference_count_is_capped(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)

        result = await optimizer.optimize(make_article(), [make_reference(i) for i in range(1, 4)])

        assert len(result.references) == settings.optimizer_max_references == 2
        assert "3. [Reference 3]" not in result.content

    async def test_service_failure_propagates(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(fail=True), settings=settings)

        with pytest.raises(APIError):
            await optimizer.optimize(make_article(), [])


class TestNormalize:
    def test_preamble_and_fences_are_removed(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)
        raw = "```markdown\nSure! Here is the rewritten article:\n\n# A different title\n\nBody text.\n\n# Second H1\n\nMore.\n```"

        text = optimizer.normalize(raw, "Chatbots 101")

        assert text.startswith("# Chatbots 101\n\nBody text.")
        assert "Sure!" not in text
        assert "## Second H1" in text
        assert text.count("\n# ") == 0
        assert "```" not in text

    def test_sections_before_a_late_heading_are_kept(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)
        raw = "## Introduction\n\nImportant intro paragraph.\n\n## Details\n\nKey facts.\n\n# Conclusion\n\nWrap up."

        text = optimizer.normalize(raw, "My Title")

        assert text == (
            "# My Title\n\n## Introduction\n\nImportant intro paragraph.\n\n"
            "## Details\n\nKey facts.\n\n## Conclusion\n\nWrap up."
        )

    def test_long_paragraph_before_heading_is_not_preamble(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)
        intro = "Chatbots answer customer questions around the clock. " * 4

        text = optimizer.normalize(f"{intro.strip()}\n\n# Why it matters\n\nBody.", "My Title")

        assert intro.strip() in text
        assert "## Why it matters" in text

    def test_missing_heading_is_added(self, settings):
        optimizer = ContentOptimizer(ai_client=FakeAIClient(), settings=settings)

        text = optimizer.normalize("## Section\n\nBody.", "Chatbots 101")

        assert text == "# Chatbots 101\n\n## Section\n\nBody."


class TestPrompt:
    def test_reference_excerpts_are_capped(self):
        reference = make_reference(1, content="x" * 5000)

        prompt = OptimizerPrompts.rewrite_article("Title", "Body", [reference], (800, 1500), 2000)

        assert "x" * 2000 in prompt
        assert "x" * 2001 not in prompt
        assert "800-1500 words" in prompt
        assert "# Title" in prompt

    async def test_prompt_mentions_missing_references(self, settings):
        ai_client = FakeAIClient()
        await ContentOptimizer(ai_client=ai_client, settings=settings).optimize(make_article(), [])

        assert "No reference articles are available" in ai_client.prompts[0]
        assert "Original body about chatbots." in ai_client.prompts[0]
