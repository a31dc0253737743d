"""Tests for reference harvesting and the snippet fallback."""

import pytest

from article_optimizer.core.exceptions import BrowserLaunchError
from article_optimizer.schemas import CandidateItem, SNIPPET_FALLBACK_NOTE
from article_optimizer.services.reference_harvester import ReferenceHarvester

from conftest import FakeFetcher, long_paragraphs

FULL_URL = "https://zendesk.com/blog/chatbots"
THIN_URL = "https://thin.example.com/blog/post"
DEAD_URL = "https://dead.example.com/blog/post"

PAGES = {
    FULL_URL: f"""
        <html><body>
          <nav><p>Products Pricing Resources Company Careers</p></nav>
          <article>{long_paragraphs("support chatbots")}</article>
          <footer><p>Copyright notice and a long list of footer links</p></footer>
        </body></html>
    """,
    THIN_URL: "<html><body><p>Subscribe to read this story.</p></body></html>",
}

SNIPPET = "A fifty-plus character snippet describing chatbots for customer support teams."


class TestHarvest:
    async def test_full_content_accepted(self, settings):
        harvester = ReferenceHarvester(FakeFetcher(PAGES), settings=settings)

        references = await harvester.harvest([CandidateItem(title="Chatbots guide", url=FULL_URL, preview=SNIPPET)])

        assert len(references) == 1
        reference = references[0]
        assert reference.from_snippet is False
        assert "support chatbots" in reference.content
        assert "Products Pricing" not in reference.content
        assert len(reference.content) <= 5000

    async def test_short_page_uses_annotated_snippet(self, settings):
        harvester = ReferenceHarvester(FakeFetcher(PAGES), settings=settings)

        references = await harvester.harvest([CandidateItem(title="Thin page", url=THIN_URL, preview=SNIPPET)])

        assert len(references) == 1
        assert references[0].from_snippet is True
        assert references[0].content == f"{SNIPPET_FALLBACK_NOTE}\n\n{SNIPPET}"

    async def test_failed_load_uses_snippet(self, settings):
        harvester = ReferenceHarvester(FakeFetcher(PAGES), settings=settings)

        references = await harvester.harvest([CandidateItem(title="Dead page", url=DEAD_URL, preview=SNIPPET)])

        assert references[0].content.startswith(SNIPPET_FALLBACK_NOTE)

    async def test_no_content_and_no_snippet_is_dropped(self, settings):
        harvester = ReferenceHarvester(FakeFetcher(PAGES), settings=settings)
        candidates = [
            CandidateItem(title="Thin page", url=THIN_URL, preview=""),
            CandidateItem(title="Chatbots guide", url=FULL_URL),
        ]

        references = await harvester.harvest(candidates)

        assert [r.url for r in references] == [FULL_URL]

    async def test_entries_carry_harvest_time(self, settings):
        harvester = ReferenceHarvester(FakeFetcher(PAGES), settings=settings)

        references = await harvester.harvest([CandidateItem(title="Chatbots guide", url=FULL_URL)])
        entry = references[0].to_entry()

        assert entry["title"] == "Chatbots guide"
        assert entry["url"] == FULL_URL
        assert entry["scraped_at"]

    async def test_no_candidates_opens_no_browser(self, settings):
        fetcher = FakeFetcher(PAGES)

        assert await ReferenceHarvester(fetcher, settings=settings).harvest([]) == []
        assert fetcher.opened == 0

    async def test_browser_launch_failure_propagates(self, settings):
        fetcher = FakeFetcher(PAGES, launch_error=BrowserLaunchError("chromium missing"))

        with pytest.raises(BrowserLaunchError):
            await ReferenceHarvester(fetcher, settings=settings).harvest([CandidateItem(title="t", url=FULL_URL)])
