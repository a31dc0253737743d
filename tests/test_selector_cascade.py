"""Tests for selector cascade content and metadata extraction."""

from bs4 import BeautifulSoup

from article_optimizer.browser.fetcher import DocumentHandle
from article_optimizer.extraction.selector_cascade import SelectorCascadeExtractor

from conftest import long_paragraphs


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


class TestContentRoot:
    def test_picks_first_qualifying_selector_by_priority(self):
        """Only the third selector clears the threshold; neither neighbour is chosen."""
        html = f"""
        <html><body>
          <div class="article-content"><p>A short teaser paragraph only.</p></div>
          <div class="post-content" id="winner">{long_paragraphs("customer support bots")}</div>
          <main id="lower">{long_paragraphs("something unrelated", 8)}</main>
        </body></html>
        """
        extractor = SelectorCascadeExtractor()

        extraction = extractor.extract_content_with_root(soup_of(html))

        assert extraction.selector == ".post-content"
        assert extraction.root.get("id") == "winner"
        assert "customer support bots" in extraction.text
        assert "unrelated" not in extraction.text

    def test_falls_back_to_body(self):
        html = f"<html><body><div>{long_paragraphs('plain pages')}</div></body></html>"
        extractor = SelectorCascadeExtractor()

        extraction = extractor.extract_content_with_root(soup_of(html))

        assert extraction.used_body_fallback
        assert "plain pages" in extraction.text

    def test_accepts_document_handle(self):
        html = f"<html><body><article>{long_paragraphs('handles')}</article></body></html>"
        handle = DocumentHandle(url="https://example.com/a", html=html)

        text = SelectorCascadeExtractor().extract_content(handle)

        assert "handles" in text


class TestRenderText:
    def test_structure_and_filters(self):
        html = """
        <article>
          <h2>Why chatbots matter for support</h2>
          <p>Chatbots answer routine questions around the clock.</p>
          <p>Too short.</p>
          <ul>
            <li>They reduce first response time a lot</li>
            <li><p>They route complex tickets to humans</p></li>
          </ul>
          <blockquote>Automation should never replace empathy.</blockquote>
          <p>We use cookies to improve your browsing experience.</p>
          <p>Chatbots answer routine questions around the clock.</p>
        </article>
        """
        extractor = SelectorCascadeExtractor()
        root = soup_of(html).article

        text = extractor.render_text(root)
        blocks = text.split("\n\n")

        assert blocks[0] == "### Why chatbots matter for support"
        assert "Too short." not in text
        assert "- They reduce first response time a lot" in blocks
        assert "- They route complex tickets to humans" in blocks
        assert "They route complex tickets to humans" not in [b for b in blocks if not b.startswith("- ")]
        assert "> Automation should never replace empathy." in blocks
        assert "cookies" not in text

    def test_consecutive_duplicates_collapse(self):
        html = "<article><p>Repeated paragraph about onboarding.</p><p>Repeated paragraph about onboarding.</p></article>"
        text = SelectorCascadeExtractor().render_text(soup_of(html).article)

        assert text == "Repeated paragraph about onboarding."

    def test_length_is_capped(self):
        paragraph = "Sentence about scaling customer conversations without more staff. " * 2
        html = "<html><body><article>" + f"<p>{paragraph}</p>" * 60 + "</article></body></html>"

        text = SelectorCascadeExtractor().extract_content(soup_of(html), max_length=1000)

        assert 0 < len(text) <= 1000

    def test_strip_unwanted_leaves_original_soup_untouched(self):
        html = f"""
        <html><body>
          <nav><p>Navigation menu with plenty of links inside</p></nav>
          <article>{long_paragraphs("reference pages")}</article>
        </body></html>
        """
        soup = soup_of(html)

        text = SelectorCascadeExtractor().extract_content(soup, strip_unwanted=True)

        assert "Navigation menu" not in text
        assert soup.nav is not None


class TestMetadata:
    def test_fields_by_priority(self):
        html = """
        <html><head>
          <title>Fallback title | Blog</title>
          <meta name="keywords" content="AI, Chatbots, ai">
        </head><body>
          <h1>Detail page heading</h1>
          <span class="author">Jane Doe</span>
          <time datetime="2023-03-14T10:00:00Z">March 14, 2023</time>
          <a rel="tag" href="/tag/support">Support</a>
        </body></html>
        """
        metadata = SelectorCascadeExtractor().extract_metadata(soup_of(html))

        assert metadata.title == "Detail page heading"
        assert metadata.author == "Jane Doe"
        assert metadata.date == "2023-03-14T10:00:00Z"
        assert metadata.tags == ["AI", "Chatbots", "Support"]

    def test_json_ld_fallback(self):
        html = """
        <html><head>
          <script type="application/ld+json">
            {"@type": "BlogPosting", "author": {"name": "Sam Lee"}, "datePublished": "2022-11-02"}
          </script>
        </head><body><p>No visible byline</p></body></html>
        """
        metadata = SelectorCascadeExtractor().extract_metadata(soup_of(html))

        assert metadata.author == "Sam Lee"
        assert metadata.date == "2022-11-02"

    def test_custom_field_selectors(self):
        html = '<html><body><h1>Main</h1><div class="headline">Custom headline</div></body></html>'
        metadata = SelectorCascadeExtractor().extract_metadata(
            soup_of(html), {"title": [(".headline", None)]}
        )

        assert metadata.title == "Custom headline"
