"""Selector cascade extraction of article text and metadata."""

import copy
import json
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, Tag

from ..browser.fetcher import DocumentHandle
from ..core.cascade import first_success, named
from ..schemas import ArticleMetadata
from .extraction_constants import (
    ARTICLE_CONTENT_SELECTORS,
    AUTHOR_SELECTORS,
    DATE_SELECTORS,
    HEADING_TAGS,
    MIN_ROOT_TEXT_LENGTH,
    TEXT_TAGS,
    TITLE_SELECTORS,
    UNWANTED_SELECTORS,
)
from .extraction_utils import ExtractionUtils

logger = logging.getLogger(__name__)

Document = Union[DocumentHandle, BeautifulSoup]
FieldSelector = Tuple[str, Optional[str]]


@dataclass
class ContentExtraction:
    """Extracted text and the root it came from."""
    text: str
    root: Tag
    selector: Optional[str]  # None when the whole body was used

    @property
    def used_body_fallback(self) -> bool:
        return self.selector is None


def _soup_of(document: Document) -> BeautifulSoup:
    if isinstance(document, DocumentHandle):
        return document.soup
    return document


class SelectorCascadeExtractor:
    """Pick the best content root by priority and turn it into clean text."""

    def __init__(self, utils: Optional[ExtractionUtils] = None,
                 min_root_length: int = MIN_ROOT_TEXT_LENGTH):
        self.utils = utils or ExtractionUtils()
        self.min_root_length = min_root_length

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def extract_content(self, document: Document, selectors: Sequence[str] = None,
                        max_length: int = None, strip_unwanted: bool = False) -> str:
        """Text of the first qualifying root, or of the whole body."""
        extraction = self.extract_content_with_root(
            document, selectors, max_length=max_length, strip_unwanted=strip_unwanted
        )
        return extraction.text if extraction else ""

    def extract_content_with_root(self, document: Document, selectors: Sequence[str] = None,
                                  max_length: int = None,
                                  strip_unwanted: bool = False) -> Optional[ContentExtraction]:
        soup = _soup_of(document)
        if strip_unwanted:
            soup = copy.copy(soup)
            self.remove_unwanted_elements(soup)

        root, selector = self.choose_root(soup, selectors or ARTICLE_CONTENT_SELECTORS)
        if root is None:
            return None

        text = self.render_text(root)
        text = self.utils.finalize_content(text, max_length)
        logger.debug(f"Content root: {selector or '<body>'} ({len(text)} chars)")
        return ContentExtraction(text=text, root=root, selector=selector)

    def choose_root(self, soup: BeautifulSoup, selectors: Sequence[str]) -> Tuple[Optional[Tag], Optional[str]]:
        """First element, by selector priority, whose text clears the length threshold."""
        strategies = [named(selector, self._root_strategy(selector)) for selector in selectors]
        hit = first_success(strategies, soup)
        if hit:
            return hit.value, hit.name

        body = soup.body or soup
        return (body, None) if body is not None else (None, None)

    def _root_strategy(self, selector: str):
        def strategy(soup: BeautifulSoup) -> Optional[Tag]:
            for element in soup.select(selector):
                if len(self.utils.normalize_whitespace(element.get_text(' '))) > self.min_root_length:
                    return element
            return None
        return strategy

    def render_text(self, root: Tag) -> str:
        """Allowlisted descendants as markdown-ish blocks separated by blank lines."""
        blocks: List[str] = []
        for element in root.find_all(TEXT_TAGS):
            if self._has_text_ancestor(element, root):
                continue
            text = self.utils.normalize_whitespace(element.get_text(' '))
            if not self.utils.is_usable_fragment(text):
                continue
            block = self._format_block(element.name, text)
            if blocks and blocks[-1] == block:
                continue
            blocks.append(block)
        return '\n\n'.join(blocks)

    def _has_text_ancestor(self, element: Tag, root: Tag) -> bool:
        for parent in element.parents:
            if parent is root:
                return False
            if parent.name in TEXT_TAGS:
                return True
        return False

    def _format_block(self, tag: str, text: str) -> str:
        if tag == 'li':
            return f"- {text}"
        if tag in HEADING_TAGS:
            level = min(int(tag[1]) + 1, 6)  # the article title owns "#"
            return f"{'#' * level} {text}"
        if tag == 'blockquote':
            return f"> {text}"
        return text

    def remove_unwanted_elements(self, soup: BeautifulSoup) -> None:
        """Drop scripts, navigation, ads and sidebars in place."""
        for selector in UNWANTED_SELECTORS:
            for element in soup.select(selector):
                element.decompose()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def extract_metadata(self, document: Document, field_selectors: dict = None) -> ArticleMetadata:
        """Title, author, date and tags, each via its own cascade."""
        soup = _soup_of(document)
        field_selectors = field_selectors or {}

        return ArticleMetadata(
            title=self.extract_field(soup, field_selectors.get('title', TITLE_SELECTORS)),
            author=self.extract_field(soup, field_selectors.get('author', AUTHOR_SELECTORS))
                   or self._author_from_json_ld(soup),
            date=self.extract_field(soup, field_selectors.get('date', DATE_SELECTORS))
                 or self._date_from_json_ld(soup),
            tags=self.extract_tags(soup),
        )

    def extract_field(self, soup: BeautifulSoup, selectors: Iterable[FieldSelector]) -> Optional[str]:
        strategies = [named(sel, self._field_strategy(sel, attr)) for sel, attr in selectors]
        hit = first_success(strategies, soup)
        return hit.value if hit else None

    def _field_strategy(self, selector: str, attr: Optional[str]):
        def strategy(soup: BeautifulSoup) -> Optional[str]:
            element = soup.select_one(selector)
            if element is None:
                return None
            if attr:
                value = element.get(attr)
            else:
                value = element.get_text(' ')
            value = self.utils.normalize_whitespace(value or '')
            # Long matches on loose selectors are containers, not field values
            return value if 0 < len(value) <= 300 else None
        return strategy

    def extract_tags(self, soup: BeautifulSoup) -> List[str]:
        tags: List[str] = []
        keywords = soup.select_one('meta[name="keywords"]')
        if keywords and keywords.get('content'):
            tags.extend(part.strip() for part in keywords['content'].split(','))
        for link in soup.select('a[rel~="tag"]'):
            tags.append(link.get_text(strip=True))

        seen = set()
        unique = []
        for tag in tags:
            key = tag.lower()
            if tag and key not in seen:
                seen.add(key)
                unique.append(tag)
        return unique

    def _json_ld_items(self, soup: BeautifulSoup) -> List[dict]:
        items: List[dict] = []
        for script in soup.find_all('script', type='application/ld+json'):
            if not script.string:
                continue
            try:
                data = json.loads(script.string)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and '@graph' in data:
                data = data['@graph']
            for item in data if isinstance(data, list) else [data]:
                if isinstance(item, dict):
                    items.append(item)
        return items

    def _author_from_json_ld(self, soup: BeautifulSoup) -> Optional[str]:
        for item in self._json_ld_items(soup):
            author = item.get('author')
            if isinstance(author, list) and author:
                author = author[0]
            if isinstance(author, dict):
                author = author.get('name')
            if isinstance(author, str) and author.strip():
                return author.strip()
        return None

    def _date_from_json_ld(self, soup: BeautifulSoup) -> Optional[str]:
        for item in self._json_ld_items(soup):
            value = item.get('datePublished')
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
