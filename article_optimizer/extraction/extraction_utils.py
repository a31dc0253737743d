"""Utility functions for content extraction."""

import re
import unicodedata
from urllib.parse import urlparse

from .extraction_constants import (
    BOILERPLATE_PATTERNS,
    MAX_CONTENT_LENGTH,
    MIN_FRAGMENT_LENGTH,
)

_BOILERPLATE_RE = [re.compile(pattern, re.IGNORECASE) for pattern in BOILERPLATE_PATTERNS]


class ExtractionUtils:
    """Utility functions for content extraction and processing."""

    def __init__(self, max_content_length: int = MAX_CONTENT_LENGTH,
                 min_fragment_length: int = MIN_FRAGMENT_LENGTH):
        self.max_content_length = max_content_length
        self.min_fragment_length = min_fragment_length

    def extract_domain(self, url: str) -> str:
        """Extract domain from URL, without a leading ``www.``."""
        try:
            netloc = urlparse(url).netloc.lower()
        except ValueError:
            return "unknown"
        return netloc[4:] if netloc.startswith("www.") else netloc

    def clean_url(self, url: str) -> str:
        """Clean URL from invisible and problematic characters."""
        problematic_chars = [
            '\u200B',  # Zero Width Space
            '\u200C',  # Zero Width Non-Joiner
            '\u200D',  # Zero Width Joiner
            '\u2060',  # Word Joiner
            '\uFEFF',  # Zero Width No-Break Space (BOM)
            '\u00A0',  # Non-breaking space
        ]

        cleaned_url = url or ""
        for char in problematic_chars:
            cleaned_url = cleaned_url.replace(char, '')

        cleaned_url = unicodedata.normalize('NFKC', cleaned_url)
        cleaned_url = ''.join(char for char in cleaned_url if not unicodedata.category(char).startswith('C'))

        return cleaned_url.strip()

    def canonical_url(self, url: str) -> str:
        """Canonical form used as the article key: no fragment, no trailing-slash variance."""
        cleaned = self.clean_url(url)
        parsed = urlparse(cleaned)
        path = parsed.path or '/'
        if len(path) > 1 and path.endswith('/'):
            path = path.rstrip('/')
        canonical = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
        if parsed.query:
            canonical = f"{canonical}?{parsed.query}"
        return canonical

    def is_same_domain(self, url: str, other: str) -> bool:
        return self.extract_domain(url) == self.extract_domain(other)

    def normalize_whitespace(self, text: str) -> str:
        return re.sub(r'\s+', ' ', text or '').strip()

    def is_boilerplate(self, text: str) -> bool:
        """Cookie, privacy, share-this and similar notices."""
        return any(pattern.search(text) for pattern in _BOILERPLATE_RE)

    def is_usable_fragment(self, text: str) -> bool:
        return len(text) >= self.min_fragment_length and not self.is_boilerplate(text)

    def finalize_content(self, content: str, max_length: int = None) -> str:
        """Final content processing and truncation."""
        if not content:
            return ""
        return self.smart_truncate(content.strip(), max_length or self.max_content_length)

    def smart_truncate(self, text: str, max_length: int) -> str:
        """Intelligently truncate text at paragraph or sentence boundaries."""
        if len(text) <= max_length:
            return text

        truncated = text[:max_length]

        # Prefer ending on a whole paragraph
        paragraph_end = truncated.rfind('\n\n')
        if paragraph_end > max_length // 2:
            return truncated[:paragraph_end].rstrip()

        sentence_endings = ['. ', '! ', '? ', '.\n']
        last_sentence_end = -1
        for ending in sentence_endings:
            pos = truncated.rfind(ending)
            if pos > last_sentence_end:
                last_sentence_end = pos + 1

        if last_sentence_end > max_length // 2:
            return truncated[:last_sentence_end].rstrip()

        # Fallback to word boundary
        words = truncated[:max_length - 3].split(' ')
        if len(words) > 1:
            return ' '.join(words[:-1]).rstrip() + '...'
        return truncated[:max_length - 3] + '...'
