"""Article rewriting with the generative text service."""

import logging
import re
from typing import List, Optional

from ..config import Settings, get_settings
from ..schemas import OptimizedResult, ReferenceContent
from .ai_client import AIClient, get_ai_client
from .prompts import OptimizerPrompts

logger = logging.getLogger(__name__)

REFERENCES_HEADER = (
    "## References\n\n"
    "This article was optimized based on insights from the following sources:"
)
NO_REFERENCES_NOTE = (
    "*Note: This article was optimized without external reference sources, "
    "as no comparable top-ranking articles could be retrieved.*"
)
SECTION_SEPARATOR = "\n\n---\n\n"

_CODE_FENCE_RE = re.compile(r'^```(?:markdown|md)?\s*\n(.*?)\n```\s*$', re.DOTALL | re.IGNORECASE)
# Chatter a model may put ahead of its heading, e.g. "Sure! Here is the article:"
MAX_PREAMBLE_LINES = 2
MAX_PREAMBLE_LINE_LENGTH = 120


class ContentOptimizer:
    """Rewrites an article once, with or without reference material."""

    def __init__(self, ai_client: Optional[AIClient] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._ai_client = ai_client

    @property
    def ai_client(self) -> AIClient:
        # Built lazily so missing credentials only fail when a rewrite is attempted
        if self._ai_client is None:
            self._ai_client = get_ai_client()
        return self._ai_client

    async def optimize(self, article, references: List[ReferenceContent]) -> OptimizedResult:
        """
        Rewrite ``article`` and attach either a references section or a disclosure note.

        Raises:
            APIError: the generative service failed; nothing was changed
        """
        used = list(references or [])[:self.settings.optimizer_max_references]
        prompt = OptimizerPrompts.rewrite_article(
            article.title,
            article.content,
            used,
            word_range=self.settings.get_target_word_range(),
            excerpt_chars=self.settings.reference_excerpt_chars,
        )

        generated = await self.ai_client.generate_text(
            prompt,
            max_output_tokens=self.settings.optimizer_max_output_tokens,
            temperature=self.settings.optimizer_temperature,
        )
        body = self.normalize(generated, article.title)

        if used:
            content = body + SECTION_SEPARATOR + self.build_references_section(used)
            entries = [reference.to_entry() for reference in used]
        else:
            content = body + SECTION_SEPARATOR + NO_REFERENCES_NOTE
            entries = []

        logger.info(f"✨ Optimized '{article.title}': {len(content)} chars, {len(entries)} references")
        return OptimizedResult(
            content=content,
            references=entries,
            used_references=bool(used),
            model=getattr(self.ai_client, 'model', None),
        )

    def normalize(self, text: str, title: str) -> str:
        """Drop preamble and wrapping fences; keep exactly one leading ``# title``."""
        text = text.strip()
        fenced = _CODE_FENCE_RE.match(text)
        if fenced:
            text = fenced.group(1).strip()

        lines = text.splitlines()
        first_heading = next((i for i, line in enumerate(lines) if line.startswith('# ')), None)
        if first_heading is not None and self._is_preamble(lines[:first_heading]):
            lines = lines[first_heading + 1:]

        # Any further top-level headings become sections
        body_lines = ['#' + line if line.startswith('# ') else line for line in lines]
        body = '\n'.join(body_lines).strip()
        return f"# {title}\n\n{body}" if body else f"# {title}"

    @staticmethod
    def _is_preamble(lines: List[str]) -> bool:
        """Only short heading-free chatter counts; real sections before a late H1 are kept."""
        content = [line for line in lines if line.strip()]
        if len(content) > MAX_PREAMBLE_LINES:
            return False
        return all(
            not line.lstrip().startswith('#') and len(line) <= MAX_PREAMBLE_LINE_LENGTH
            for line in content
        )

    def build_references_section(self, references: List[ReferenceContent]) -> str:
        lines = [f"{i}. [{reference.title}]({reference.url})" for i, reference in enumerate(references, 1)]
        return REFERENCES_HEADER + "\n\n" + "\n".join(lines)
