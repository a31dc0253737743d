"""
Centralized AI prompts for the article optimizer.

Keeping the rewrite instructions in one place makes them easier to maintain,
version and improve.
"""

from typing import List, Sequence

from ..schemas import ReferenceContent


class OptimizerPrompts:
    """Collection of AI prompts for article rewriting."""

    # =============================================================================
    # SHARED REWRITE RULES
    # =============================================================================

    @staticmethod
    def _get_rewrite_rules(title: str, word_range: Sequence[int], has_references: bool) -> str:
        """Formatting, length and tone directives shared by every rewrite."""
        low, high = word_range
        reference_rule = (
            "- Learn from the structure, depth and formatting of the reference articles, "
            "but do not copy their sentences\n"
            if has_references else
            "- Improve structure, clarity and depth using only the original article\n"
        )
        return f"""INSTRUCTIONS:
- Rewrite the original article so it is comprehensive, well structured and engaging
- Length: {low}-{high} words
- Start with a single top-level heading exactly like this: # {title}
- Use ## for sections and ### for sub-sections, bullet points where they help
- Keep the original message, facts and intent of the article
{reference_rule}- Professional, reader-friendly tone
- No preamble, no closing remarks, no notes about the rewrite: output the article only, in Markdown
"""

    # =============================================================================
    # ARTICLE REWRITE
    # =============================================================================

    @staticmethod
    def format_references(references: List[ReferenceContent], excerpt_chars: int) -> str:
        blocks = []
        for i, reference in enumerate(references, 1):
            excerpt = reference.content[:excerpt_chars]
            blocks.append(f"REFERENCE ARTICLE {i}: {reference.title}\nURL: {reference.url}\n\n{excerpt}")
        return "\n\n---\n\n".join(blocks)

    @staticmethod
    def rewrite_article(title: str, content: str, references: List[ReferenceContent],
                        word_range: Sequence[int] = (800, 1500), excerpt_chars: int = 2000) -> str:
        """Build the rewrite prompt for one article."""
        rules = OptimizerPrompts._get_rewrite_rules(title, word_range, bool(references))

        if references:
            intro = (
                "You are an expert content writer and SEO specialist. Improve the article below "
                "using the top-ranking articles on the same topic as a guide."
            )
            reference_block = (
                "\n\nTOP-RANKING REFERENCE ARTICLES:\n\n"
                + OptimizerPrompts.format_references(references, excerpt_chars)
            )
        else:
            intro = (
                "You are an expert content writer and SEO specialist. Improve the article below. "
                "No reference articles are available for this topic."
            )
            reference_block = ""

        return f"""{intro}

ORIGINAL ARTICLE
Title: {title}

{content}{reference_block}

{rules}"""
