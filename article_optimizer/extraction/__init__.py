"""Content extraction components."""

from .extraction_utils import ExtractionUtils
from .selector_cascade import ContentExtraction, SelectorCascadeExtractor

__all__ = [
    'ContentExtraction',
    'ExtractionUtils',
    'SelectorCascadeExtractor',
]
