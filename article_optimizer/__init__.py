"""Blog article ingestion and citation-backed rewriting pipeline."""

__version__ = "1.0.0"
