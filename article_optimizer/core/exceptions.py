"""Custom exceptions for the article optimizer."""


class OptimizerError(Exception):
    """Base exception for the article optimizer."""
    pass


class ConfigurationError(OptimizerError):
    """Configuration related errors."""
    pass


class DatabaseError(OptimizerError):
    """Database related errors."""
    pass


class BrowserLaunchError(OptimizerError):
    """The browser engine could not be started at all.

    Fatal for the whole pipeline run; never retried.
    """
    pass


class FetchError(OptimizerError):
    """A single page could not be loaded (navigation timeout, HTTP failure)."""

    def __init__(self, message: str, url: str = None):
        super().__init__(message)
        self.url = url


class ExtractionError(OptimizerError):
    """Content extraction errors."""
    pass


class SearchError(OptimizerError):
    """A reference search strategy failed."""
    pass


class APIError(OptimizerError):
    """External API errors."""

    def __init__(self, message: str, status_code: int = None, response_text: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class ArticleNotFoundError(OptimizerError):
    """Requested article does not exist."""

    def __init__(self, article_id):
        super().__init__(f"Article {article_id} not found")
        self.article_id = article_id


class AlreadyOptimizedError(OptimizerError):
    """Optimization requested for an article that is already optimized."""

    def __init__(self, article_id):
        super().__init__(f"Article {article_id} is already optimized")
        self.article_id = article_id
