"""Configuration management."""

from typing import Optional, List

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./articles.db", alias="DATABASE_URL")

    # Source being ingested
    source_index_url: str = Field(default="https://beyondchats.com/blogs/", alias="SOURCE_INDEX_URL")
    source_name: str = Field(default="BeyondChats", alias="SOURCE_NAME")
    source_link_pattern: str = Field(default="/blog", alias="SOURCE_LINK_PATTERN")
    crawl_target_count: int = Field(default=5, alias="CRAWL_TARGET_COUNT")
    crawl_item_delay: float = Field(default=2.0, alias="CRAWL_ITEM_DELAY")

    # Headless browser
    browser_headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    browser_timeout_ms: int = Field(default=60_000, alias="BROWSER_TIMEOUT_MS")
    browser_settle_min_ms: int = Field(default=800, alias="BROWSER_SETTLE_MIN_MS")
    browser_settle_max_ms: int = Field(default=2500, alias="BROWSER_SETTLE_MAX_MS")
    browser_user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="BROWSER_USER_AGENT")
    viewport_width: int = Field(default=1920, alias="VIEWPORT_WIDTH")
    viewport_height: int = Field(default=1080, alias="VIEWPORT_HEIGHT")
    max_browser_sessions: int = Field(default=2, alias="MAX_BROWSER_SESSIONS")

    # Reference search
    google_api_key: Optional[SecretStr] = Field(default=None, alias="GOOGLE_API_KEY")
    google_search_engine_id: Optional[str] = Field(default=None, alias="GOOGLE_SEARCH_ENGINE_ID")
    google_search_api_endpoint: str = Field(
        default="https://www.googleapis.com/customsearch/v1",
        alias="GOOGLE_SEARCH_API_ENDPOINT"
    )
    search_engine_url: str = Field(default="https://www.google.com/search", alias="SEARCH_ENGINE_URL")
    search_max_results: int = Field(default=2, alias="SEARCH_MAX_RESULTS")
    search_api_raw_results: int = Field(default=10, alias="SEARCH_API_RAW_RESULTS")
    search_query_suffix: str = Field(default=" blog article", alias="SEARCH_QUERY_SUFFIX")
    search_excluded_domains: Optional[str] = Field(default=None, alias="SEARCH_EXCLUDED_DOMAINS")
    challenge_max_wait_seconds: Optional[float] = Field(default=None, alias="CHALLENGE_MAX_WAIT_SECONDS")
    challenge_poll_seconds: float = Field(default=3.0, alias="CHALLENGE_POLL_SECONDS")

    # Generative text service
    ai_provider: str = Field(default="gemini", alias="AI_PROVIDER")  # "gemini" or "openai"
    gemini_api_key: Optional[SecretStr] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_api_endpoint: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
        alias="GEMINI_API_ENDPOINT"
    )
    openai_compatible_api: Optional[str] = Field(default=None, alias="OPENAI_COMPATIBLE_API")
    openai_compatible_api_key: Optional[SecretStr] = Field(default=None, alias="OPENAI_COMPATIBLE_API_KEY")
    optimizer_model: str = Field(default="gemini-2.5-flash", alias="OPTIMIZER_MODEL")
    optimizer_temperature: float = Field(default=0.7, alias="OPTIMIZER_TEMPERATURE")
    optimizer_max_output_tokens: int = Field(default=3000, alias="OPTIMIZER_MAX_OUTPUT_TOKENS")
    optimizer_max_references: int = Field(default=2, alias="OPTIMIZER_MAX_REFERENCES")
    reference_excerpt_chars: int = Field(default=2000, alias="REFERENCE_EXCERPT_CHARS")
    target_word_range: str = Field(default="800-1500", alias="TARGET_WORD_RANGE")
    ai_request_timeout: int = Field(default=120, alias="AI_REQUEST_TIMEOUT")

    # Application
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    max_workers: int = Field(default=2, alias="MAX_WORKERS")
    api_rate_limit: int = Field(default=3, alias="RPS")  # Requests per second
    reference_delay: float = Field(default=2.0, alias="REFERENCE_DELAY")
    article_delay: float = Field(default=5.0, alias="ARTICLE_DELAY")

    @field_validator(
        'google_api_key', 'google_search_engine_id', 'gemini_api_key',
        'openai_compatible_api', 'openai_compatible_api_key',
        'search_excluded_domains', 'challenge_max_wait_seconds',
        mode='before'
    )
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None for optional fields."""
        if v == '' or v is None:
            return None
        return v

    @property
    def search_api_configured(self) -> bool:
        """Both Custom Search credentials are present."""
        return bool(self.google_api_key and self.google_search_engine_id)

    def get_excluded_domains_list(self) -> List[str]:
        """Return extra excluded search domains as list."""
        if not self.search_excluded_domains:
            return []
        return [item.strip().lower() for item in self.search_excluded_domains.split(',') if item.strip()]

    def get_target_word_range(self) -> tuple[int, int]:
        """Parse TARGET_WORD_RANGE ("800-1500") into a (low, high) tuple."""
        try:
            low, high = (int(part) for part in self.target_word_range.split('-', 1))
            return (low, high) if low <= high else (high, low)
        except ValueError:
            return 800, 1500


settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
