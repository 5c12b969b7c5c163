"""
Configuration management using environment variables.
Handles provider credentials, fetch policy and scheduler settings with validation and defaults.
"""

from typing import Dict, List, Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path

from scraper.errors import ConfigError


# Domains whose chapter list only renders after an interaction.
# Keys are matched as substrings of the hostname.
DEFAULT_DOMAIN_ACTIONS: Dict[str, Dict] = {
    "manhwaweb.com": {
        "actions": [
            {"type": "click", "selector": "button.bg-blue-700"},
            {"type": "wait", "milliseconds": 3000},
        ],
        "onlyMainContent": False,
    },
}


class ScraperConfig(BaseSettings):
    """
    Configuration class for scraper and scheduler settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_database: str = Field(default="manga_tracker", env="MONGODB_DATABASE")

    # Provider credentials
    firecrawl_api_key: Optional[str] = Field(default=None, env="FIRECRAWL_API_KEY")
    firecrawl_base_url: str = Field(default="https://api.firecrawl.dev/v1", env="FIRECRAWL_BASE_URL")
    gemini_api_key: Optional[str] = Field(default=None, env="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash-exp", env="GEMINI_MODEL")

    # Fetch policy
    direct_fetch_timeout: float = Field(default=5.0, env="DIRECT_FETCH_TIMEOUT")
    provider_timeout: float = Field(default=90.0, env="PROVIDER_TIMEOUT")
    extraction_timeout: float = Field(default=120.0, env="EXTRACTION_TIMEOUT")
    cover_check_timeout: float = Field(default=10.0, env="COVER_CHECK_TIMEOUT")
    html_char_limit: int = Field(default=200000, env="HTML_CHAR_LIMIT")
    markdown_char_limit: int = Field(default=150000, env="MARKDOWN_CHAR_LIMIT")
    rate_limit_per_second: float = Field(default=2.0, env="RATE_LIMIT_PER_SECOND")
    domain_actions: Dict[str, Dict] = Field(default_factory=lambda: dict(DEFAULT_DOMAIN_ACTIONS))

    # Scheduler Configuration
    check_interval_hours: int = Field(default=6, env="CHECK_INTERVAL_HOURS")
    item_delay_seconds: float = Field(default=5.0, env="ITEM_DELAY_SECONDS")
    cadence_days: int = Field(default=7, env="CADENCE_DAYS")
    cadence_buffer_hours: int = Field(default=6, env="CADENCE_BUFFER_HOURS")
    manual_trigger_cooldown_seconds: int = Field(default=300, env="MANUAL_TRIGGER_COOLDOWN_SECONDS")
    timezone: str = Field(default="UTC", env="TIMEZONE")

    # Web push
    vapid_public_key: Optional[str] = Field(default=None, env="VAPID_PUBLIC_KEY")
    vapid_private_key: Optional[str] = Field(default=None, env="VAPID_PRIVATE_KEY")
    vapid_subject: str = Field(default="mailto:admin@example.com", env="VAPID_SUBJECT")
    notification_icon: str = Field(default="/icon-192x192.png", env="NOTIFICATION_ICON")

    # API
    api_keys: str = Field(default="", env="API_KEYS")
    cron_secret: Optional[str] = Field(default=None, env="CRON_SECRET")
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default="logs/scraper.log", env="LOG_FILE")

    # Development/Testing
    debug: bool = Field(default=False, env="DEBUG")

    @validator('direct_fetch_timeout')
    def validate_direct_timeout(cls, v):
        """The direct probe must stay cheap."""
        if v <= 0 or v > 30:
            raise ValueError('direct_fetch_timeout must be between 0 and 30 seconds')
        return v

    @validator('provider_timeout', 'extraction_timeout', 'cover_check_timeout')
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v <= 0 or v > 600:
            raise ValueError('timeouts must be between 0 and 600 seconds')
        return v

    @validator('html_char_limit', 'markdown_char_limit')
    def validate_char_limit(cls, v):
        if v < 1000:
            raise ValueError('character limits must be at least 1000')
        return v

    @validator('rate_limit_per_second')
    def validate_rate_limit(cls, v):
        """Ensure rate limit is reasonable."""
        if v < 0.1 or v > 10:
            raise ValueError('rate_limit_per_second must be between 0.1 and 10')
        return v

    @validator('check_interval_hours')
    def validate_interval(cls, v):
        if v < 1 or v > 24:
            raise ValueError('check_interval_hours must be between 1 and 24')
        return v

    @validator('item_delay_seconds')
    def validate_item_delay(cls, v):
        if v < 0:
            raise ValueError('item_delay_seconds cannot be negative')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def require_provider_credentials(self) -> None:
        """
        Fail fast when the scrape or language-model credentials are missing.

        Raises:
            ConfigError: If either API key is not configured
        """
        if not self.firecrawl_api_key:
            raise ConfigError("FIRECRAWL_API_KEY is missing")
        if not self.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY is missing")

    def push_enabled(self) -> bool:
        """Check whether VAPID keys are configured for web push."""
        return bool(self.vapid_public_key and self.vapid_private_key)

    def get_api_keys(self) -> List[str]:
        """Parse the comma-separated admin API keys."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    def get_user_agent(self) -> str:
        """Get a realistic browser user agent string for direct fetches."""
        return (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        )

    def get_headers(self) -> dict:
        """Get default headers for direct HTTP requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }


# Global configuration instance
config = ScraperConfig()
