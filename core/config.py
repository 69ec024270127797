"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings with environment variable support"""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Pagination / extraction
    DEFAULT_ITEMS_PER_PAGE: int = 100
    TOTAL_ITEMS_LIMIT: int = 1_000_000
    DOWNLOAD_TIMEOUT_MS: int = 30_000

    # Error handling defaults (used when a pipeline declares none)
    DEFAULT_MAX_RETRIES: int = 0
    DEFAULT_RETRY_INTERVAL_MS: int = 1000
    DEFAULT_FAIL_ON_ERROR: bool = True

    # OAuth2 token endpoint calls (seconds)
    TOKEN_REQUEST_TIMEOUT: float = 30.0

    # Scheduler
    SCHEDULER_TIMEZONE: str = "UTC"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
