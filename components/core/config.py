from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database settings
    DB_URL: Optional[str] = None  # Optional full DB URL
    DB_USER: str = "root"
    DB_PASSWORD: str = "root"
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_NAME: str = "household_budget"

    # API settings
    API_VERSION: str = "v1"
    DEBUG: bool = False
    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Budget rules
    DEFAULT_CURRENCY: str = "USD"
    DUPLICATE_WINDOW_SECONDS: int = 10
    BUDGET_WARNING_RATIO: float = 0.8
    BUDGET_ALERT_THRESHOLDS: List[int] = [80, 100]
    UPCOMING_PAYMENTS_DAYS: int = 7

    # Background maintenance cadences (seconds)
    ENABLE_SCHEDULER: bool = False
    OVERDUE_CHECK_INTERVAL: int = 24 * 60 * 60
    REMINDER_CHECK_INTERVAL: int = 24 * 60 * 60
    BUDGET_ALERT_INTERVAL: int = 6 * 60 * 60
    RECONCILE_INTERVAL: int = 60 * 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        validate_default = True

    @property
    def async_db_url(self) -> str:
        """Get asynchronous database URL."""
        if self.DB_URL:
            return self.DB_URL
        return f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


@lru_cache()
def get_settings() -> Settings:
    """
    Returns cached Settings instance to avoid reloading .env file on every access
    """
    return Settings()


settings = get_settings()
