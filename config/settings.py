import os
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Application settings loaded from environment variables with defaults.

    Every value can be overridden through the environment (or a local .env
    file), while the defaults are enough to run a local scan against a
    MySQL database on localhost.
    """

    # Project metadata
    PROJECT_NAME = "Pricing Radar"
    PROJECT_VERSION = "0.1.0"

    # Database Settings
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "3306")
    DB_NAME = os.getenv("DB_NAME", "pricing_radar")
    DB_USER = os.getenv("DB_USER", "user")
    DB_PASS = os.getenv("DB_PASSWORD", "password")
    DB_URL_OVERRIDE = os.getenv("DATABASE_URL")

    # Whose prices the alerts and suggestions talk about
    STORE_NAME = os.getenv("STORE_NAME", "GoRocky")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "PHP")

    # Alerting
    DISCOUNT_ALERT_PERCENT = float(os.getenv("DISCOUNT_ALERT_PERCENT", "15"))
    VARIANCE_ALERT_PERCENT = float(os.getenv("VARIANCE_ALERT_PERCENT", "10"))
    PRICE_DROP_ALERT_PERCENT = float(os.getenv("PRICE_DROP_ALERT_PERCENT", "10"))
    MAX_ALERTS = int(os.getenv("MAX_ALERTS", "10"))

    # History and forecasting
    HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "30"))
    BACKFILL_DAYS = int(os.getenv("BACKFILL_DAYS", "7"))
    FORECAST_TARGET_VARIANCE = float(os.getenv("FORECAST_TARGET_VARIANCE", "0.05"))

    # Scraping
    REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))
    USER_AGENT = os.getenv("USER_AGENT", "PricingRadar/0.1.0 (Price Monitor)")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @property
    def DATABASE_URL(self) -> str:
        """Constructs a SQLAlchemy connection string, MySQL unless overridden."""
        if self.DB_URL_OVERRIDE:
            return self.DB_URL_OVERRIDE
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASS}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


# For direct access in other modules
settings = get_settings()
