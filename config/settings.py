"""
Application Settings - Load from YAML configs + .env secrets

Design Philosophy:
- Service configs (hosts, ports, upstream URLs, indicator policy) → YAML files (versioned in git)
- Secrets (passwords, API keys) → .env file (gitignored)

Uses Pydantic for validation and type safety
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.utils.config import load_yaml_safe


class Settings(BaseSettings):
    """
    Application settings

    Architecture:
    - Infrastructure configs → config/providers/*.yaml
    - Secrets → .env (gitignored)

    Usage:
        from config.settings import get_settings

        settings = get_settings()
        print(settings.INDICATOR_FRESHNESS_SECONDS)  # From indicators.yaml
        print(settings.FRED_API_KEY)  # From .env
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Load YAML configs from files (cached at class level)
        if not hasattr(Settings, "_yaml_loaded"):
            Settings._database_config = load_yaml_safe("config/providers/databases.yaml")
            Settings._sources_config = load_yaml_safe("config/providers/sources.yaml")
            Settings._indicators_config = load_yaml_safe("config/providers/indicators.yaml")
            Settings._server_config = load_yaml_safe("config/providers/server.yaml")
            Settings._yaml_loaded = True

    # ============================================
    # ENVIRONMENT (.env only)
    # ============================================
    ENVIRONMENT: str = Field(default="local", description="Environment: local, dev, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # ============================================
    # UPSTREAM SECRETS (.env only)
    # ============================================
    FRED_API_KEY: str | None = Field(default=None, description="St. Louis Fed API key")

    # ============================================
    # CLICKHOUSE (from YAML + .env)
    # ============================================
    @property
    def CLICKHOUSE_HOST(self) -> str:
        """ClickHouse host from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("host", "clickhouse")

    @property
    def CLICKHOUSE_PORT(self) -> int:
        """ClickHouse native port from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("port", 9000)

    @property
    def CLICKHOUSE_DB(self) -> str:
        """ClickHouse database from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("database", "sentiment")

    @property
    def CLICKHOUSE_USER(self) -> str:
        """ClickHouse user from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("user", "sentiment_user")

    # ClickHouse password from .env (secret)
    CLICKHOUSE_PASSWORD: str = Field(default="sentiment_pass")

    @property
    def clickhouse_dsn(self) -> str:
        """ClickHouse connection string"""
        return (
            f"clickhouse://{self.CLICKHOUSE_USER}:{self.CLICKHOUSE_PASSWORD}"
            f"@{self.CLICKHOUSE_HOST}:{self.CLICKHOUSE_PORT}/{self.CLICKHOUSE_DB}"
        )

    # ============================================
    # REDIS (from YAML + .env)
    # ============================================
    @property
    def REDIS_HOST(self) -> str:
        """Redis host from databases.yaml"""
        return self._database_config.get("redis", {}).get("host", "redis")

    @property
    def REDIS_PORT(self) -> int:
        """Redis port from databases.yaml"""
        return self._database_config.get("redis", {}).get("port", 6379)

    @property
    def REDIS_DB(self) -> int:
        """Redis database from databases.yaml"""
        return self._database_config.get("redis", {}).get("db", 0)

    # Redis password from .env (optional secret)
    REDIS_PASSWORD: str | None = Field(default=None)

    @property
    def redis_url(self) -> str:
        """Redis connection URL"""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ============================================
    # UPSTREAM HTTP (from sources.yaml)
    # ============================================
    @property
    def HTTP_TIMEOUT_SECONDS(self) -> float:
        """Per-request timeout for upstream providers"""
        return self._sources_config.get("http", {}).get("timeout_seconds", 30)

    @property
    def HTTP_MAX_RETRIES(self) -> int:
        """Attempts per upstream request (transport errors, 429, 5xx)"""
        return self._sources_config.get("http", {}).get("max_retries", 3)

    @property
    def HTTP_BACKOFF_SECONDS(self) -> float:
        """Base delay for exponential backoff between attempts"""
        return self._sources_config.get("http", {}).get("backoff_seconds", 1.0)

    @property
    def HTTP_USER_AGENT(self) -> str:
        return self._sources_config.get("http", {}).get("user_agent", "sentiment-pipeline/0.1")

    @property
    def FRED_BASE_URL(self) -> str:
        """FRED API base URL from sources.yaml"""
        return self._sources_config.get("fred", {}).get(
            "base_url", "https://api.stlouisfed.org/fred"
        )

    @property
    def FRED_DEFAULT_LIMIT(self) -> int:
        """Observations requested per FRED call unless overridden"""
        return self._sources_config.get("fred", {}).get("default_limit", 30)

    @property
    def CBOE_BASE_URL(self) -> str:
        """CBOE daily market statistics base URL from sources.yaml"""
        return self._sources_config.get("cboe", {}).get(
            "base_url", "https://cdn.cboe.com/data/us/options/market_statistics/daily"
        )

    @property
    def CBOE_LOOKBACK_DAYS(self) -> int:
        """Calendar days to walk back looking for the latest published session"""
        return self._sources_config.get("cboe", {}).get("lookback_days", 5)

    @property
    def YAHOO_OPTIONS_SYMBOL(self) -> str:
        return self._sources_config.get("yahoo", {}).get("symbol", "SPY")

    @property
    def YAHOO_MAX_EXPIRATIONS(self) -> int:
        return self._sources_config.get("yahoo", {}).get("max_expirations", 6)

    @property
    def YAHOO_VIX_SYMBOL(self) -> str:
        return self._sources_config.get("yahoo_vix", {}).get("symbol", "^VIX")

    @property
    def YAHOO_VIX_LOOKBACK_DAYS(self) -> int:
        """Calendar days of daily closes requested per fetch"""
        return self._sources_config.get("yahoo_vix", {}).get("lookback_days", 60)

    @property
    def YAHOO_VIX_TERM_SYMBOLS(self) -> list[dict[str, str]]:
        """Term-structure symbol sets, tried in order until one yields a quote"""
        return self._sources_config.get("yahoo_vix", {}).get(
            "term_symbols",
            [
                {"oneMonth": "^VIX1M", "threeMonth": "^VIX3M", "sixMonth": "^VIX6M"},
                {"oneMonth": "^VIX9D", "threeMonth": "^VXV", "sixMonth": "^VXMT"},
            ],
        )

    # ============================================
    # INDICATOR PIPELINE (from indicators.yaml)
    # ============================================
    @property
    def INDICATORS(self) -> dict:
        """Raw per-indicator config from indicators.yaml (validated by config.loader)"""
        return self._indicators_config.get("indicators", {})

    @property
    def INDICATOR_FRESHNESS_SECONDS(self) -> int:
        """Max age of an in-memory snapshot before a read triggers a new fetch"""
        return self._indicators_config.get("settings", {}).get("freshness_seconds", 3600)

    @property
    def INDICATOR_STALENESS_CEILING_SECONDS(self) -> int:
        """Max age of a last-known-good snapshot the approximation engine may re-serve"""
        return self._indicators_config.get("settings", {}).get("staleness_ceiling_seconds", 86400)

    @property
    def INDICATOR_REFRESH_INTERVAL_SECONDS(self) -> int:
        """Periodic refresh interval for the long-running service"""
        return self._indicators_config.get("settings", {}).get("refresh_interval_seconds", 3600)

    @property
    def INDICATOR_PERSIST_APPROXIMATE(self) -> bool:
        """Whether approximate values populate the intraday/sparkline tiers (never daily)"""
        return self._indicators_config.get("settings", {}).get("persist_approximate", False)

    @property
    def MARKET_TIMEZONE(self) -> str:
        """Timezone defining the market calendar date ("today")"""
        return self._indicators_config.get("settings", {}).get(
            "market_timezone", "America/New_York"
        )

    @property
    def SPARKLINE_TIMEFRAMES(self) -> dict[str, int]:
        """Sparkline bucket → retention window in calendar days"""
        return self._indicators_config.get(
            "sparkline_timeframes",
            {"1m": 30, "3m": 90, "6m": 180, "1y": 365, "2y": 730, "5y": 1825},
        )

    # ============================================
    # API SERVER (from server.yaml)
    # ============================================
    @property
    def API_HOST(self) -> str:
        return self._server_config.get("api", {}).get("host", "0.0.0.0")

    @property
    def API_PORT(self) -> int:
        return self._server_config.get("api", {}).get("port", 8000)

    @property
    def API_CORS_ORIGINS(self) -> list[str]:
        return self._server_config.get("api", {}).get("cors_origins", ["*"])


# Singleton pattern
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """
    Get application settings (singleton)

    Returns:
        Settings instance

    Example:
        >>> settings = get_settings()
        >>> print(settings.INDICATOR_FRESHNESS_SECONDS)
        3600
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
