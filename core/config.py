"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (endpoints, proxies, sources)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.symbol)
    print(settings.binance_endpoints_list)  # Returns a list of base URLs
"""

from datetime import date
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the collector.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        symbol: Trading pair collected from every source (e.g., "BTCUSDT")
        enabled_sources: Sources fetched by the pipeline
        binance_endpoints / okx_endpoints / huobi_endpoints: Equivalent base URLs per source
        okx_proxies: Optional egress proxies for OKX
        page_size: Klines requested per page
        request_retries: Attempts per request before it counts as one failure
        max_consecutive_failures: Failure ceiling for one source's fetch loop
        backoff_base / backoff_max / backoff_jitter: Retry delay policy (seconds)
        request_delay: Pause between successful pages (seconds)
        batch_pause_every / batch_pause: Longer pause every N accumulated records
        full_mode_epoch: Start date for full mode
        data_dir: Directory for persisted JSON documents
    """

    # ============================================
    # Market Configuration
    # ============================================

    symbol: str = Field(
        default="BTCUSDT",
        description="Trading pair collected from every source"
    )

    enabled_sources: str = Field(
        default="binance,huobi,okx",
        description="Comma-separated list of sources fetched by the pipeline"
    )

    # ============================================
    # Source Endpoints
    # ============================================

    binance_endpoints: str = Field(
        default=(
            "https://api.binance.com,https://api1.binance.com,https://api2.binance.com,"
            "https://api3.binance.com,https://api-apac.binance.com,https://api-eu.binance.com"
        ),
        description="Comma-separated Binance spot API base URLs"
    )

    okx_endpoints: str = Field(
        default="https://www.okx.com,https://aws.okx.com,https://okx.com,https://api.okx.com",
        description="Comma-separated OKX API base URLs"
    )

    okx_proxies: str = Field(
        default="",
        description="Comma-separated egress proxies for OKX (empty = direct)"
    )

    huobi_endpoints: str = Field(
        default="https://api.huobi.pro,https://api-aws.huobi.pro",
        description="Comma-separated Huobi API base URLs"
    )

    # ============================================
    # Fetch Policy
    # ============================================

    page_size: int = Field(
        default=500,
        description="Number of klines requested per page"
    )

    request_timeout: int = Field(
        default=30,
        description="HTTP request timeout in seconds"
    )

    request_retries: int = Field(
        default=3,
        description="Attempts per request before it counts as one failure"
    )

    max_consecutive_failures: int = Field(
        default=10,
        description="Consecutive page failures before a source's fetch gives up"
    )

    backoff_base: float = Field(
        default=2.0,
        description="Base retry delay in seconds (doubled per failure)"
    )

    backoff_max: float = Field(
        default=10.0,
        description="Maximum retry delay in seconds"
    )

    backoff_jitter: float = Field(
        default=1.0,
        description="Maximum random jitter added to each retry delay (seconds)"
    )

    request_delay: float = Field(
        default=0.3,
        description="Pause between successful pages (seconds)"
    )

    batch_pause_every: int = Field(
        default=100,
        description="Apply the longer pause every N accumulated records"
    )

    batch_pause: float = Field(
        default=2.0,
        description="Longer rate-limit pause (seconds)"
    )

    # ============================================
    # Validation Thresholds
    # ============================================

    price_deviation_pct: float = Field(
        default=1.0,
        description="Cross-source close spread (percent of mean) above which a day is flagged"
    )

    volume_spike_ratio: float = Field(
        default=3.0,
        description="Volume / trailing average ratio above which a day is flagged"
    )

    volume_window_days: int = Field(
        default=30,
        description="Number of prior days in the trailing volume average"
    )

    price_gap_pct: float = Field(
        default=5.0,
        description="Open vs previous close gap (percent) above which a day is flagged"
    )

    # ============================================
    # Pipeline & Storage
    # ============================================

    full_mode_epoch: date = Field(
        default=date(2017, 7, 1),
        description="First date fetched in full mode"
    )

    data_dir: str = Field(
        default="./data",
        description="Directory for persisted JSON documents"
    )

    file_prefix: str = Field(
        default="btc_price",
        description="Filename prefix for persisted documents"
    )

    backup_enabled: bool = Field(
        default=True,
        description="Snapshot the data directory before overwriting it"
    )

    backup_dir: str = Field(
        default="./backups",
        description="Directory holding timestamped data snapshots"
    )

    backup_retention_days: int = Field(
        default=7,
        description="Snapshots older than this many days are deleted"
    )

    # ============================================
    # Application Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_dir: str = Field(
        default="",
        description="Directory for combined.log and error.log (empty = console only)"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @staticmethod
    def _split(value: str) -> List[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def sources_list(self) -> List[str]:
        """
        Convert comma-separated sources string to a list.

        Example:
            >>> settings.sources_list
            ['binance', 'huobi', 'okx']
        """
        return [s.lower() for s in self._split(self.enabled_sources)]

    @property
    def binance_endpoints_list(self) -> List[str]:
        return [url.rstrip("/") for url in self._split(self.binance_endpoints)]

    @property
    def okx_endpoints_list(self) -> List[str]:
        return [url.rstrip("/") for url in self._split(self.okx_endpoints)]

    @property
    def okx_proxies_list(self) -> List[str]:
        return self._split(self.okx_proxies)

    @property
    def huobi_endpoints_list(self) -> List[str]:
        return [url.rstrip("/") for url in self._split(self.huobi_endpoints)]


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

KNOWN_SOURCES = ("binance", "huobi", "okx")


def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on start-up.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if not config.symbol or not config.symbol.isupper():
        raise ValueError(f"SYMBOL must be a non-empty uppercase pair, got '{config.symbol}'")

    if not config.sources_list:
        raise ValueError("ENABLED_SOURCES must contain at least one source")

    for source in config.sources_list:
        if source not in KNOWN_SOURCES:
            raise ValueError(
                f"Unknown source: '{source}'. "
                f"Must be one of: {', '.join(KNOWN_SOURCES)}"
            )

    endpoint_lists = {
        "binance": config.binance_endpoints_list,
        "huobi": config.huobi_endpoints_list,
        "okx": config.okx_endpoints_list,
    }
    for source in config.sources_list:
        if not endpoint_lists[source]:
            raise ValueError(f"{source.upper()}_ENDPOINTS must contain at least one URL")

    if config.page_size <= 0:
        raise ValueError(f"Invalid PAGE_SIZE: {config.page_size}. Must be positive")

    if config.request_retries < 1 or config.max_consecutive_failures < 1:
        raise ValueError("REQUEST_RETRIES and MAX_CONSECUTIVE_FAILURES must be at least 1")

    if config.backoff_base < 0 or config.backoff_max < 0 or config.backoff_jitter < 0:
        raise ValueError("Backoff settings cannot be negative")

    if config.volume_window_days < 1:
        raise ValueError(f"Invalid VOLUME_WINDOW_DAYS: {config.volume_window_days}")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Symbol: {config.symbol}")
    logger.info(f"Sources: {', '.join(config.sources_list)}")
    logger.info(f"Data directory: {config.data_dir}")
    logger.info(f"Log level: {config.log_level.upper()}")
