"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire collector.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Pipeline started")
    get_logger(__name__).debug("Fetched page")

Log Levels (from most to least verbose):
    DEBUG    - Detailed diagnostic information (e.g., "API Request: binance /api/v3/klines")
    INFO     - General informational messages (e.g., "Fetched 500 klines from binance")
    WARNING  - Warnings about potential issues (e.g., "Switching endpoint after failure")
    ERROR    - Errors that don't crash the run (e.g., "okx fetch stopped early")
    CRITICAL - Severe errors (e.g., "No source returned data")

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file. Setting
    LOG_DIR additionally writes combined.log (all levels) and error.log
    (ERROR and above) into that directory.
"""

import logging
import os
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True,
    log_dir: Optional[str] = None
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages
        log_dir: Also write combined.log and error.log into this directory

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Collector started")
        2024-01-01 12:00:00 [INFO] klinecollector: Collector started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger("klinecollector")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
        logger.removeHandler(handler)
        handler.close()

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        formatter = logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S")

        combined = logging.FileHandler(os.path.join(log_dir, "combined.log"), encoding="utf-8")
        combined.setFormatter(formatter)
        logger.addHandler(combined)

        errors = logging.FileHandler(os.path.join(log_dir, "error.log"), encoding="utf-8")
        errors.setLevel(logging.ERROR)
        errors.setFormatter(formatter)
        logger.addHandler(errors)

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
    log_dir = settings.log_dir or None
except ImportError:
    log_level = "INFO"
    log_dir = None

# Create the global logger instance
logger = setup_logging(log_level=log_level, log_dir=log_dir)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        # In exchanges/binance/api_client.py:
        logger = get_logger(__name__)  # "klinecollector.exchanges.binance.api_client"
    """
    return logging.getLogger(f"klinecollector.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, endpoint: str, params: dict = None) -> None:
    """
    Log an API request with consistent formatting.

    Example:
        >>> log_api_request("binance", "/api/v3/klines", {"symbol": "BTCUSDT", "interval": "1d"})
        [DEBUG] API Request: binance /api/v3/klines | Params: {'symbol': 'BTCUSDT', 'interval': '1d'}
    """
    if params:
        logger.debug(f"API Request: {exchange} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {exchange} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("binance", "/api/v3/klines", 200, 0.342)
        [DEBUG] API Response: binance /api/v3/klines | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


def log_fetch_progress(exchange: str, progress_pct: float, current_date: str, total: int) -> None:
    """
    Log paged-fetch progress for one source.

    Example:
        >>> log_fetch_progress("binance", 42.5, "2020-03-12", 1000)
        [INFO] Fetch progress: binance 42.50% | Current date: 2020-03-12 | Records: 1000
    """
    logger.info(
        f"Fetch progress: {exchange} {progress_pct:.2f}% | "
        f"Current date: {current_date} | Records: {total}"
    )


logger.debug("Logging system initialized")
