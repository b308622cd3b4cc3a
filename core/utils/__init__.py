"""
Core Utilities Package

This package contains utility functions and helpers used throughout the collector.

Modules:
    - time: Timestamp conversion and trading-date utilities
    - numbers: Strict numeric parsing for upstream wire values
"""

from core.utils.time import to_utc_datetime, to_trading_date
from core.utils.numbers import parse_number, parse_count

__all__ = ["to_utc_datetime", "to_trading_date", "parse_number", "parse_count"]
