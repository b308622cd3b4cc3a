"""
Time Utilities

Sources report candle times in different formats:
- Binance / OKX: milliseconds since epoch (e.g., 1704067200000)
- Huobi: seconds since epoch, aligned to UTC+8 midnight
- We need: calendar dates for daily klines, and epoch milliseconds for cursors

The utilities in this module normalize those formats.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Union

MS_PER_DAY = 86_400_000


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # Current time in seconds: ~1.7 billion, in milliseconds: ~1.7 trillion
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def to_trading_date(timestamp: Union[int, float], utc_offset_hours: int = 0) -> date:
    """
    Calendar date of a candle opening at ``timestamp``.

    ``utc_offset_hours`` shifts the timestamp into the exchange's day
    boundary before taking the date (Huobi days start at 00:00 UTC+8).

    Examples:
        >>> to_trading_date(1704067200000)
        datetime.date(2024, 1, 1)
        >>> to_trading_date(1704038400, utc_offset_hours=8)
        datetime.date(2024, 1, 1)
    """
    return (to_utc_datetime(timestamp) + timedelta(hours=utc_offset_hours)).date()


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
        - Result is always an integer (fractional seconds are truncated)
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timestamp = int(dt.timestamp())

    if milliseconds:
        timestamp *= 1000

    return timestamp


def date_to_timestamp_ms(day: date) -> int:
    """Milliseconds since epoch of ``day`` at 00:00 UTC."""
    return datetime_to_timestamp(datetime(day.year, day.month, day.day, tzinfo=timezone.utc), milliseconds=True)


def timestamp_ms_to_date_str(timestamp_ms: int) -> str:
    """Format an epoch-millisecond timestamp as YYYY-MM-DD (UTC)."""
    return to_utc_datetime(timestamp_ms).strftime("%Y-%m-%d")


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """Get current UTC timestamp in seconds or milliseconds."""
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)


def current_utc_datetime() -> datetime:
    """Get current time as timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)
