"""
Binance REST API Client

This module provides an async HTTP client for the Binance spot klines endpoint.
It handles:
- Building paged kline requests
- Rotation across Binance's regional API hosts (via RotatingHTTPClient)
- Normalization of the array wire format to KlineRecord

API Documentation:
    https://binance-docs.github.io/apidocs/spot/en/#kline-candlestick-data

Usage:
    async with BinanceAPIClient() as client:
        page = await client.get_klines(start_time=1704067200000, limit=500)
"""

from typing import Any, Dict, List, Optional

from core.endpoint_rotator import EndpointRotator
from core.http_client import FetchError, RetryPolicy, RotatingHTTPClient
from core.logging import get_logger
from core.schemas import KlinePage, KlineRecord
from core.utils.numbers import parse_count, parse_number
from core.utils.time import to_trading_date


class BinanceAPIClient:
    """
    Async HTTP client for Binance spot klines

    Attributes:
        KLINES_PATH: Klines endpoint path
        MAX_LIMIT: Largest page Binance serves
        symbol: Trading pair (e.g., "BTCUSDT")
        rotator: EndpointRotator over Binance API hosts
        http: RotatingHTTPClient used for every request

    Example:
        >>> async with BinanceAPIClient() as client:
        ...     page = await client.get_klines(1704067200000, limit=100)
        ...     print(f"Fetched {len(page.records)} candles")
    """

    KLINES_PATH = "/api/v3/klines"
    MAX_LIMIT = 1000
    INTERVAL = "1d"

    def __init__(
        self,
        symbol: Optional[str] = None,
        endpoints: Optional[List[str]] = None,
        policy: Optional[RetryPolicy] = None
    ):
        from core.config import settings

        self.symbol = (symbol or settings.symbol).upper()
        self.rotator = EndpointRotator(endpoints or settings.binance_endpoints_list)
        self.http = RotatingHTTPClient(
            "binance",
            self.rotator,
            policy or RetryPolicy.from_settings(),
            timeout=settings.request_timeout
        )
        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        await self.http.open()
        self.logger.debug("BinanceAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http.close()
        self.logger.debug("BinanceAPIClient session closed")

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.http.get_json(path, params)

    # ============================================
    # API Methods
    # ============================================

    async def get_klines(
        self,
        start_time: int,
        end_time: Optional[int] = None,
        limit: int = 500
    ) -> KlinePage:
        """
        Fetch one page of daily klines starting at ``start_time``.

        Args:
            start_time: Start time in milliseconds since epoch
            end_time: Optional end time in milliseconds since epoch
            limit: Number of candles to fetch (max 1000)

        Returns:
            KlinePage with records oldest first; ``next_cursor`` is one
            millisecond past the last candle's close time

        Raises:
            FetchError: If the request fails or the body is not a list

        Response Format:
            [
              [
                1499040000000,      // Open time
                "0.01634000",       // Open
                "0.80000000",       // High
                "0.01575800",       // Low
                "0.01577100",       // Close
                "148976.11427815",  // Volume
                1499644799999,      // Close time
                "2434.19055334",    // Quote asset volume
                308,                // Number of trades
                "1756.87402397",    // Taker buy base asset volume
                "28.46694368",      // Taker buy quote asset volume
                "0"                 // Ignore
              ]
            ]
        """
        params = {
            "symbol": self.symbol,
            "interval": self.INTERVAL,
            "startTime": start_time,
            "limit": min(limit, self.MAX_LIMIT)
        }
        if end_time is not None:
            params["endTime"] = end_time

        data = await self._get(self.KLINES_PATH, params)

        if not isinstance(data, list):
            raise FetchError(f"Unexpected Binance klines response: {str(data)[:200]}")

        records: List[KlineRecord] = []
        next_cursor: Optional[int] = None
        for row in data:
            record = self._parse_kline(row)
            if record is None:
                continue
            records.append(record)
            next_cursor = int(parse_number(row[6])) + 1

        self.logger.debug(f"Fetched {len(records)} Binance klines for {self.symbol}")
        return KlinePage(records=records, next_cursor=next_cursor)

    def _parse_kline(self, row: Any) -> Optional[KlineRecord]:
        """
        Normalize one wire row.

        Rows whose open/close times are unusable cannot be dated and are
        dropped; unparseable price or volume fields become None.
        """
        if not isinstance(row, (list, tuple)) or len(row) < 9:
            self.logger.warning(f"Skipping malformed Binance kline row: {row!r}")
            return None

        open_time = parse_number(row[0])
        close_time = parse_number(row[6])
        if open_time is None or close_time is None or open_time < 0:
            self.logger.warning(f"Skipping Binance kline with invalid timestamps: {row!r}")
            return None

        try:
            trading_date = to_trading_date(int(open_time))
        except (ValueError, OverflowError):
            self.logger.warning(f"Skipping Binance kline with out-of-range open time: {row!r}")
            return None

        return KlineRecord(
            date=trading_date,
            open=parse_number(row[1]),
            high=parse_number(row[2]),
            low=parse_number(row[3]),
            close=parse_number(row[4]),
            volume=parse_number(row[5]),
            quote_volume=parse_number(row[7]),
            trades=parse_count(row[8])
        )
