"""
Huobi REST API Client

This module provides an async HTTP client for the Huobi market kline endpoint.
It handles:
- Requests against the most recent ``size`` daily candles
- Rotation across Huobi's API hosts
- Normalization of the Huobi envelope and object rows to KlineRecord

Huobi's history endpoint has no time-range parameters: it always returns the
newest candles. Pages are therefore filtered down to the requested window,
and a follow-up request past the newest candle yields an empty page.

API Documentation:
    https://huobiapi.github.io/docs/spot/v1/en/#get-klines-candles

Usage:
    async with HuobiAPIClient() as client:
        page = await client.get_klines(start_time=1704067200000, end_time=1706745600000)
"""

import math
from typing import Any, Dict, List, Optional

from core.endpoint_rotator import EndpointRotator
from core.http_client import FetchError, RetryPolicy, RotatingHTTPClient
from core.logging import get_logger
from core.schemas import KlinePage, KlineRecord
from core.utils.numbers import parse_count, parse_number
from core.utils.time import MS_PER_DAY, current_utc_timestamp, to_trading_date

# Huobi daily candles open at 00:00 UTC+8
HUOBI_UTC_OFFSET_HOURS = 8
HUOBI_UTC_OFFSET_MS = HUOBI_UTC_OFFSET_HOURS * 3_600_000


class HuobiAPIClient:
    """
    Async HTTP client for Huobi daily klines

    Attributes:
        KLINE_PATH: Kline history endpoint path
        MAX_LIMIT: Largest ``size`` Huobi serves
        symbol: Lowercase trading pair (e.g., "btcusdt")
        rotator: EndpointRotator over Huobi hosts
        http: RotatingHTTPClient used for every request

    Notes:
        - ``amount`` is the base-asset volume, ``vol`` the quote-asset volume
        - Candle ids are seconds since epoch
    """

    KLINE_PATH = "/market/history/kline"
    MAX_LIMIT = 2000
    PERIOD = "1day"

    def __init__(
        self,
        symbol: Optional[str] = None,
        endpoints: Optional[List[str]] = None,
        policy: Optional[RetryPolicy] = None
    ):
        from core.config import settings

        self.symbol = (symbol or settings.symbol).replace("-", "").lower()
        self.rotator = EndpointRotator(endpoints or settings.huobi_endpoints_list)
        self.http = RotatingHTTPClient(
            "huobi",
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
        self.logger.debug("HuobiAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http.close()
        self.logger.debug("HuobiAPIClient session closed")

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a Huobi endpoint and unwrap the response envelope.

        Raises:
            FetchError: If ``status`` is not "ok"
        """
        payload = await self.http.get_json(path, params)

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            message = payload.get("err-msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"Huobi API error: {str(message)[:200]}")

        return payload.get("data", [])

    # ============================================
    # API Methods
    # ============================================

    def _size_for(self, start_time: int, limit: Optional[int]) -> int:
        """Number of newest candles needed to reach back to ``start_time``."""
        days_back = math.ceil((current_utc_timestamp(milliseconds=True) - start_time) / MS_PER_DAY) + 1
        size = max(days_back, 1)
        if limit is not None:
            size = max(size, limit)
        return min(size, self.MAX_LIMIT)

    async def get_klines(self, start_time: int, end_time: int, limit: Optional[int] = None) -> KlinePage:
        """
        Fetch the daily candles whose trading day starts in [start_time, end_time).

        A candle's trading day is its UTC+8 date; the window is compared
        against UTC midnight of that date, the same boundary the other
        sources use.

        Args:
            start_time: Cursor in milliseconds since epoch
            end_time: End of the window in milliseconds since epoch
            limit: Minimum number of newest candles to request (max 2000)

        Returns:
            KlinePage oldest first; ``next_cursor`` is one millisecond past
            UTC midnight of the last candle's trading day, or None when
            nothing is left

        Response Format:
            {
              "status": "ok",
              "ch": "market.btcusdt.kline.1day",
              "data": [
                {"id": 1704038400, "open": 42283.58, "close": 44179.55,
                 "low": 42180.77, "high": 44184.1, "amount": 27174.3,
                 "vol": 1169438736.5, "count": 1215745}
              ]
            }
        """
        params = {
            "symbol": self.symbol,
            "period": self.PERIOD,
            "size": self._size_for(start_time, limit)
        }

        data = await self._get(self.KLINE_PATH, params)
        if not isinstance(data, list):
            raise FetchError(f"Unexpected Huobi kline payload: {str(data)[:200]}")

        rows = []
        for item in data:
            parsed = self._parse_kline(item)
            if parsed is None:
                continue
            day_start, record = parsed
            if start_time <= day_start < end_time:
                rows.append((day_start, record))
        rows.sort(key=lambda row: row[0])

        records = [record for _, record in rows]
        next_cursor = rows[-1][0] + 1 if rows else None

        self.logger.debug(f"Fetched {len(records)} Huobi klines for {self.symbol}")
        return KlinePage(records=records, next_cursor=next_cursor)

    def _parse_kline(self, item: Any):
        if not isinstance(item, dict):
            self.logger.warning(f"Skipping malformed Huobi kline: {item!r}")
            return None

        candle_id = parse_number(item.get("id"))
        if candle_id is None or candle_id < 0:
            self.logger.warning(f"Skipping Huobi kline with invalid id: {item!r}")
            return None

        try:
            trading_date = to_trading_date(int(candle_id), utc_offset_hours=HUOBI_UTC_OFFSET_HOURS)
        except (ValueError, OverflowError):
            self.logger.warning(f"Skipping Huobi kline with out-of-range id: {item!r}")
            return None

        # UTC midnight of the candle's UTC+8 trading day
        day_start = int(candle_id) * 1000 + HUOBI_UTC_OFFSET_MS
        record = KlineRecord(
            date=trading_date,
            open=parse_number(item.get("open")),
            high=parse_number(item.get("high")),
            low=parse_number(item.get("low")),
            close=parse_number(item.get("close")),
            volume=parse_number(item.get("amount")),
            quote_volume=parse_number(item.get("vol")),
            trades=parse_count(item.get("count"))
        )
        return day_start, record
