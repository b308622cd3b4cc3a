"""
OKX REST API Client

This module provides an async HTTP client for the OKX candle history endpoint.
It handles:
- Window-bounded paging with OKX's ``before``/``after`` cursors
- Rotation across OKX hosts and optional egress proxies
- Normalization of the OKX envelope and array rows to KlineRecord

API Documentation:
    https://www.okx.com/docs-v5/en/#public-data-rest-api-get-index-candlesticks-history

Usage:
    async with OKXAPIClient() as client:
        page = await client.get_klines(start_time=1704067200000, end_time=1706745600000)
"""

from typing import Any, Dict, List, Optional

from core.endpoint_rotator import EndpointRotator
from core.http_client import FetchError, RetryPolicy, RotatingHTTPClient
from core.logging import get_logger
from core.schemas import KlinePage, KlineRecord
from core.utils.numbers import parse_number
from core.utils.time import MS_PER_DAY, to_trading_date

QUOTE_ASSETS = ("USDT", "USDC", "USD", "BTC", "ETH")


def to_inst_id(symbol: str) -> str:
    """
    Convert a concatenated pair to OKX's instrument id.

    Examples:
        >>> to_inst_id("BTCUSDT")
        'BTC-USDT'
        >>> to_inst_id("ETH-USDT")
        'ETH-USDT'
    """
    symbol = symbol.upper()
    if "-" in symbol:
        return symbol
    for quote in QUOTE_ASSETS:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return f"{symbol[:-len(quote)]}-{quote}"
    return symbol


class OKXAPIClient:
    """
    Async HTTP client for OKX daily candles

    Attributes:
        CANDLES_PATH: Candle history endpoint path
        MAX_LIMIT: Largest page OKX serves
        inst_id: OKX instrument id (e.g., "BTC-USDT")
        rotator: EndpointRotator over OKX hosts and proxies
        http: RotatingHTTPClient used for every request

    Notes:
        - OKX returns candles newest first; pages are reversed here
        - OKX does not report trade counts, so ``trades`` is 0
    """

    CANDLES_PATH = "/api/v5/market/history-candles"
    MAX_LIMIT = 100
    BAR = "1Dutc"

    def __init__(
        self,
        symbol: Optional[str] = None,
        endpoints: Optional[List[str]] = None,
        proxies: Optional[List[str]] = None,
        policy: Optional[RetryPolicy] = None
    ):
        from core.config import settings

        self.inst_id = to_inst_id(symbol or settings.symbol)
        self.rotator = EndpointRotator(
            endpoints or settings.okx_endpoints_list,
            proxies if proxies is not None else settings.okx_proxies_list
        )
        self.http = RotatingHTTPClient(
            "okx",
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
        self.logger.debug("OKXAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http.close()
        self.logger.debug("OKXAPIClient session closed")

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET an OKX endpoint and unwrap the response envelope.

        Raises:
            FetchError: If the envelope reports an error
        """
        payload = await self.http.get_json(path, params)

        if not isinstance(payload, dict) or str(payload.get("code")) != "0":
            message = payload.get("msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"OKX API error: {str(message)[:200]}")

        return payload.get("data", [])

    # ============================================
    # API Methods
    # ============================================

    async def get_klines(self, start_time: int, end_time: int, limit: int = 100) -> KlinePage:
        """
        Fetch daily candles opening in [start_time, start_time + limit days).

        Args:
            start_time: Start time in milliseconds since epoch
            end_time: End of the whole fetch window in milliseconds since epoch
            limit: Number of candles to fetch (max 100)

        Returns:
            KlinePage oldest first. ``next_cursor`` is one millisecond past the
            last candle; for a window without candles that ends before
            ``end_time`` it is the end of that window, so listing gaps are
            skipped instead of ending the fetch.

        OKX Endpoint:
            GET /api/v5/market/history-candles

        Response Format:
            {
              "code": "0",
              "msg": "",
              "data": [
                ["1704067200000", "42283.5", "44184.1", "42180.7", "44179.5",
                 "8151.2", "350000000.1", "350000000.1", "1"]
              ]
            }
        """
        limit = min(limit, self.MAX_LIMIT)
        window_end = min(end_time, start_time + limit * MS_PER_DAY)

        params = {
            "instId": self.inst_id,
            "bar": self.BAR,
            # OKX cursors are exclusive: before -> newer than, after -> older than
            "before": start_time - 1,
            "after": window_end,
            "limit": limit
        }

        data = await self._get(self.CANDLES_PATH, params)
        if not isinstance(data, list):
            raise FetchError(f"Unexpected OKX candles payload: {str(data)[:200]}")

        rows = []
        for row in data:
            record = self._parse_candle(row)
            if record is not None:
                rows.append((int(parse_number(row[0])), record))
        rows.sort(key=lambda item: item[0])

        records = [record for _, record in rows]
        if rows:
            next_cursor = rows[-1][0] + 1
        elif window_end < end_time:
            next_cursor = window_end
        else:
            next_cursor = None

        self.logger.debug(f"Fetched {len(records)} OKX candles for {self.inst_id}")
        return KlinePage(records=records, next_cursor=next_cursor)

    def _parse_candle(self, row: Any) -> Optional[KlineRecord]:
        if not isinstance(row, (list, tuple)) or len(row) < 7:
            self.logger.warning(f"Skipping malformed OKX candle row: {row!r}")
            return None

        open_time = parse_number(row[0])
        if open_time is None or open_time < 0:
            self.logger.warning(f"Skipping OKX candle with invalid timestamp: {row!r}")
            return None

        try:
            trading_date = to_trading_date(int(open_time))
        except (ValueError, OverflowError):
            self.logger.warning(f"Skipping OKX candle with out-of-range timestamp: {row!r}")
            return None

        quote_volume = row[7] if len(row) > 7 else row[6]

        return KlineRecord(
            date=trading_date,
            open=parse_number(row[1]),
            high=parse_number(row[2]),
            low=parse_number(row[3]),
            close=parse_number(row[4]),
            volume=parse_number(row[5]),
            quote_volume=parse_number(quote_volume),
            trades=0
        )
