"""
Binance Exchange Connector

This module implements the ExchangeInterface for Binance spot daily klines.

Endpoints Used:
    REST:
        - GET /api/v3/klines - Historical candlestick data (max 1000 per page)

Hosts:
    api.binance.com and its numbered / regional mirrors (api1-3, api-apac,
    api-eu) serve identical data. The connector rotates through them when a
    host fails to resolve or keeps failing.

Structure:
    exchanges/binance/
    ├── __init__.py          # This file (BinanceExchange class)
    └── api_client.py        # REST API client with aiohttp
"""

from typing import List, Optional

from core.exchange_interface import ExchangeInterface
from core.logging import logger
from core.paginator import PagedKlineFetcher
from core.schemas import KlinePage, KlineRecord
from .api_client import BinanceAPIClient


class BinanceExchange(ExchangeInterface):
    """
    Binance Spot Kline Source

    Attributes:
        name: Exchange identifier ("binance")
        client: BinanceAPIClient used for every page
        fetcher: PagedKlineFetcher driving the cursor loop
        page_size: Candles requested per page

    Example:
        >>> async with BinanceExchange() as exchange:
        ...     records = await exchange.fetch_series(start_ms, end_ms)
    """

    name = "binance"

    def __init__(self, client: Optional[BinanceAPIClient] = None, config=None):
        from core.config import settings

        config = config or settings
        self.client = client or BinanceAPIClient(symbol=config.symbol, endpoints=config.binance_endpoints_list)
        self.fetcher = PagedKlineFetcher.from_settings(self.name, self.client.rotator, config)
        self.page_size = min(config.page_size, BinanceAPIClient.MAX_LIMIT)
        self.last_outcome = None

        logger.debug(f"BinanceExchange created (endpoint={self.client.rotator.current()})")

    async def initialize(self) -> None:
        await self.client.__aenter__()

    async def shutdown(self) -> None:
        await self.client.__aexit__(None, None, None)

    async def _fetch_page(self, cursor: int, end_time: int) -> KlinePage:
        return await self.client.get_klines(cursor, end_time, limit=self.page_size)

    async def fetch_series(self, start_time: int, end_time: int) -> List[KlineRecord]:
        logger.info(f"Starting to fetch {self.client.symbol} daily klines from Binance...")
        self.last_outcome = await self.fetcher.run(self._fetch_page, start_time, end_time)
        return self.last_outcome.records


__all__ = ["BinanceExchange", "BinanceAPIClient"]
