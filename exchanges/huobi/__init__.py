"""
Huobi Exchange Connector

This module implements the ExchangeInterface for Huobi spot daily klines.

Endpoints Used:
    REST:
        - GET /market/history/kline - Most recent candles (max 2000)

Notes:
    Huobi only serves the newest 2000 candles, so a full-history fetch
    returns at most that many days for this source.
"""

from typing import List, Optional

from core.exchange_interface import ExchangeInterface
from core.logging import logger
from core.paginator import PagedKlineFetcher
from core.schemas import KlinePage, KlineRecord
from .api_client import HuobiAPIClient


class HuobiExchange(ExchangeInterface):
    """
    Huobi Spot Kline Source

    Attributes:
        name: Exchange identifier ("huobi")
        client: HuobiAPIClient used for every page
        fetcher: PagedKlineFetcher driving the cursor loop
    """

    name = "huobi"

    def __init__(self, client: Optional[HuobiAPIClient] = None, config=None):
        from core.config import settings

        config = config or settings
        self.client = client or HuobiAPIClient(symbol=config.symbol, endpoints=config.huobi_endpoints_list)
        self.fetcher = PagedKlineFetcher.from_settings(self.name, self.client.rotator, config)
        self.page_size = min(config.page_size, HuobiAPIClient.MAX_LIMIT)
        self.last_outcome = None

        logger.debug(f"HuobiExchange created (endpoint={self.client.rotator.current()})")

    async def initialize(self) -> None:
        await self.client.__aenter__()

    async def shutdown(self) -> None:
        await self.client.__aexit__(None, None, None)

    async def _fetch_page(self, cursor: int, end_time: int) -> KlinePage:
        return await self.client.get_klines(cursor, end_time, limit=self.page_size)

    async def fetch_series(self, start_time: int, end_time: int) -> List[KlineRecord]:
        logger.info(f"Starting to fetch {self.client.symbol} daily klines from Huobi...")
        self.last_outcome = await self.fetcher.run(self._fetch_page, start_time, end_time)
        return self.last_outcome.records


__all__ = ["HuobiExchange", "HuobiAPIClient"]
