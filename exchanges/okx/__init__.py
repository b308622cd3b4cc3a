"""
OKX Exchange Connector

This module implements the ExchangeInterface for OKX spot daily candles.

Endpoints Used:
    REST:
        - GET /api/v5/market/history-candles - Historical candles (max 100 per page)

Hosts:
    www.okx.com, aws.okx.com, okx.com and api.okx.com. OKX is frequently
    blocked regionally, so the connector can also rotate through egress
    proxies (OKX_PROXIES) on every failure.
"""

from typing import List, Optional

from core.exchange_interface import ExchangeInterface
from core.logging import logger
from core.paginator import PagedKlineFetcher
from core.schemas import KlinePage, KlineRecord
from .api_client import OKXAPIClient


class OKXExchange(ExchangeInterface):
    """
    OKX Spot Kline Source

    Attributes:
        name: Exchange identifier ("okx")
        client: OKXAPIClient used for every page
        fetcher: PagedKlineFetcher driving the cursor loop
        page_size: Candles requested per page (OKX caps this at 100)
    """

    name = "okx"

    def __init__(self, client: Optional[OKXAPIClient] = None, config=None):
        from core.config import settings

        config = config or settings
        self.client = client or OKXAPIClient(
            symbol=config.symbol,
            endpoints=config.okx_endpoints_list,
            proxies=config.okx_proxies_list
        )
        self.fetcher = PagedKlineFetcher.from_settings(self.name, self.client.rotator, config)
        self.page_size = min(config.page_size, OKXAPIClient.MAX_LIMIT)
        self.last_outcome = None

        logger.debug(f"OKXExchange created (endpoint={self.client.rotator.current()})")

    async def initialize(self) -> None:
        await self.client.__aenter__()

    async def shutdown(self) -> None:
        await self.client.__aexit__(None, None, None)

    async def _fetch_page(self, cursor: int, end_time: int) -> KlinePage:
        return await self.client.get_klines(cursor, end_time, limit=self.page_size)

    async def fetch_series(self, start_time: int, end_time: int) -> List[KlineRecord]:
        logger.info(f"Starting to fetch {self.client.inst_id} daily klines from OKX...")
        self.last_outcome = await self.fetcher.run(self._fetch_page, start_time, end_time)
        return self.last_outcome.records


__all__ = ["OKXExchange", "OKXAPIClient"]
