"""
Exchange Interface: Abstract Contract for All Kline Sources

This module defines the abstract base class that every source connector implements.
By enforcing a consistent interface, we ensure:
- The pipeline fetches every source the same way
- New sources can be added without touching merge/validate/analyze
- Each connector is testable on its own with a mocked HTTP layer

Design Philosophy:
    "Program to an interface, not an implementation"

    The pipeline works with ExchangeInterface, never with a specific
    connector. Each connector owns its own EndpointRotator, cursor and
    failure counter, so connectors for different sources can run
    concurrently without coordinating.

Example:
    class BinanceExchange(ExchangeInterface):
        name = "binance"

        async def fetch_series(self, start_time, end_time):
            # Binance-specific paging and normalization
            ...

    async with BinanceExchange() as exchange:
        records = await exchange.fetch_series(start_ms, end_ms)
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.paginator import FetchOutcome
from core.schemas import KlineRecord


class ExchangeInterface(ABC):
    """
    Abstract Base Class for Kline Sources

    Class Attributes:
        name: Unique identifier for the source (lowercase, e.g., "binance", "okx")

    Abstract Methods (MUST be implemented by all sources):
        - fetch_series: Fetch the full daily kline history for a time window

    Optional Methods (can be overridden):
        - initialize: Open HTTP sessions
        - shutdown: Close HTTP sessions

    Attributes:
        last_outcome: FetchOutcome of the most recent fetch_series call
    """

    name: str
    """Unique source identifier (lowercase). Example: "binance", "huobi", "okx" """

    last_outcome: Optional[FetchOutcome] = None

    @abstractmethod
    async def fetch_series(self, start_time: int, end_time: int) -> List[KlineRecord]:
        """
        Fetch every daily kline in [start_time, end_time).

        Args:
            start_time: Window start in milliseconds since epoch
            end_time: Window end in milliseconds since epoch

        Returns:
            List[KlineRecord]: Candles in chronological order. The list may be
            partial if the source kept failing; check ``last_outcome.aborted``
            or ``last_outcome.reached_end`` to tell.

        Notes:
            - Restartable: a fresh call re-fetches from start_time
            - Endpoint exhaustion is reported through the outcome, not raised
        """
        ...

    # ============================================
    # Optional Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """
        Initialize the connector (open HTTP sessions).

        Notes:
            - Default implementation does nothing
            - Should be idempotent (safe to call multiple times)
        """
        pass

    async def shutdown(self) -> None:
        """
        Shutdown the connector and release resources.

        Notes:
            - Default implementation does nothing
        """
        pass

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
