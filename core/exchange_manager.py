"""
Exchange Manager: Central Registry for Kline Sources

This module provides a centralized manager for all exchange connectors.
The ExchangeManager acts as a registry and factory for the sources enabled
in configuration, and fans a fetch out to all of them concurrently.

Design Benefits:
    - Single source of truth for available sources
    - Centralized lifecycle management (initialize/shutdown)
    - One failing source never takes the others down

Architecture Pattern:
    This is a Registry/Factory pattern where:
    - SOURCE_FACTORIES maps source names to connector classes
    - ExchangeManager instantiates the enabled ones
    - fetch_all() runs every connector's fetch_series concurrently and joins all

Example Usage:
    async with ExchangeManager() as manager:
        series = await manager.fetch_all(start_ms, end_ms)
        # {"binance": [KlineRecord, ...], "huobi": [...], "okx": [...]}
"""

import asyncio
from typing import Callable, Dict, List, Optional

from core.exchange_interface import ExchangeInterface
from core.logging import logger
from core.schemas import KlineRecord
from core.utils.time import timestamp_ms_to_date_str


def _source_factories() -> Dict[str, Callable[..., ExchangeInterface]]:
    # Import here to avoid circular imports
    # Each exchange module imports from core, so we can't import at module level
    from exchanges.binance import BinanceExchange
    from exchanges.huobi import HuobiExchange
    from exchanges.okx import OKXExchange

    return {
        "binance": BinanceExchange,
        "huobi": HuobiExchange,
        "okx": OKXExchange,
    }


class ExchangeManager:
    """
    Central Manager for Kline Sources

    Attributes:
        exchanges: Dictionary mapping source names to connector instances
                  Example: {"binance": BinanceExchange(), "okx": OKXExchange()}

    Example:
        >>> manager = ExchangeManager()
        >>> await manager.initialize_all()
        >>> series = await manager.fetch_all(start_ms, end_ms)
        >>> await manager.shutdown_all()
    """

    def __init__(self, exchanges: Optional[Dict[str, ExchangeInterface]] = None, config=None):
        """
        Build the registry.

        Args:
            exchanges: Pre-built connectors (mainly for tests). When omitted,
                one connector is created for every enabled source.
            config: Settings instance (defaults to the global settings)

        Note:
            Exchange instances are created but not initialized here.
            Call initialize_all() or use ``async with`` to open sessions.
        """
        from core.config import settings

        config = config or settings

        if exchanges is None:
            factories = _source_factories()
            exchanges = {
                name: factories[name](config=config)
                for name in config.sources_list
            }

        self.exchanges: Dict[str, ExchangeInterface] = dict(exchanges)
        # Sources whose last fetch_all call raised
        self.failed: List[str] = []

        logger.info(f"ExchangeManager initialized with {len(self.exchanges)} source(s): {', '.join(self.exchanges.keys())}")

    # ============================================
    # Exchange Retrieval Methods
    # ============================================

    def get_exchange(self, name: str) -> ExchangeInterface:
        """
        Get a connector by name.

        Raises:
            ValueError: If the source is not registered
        """
        name = name.lower()

        if name not in self.exchanges:
            available = ", ".join(self.exchanges.keys())
            logger.error(f"Exchange '{name}' not found. Available: {available}")
            raise ValueError(
                f"Exchange '{name}' is not supported. "
                f"Available exchanges: {available}"
            )

        return self.exchanges[name]

    def list_exchanges(self) -> List[str]:
        return list(self.exchanges.keys())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Initialize all registered sources.

        A source that fails to initialize is logged; its later fetch fails
        and is treated as an absent source.
        """
        logger.info("Initializing all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.initialize()
                logger.info(f"✓ {name.capitalize()} initialized successfully")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

    async def shutdown_all(self) -> None:
        """Shutdown all sources gracefully."""
        logger.info("Shutting down all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.shutdown()
                logger.debug(f"✓ {name.capitalize()} shut down successfully")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

    async def __aenter__(self):
        await self.initialize_all()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown_all()

    # ============================================
    # Fetching
    # ============================================

    async def fetch_all(self, start_time: int, end_time: int) -> Dict[str, List[KlineRecord]]:
        """
        Fetch [start_time, end_time) from every source concurrently.

        Args:
            start_time: Window start in milliseconds since epoch
            end_time: Window end in milliseconds since epoch

        Returns:
            Dict mapping every registered source to its candles. A source
            whose fetch raised is logged, mapped to an empty list and listed
            in ``self.failed``.
        """
        names = list(self.exchanges.keys())
        self.failed = []
        for exchange in self.exchanges.values():
            exchange.last_outcome = None
        logger.info(
            f"Fetching daily klines from {', '.join(names)} "
            f"({timestamp_ms_to_date_str(start_time)} -> {timestamp_ms_to_date_str(end_time)})"
        )

        results = await asyncio.gather(
            *(self.exchanges[name].fetch_series(start_time, end_time) for name in names),
            return_exceptions=True
        )

        series: Dict[str, List[KlineRecord]] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Fetching {name} failed: {result!r}", exc_info=result)
                self.failed.append(name)
                series[name] = []
            else:
                series[name] = list(result)

        return series

    # ============================================
    # Utility Methods
    # ============================================

    def __repr__(self) -> str:
        return f"<ExchangeManager(exchanges={list(self.exchanges.keys())})>"

    def __len__(self) -> int:
        return len(self.exchanges)
