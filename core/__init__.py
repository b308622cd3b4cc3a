"""
Core Package

Contains the exchange-agnostic core logic including:
- ExchangeInterface: Abstract base class defining the contract for all kline sources
- ExchangeManager: Registry that builds the configured sources and fetches them concurrently
- RotatingHTTPClient / PagedKlineFetcher: Retry, endpoint rotation and paging shared by all sources
- Schemas: Pydantic models for normalized data structures (klines, anomalies, statistics)

This layer ensures all sources follow the same interface, making the pipeline modular.
"""
