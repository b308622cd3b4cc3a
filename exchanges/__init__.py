"""
Exchange Connectors Package

This package contains individual kline source modules.
Each exchange (Binance, Huobi, OKX) has its own subfolder with:
- api_client.py: REST API logic and wire-format normalization
- __init__.py: Exchange class implementing ExchangeInterface

The modular design allows adding new sources without touching the merge,
validation or analysis stages.
"""
