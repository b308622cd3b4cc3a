"""
Test Suite

Contains unit tests for the kline collector.

Structure:
- tests/unit/: Tests for individual components (rotation, paging, connectors,
  merge/validate/analyze stages, storage, pipeline and CLI). The network is
  never touched; HTTP calls and sleeps are replaced with fakes.

Uses pytest with pytest-asyncio for testing async functionality.
"""
