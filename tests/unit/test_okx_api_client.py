"""
Unit Tests for OKX API Client

These tests verify that the OKXAPIClient:
- Builds window-bounded before/after requests
- Unwraps the OKX envelope and rejects error codes
- Reverses newest-first rows and normalizes them
- Skips ahead over windows without candles

Run with:
    pytest tests/unit/test_okx_api_client.py -v
"""

from datetime import date

import pytest
import pytest_asyncio

from core.http_client import FetchError
from core.utils.time import MS_PER_DAY
from exchanges.okx import OKXExchange
from exchanges.okx.api_client import OKXAPIClient, to_inst_id

JAN_1 = 1704067200000
JAN_2 = JAN_1 + MS_PER_DAY
FEB_1 = 1706745600000


def candle(ts, close="44179.5"):
    return [str(ts), "42283.5", "44184.1", "42180.7", close, "8151.2", "350000000.1", "350000001.2", "1"]


# ============================================
# Fixtures
# ============================================

@pytest_asyncio.fixture
async def api_client():
    """Create an OKXAPIClient instance for testing"""
    async with OKXAPIClient(symbol="BTCUSDT", proxies=[]) as client:
        yield client


def envelope(rows, code="0", msg=""):
    return {"code": code, "msg": msg, "data": rows}


# ============================================
# Tests
# ============================================

class TestInstId:
    """Tests for symbol conversion"""

    @pytest.mark.parametrize("symbol,expected", [
        ("BTCUSDT", "BTC-USDT"),
        ("ethusdc", "ETH-USDC"),
        ("BTC-USDT", "BTC-USDT"),
    ])
    def test_to_inst_id(self, symbol, expected):
        assert to_inst_id(symbol) == expected


class TestGetKlines:
    """Tests for get_klines method"""

    @pytest.mark.asyncio
    async def test_request_parameters(self, api_client, monkeypatch):
        called = {}

        async def mock_http_get(path, params=None):
            called["path"] = path
            called["params"] = params
            return envelope([])

        monkeypatch.setattr(api_client.http, "get_json", mock_http_get)

        await api_client.get_klines(JAN_1, FEB_1)

        assert called["path"] == "/api/v5/market/history-candles"
        assert called["params"] == {
            "instId": "BTC-USDT",
            "bar": "1Dutc",
            "before": JAN_1 - 1,
            "after": FEB_1,
            "limit": 100
        }

    @pytest.mark.asyncio
    async def test_window_capped_at_limit_days(self, api_client, monkeypatch):
        called = {}

        async def mock_get(path, params=None):
            called.update(params)
            return []

        monkeypatch.setattr(api_client, "_get", mock_get)

        await api_client.get_klines(JAN_1, JAN_1 + 1000 * MS_PER_DAY, limit=500)

        assert called["limit"] == 100
        assert called["after"] == JAN_1 + 100 * MS_PER_DAY

    @pytest.mark.asyncio
    async def test_rows_reversed_and_normalized(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            # Newest first
            return [candle(JAN_2, close="45000"), candle(JAN_1)]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(JAN_1, FEB_1)

        assert [r.date for r in page.records] == [date(2024, 1, 1), date(2024, 1, 2)]
        first = page.records[0]
        assert first.open == 42283.5
        assert first.close == 44179.5
        assert first.volume == 8151.2
        assert first.quote_volume == 350000001.2
        assert first.trades == 0
        assert page.next_cursor == JAN_2 + 1

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_is_skipped(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return [candle("1e20"), candle(JAN_1)]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(JAN_1, FEB_1)

        assert [r.date for r in page.records] == [date(2024, 1, 1)]
        assert page.next_cursor == JAN_1 + 1

    @pytest.mark.asyncio
    async def test_empty_window_skips_ahead(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return []

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(JAN_1, JAN_1 + 1000 * MS_PER_DAY)

        assert page.records == []
        assert page.next_cursor == JAN_1 + 100 * MS_PER_DAY

    @pytest.mark.asyncio
    async def test_empty_final_window_ends(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return []

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(JAN_1, FEB_1)

        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_error_code_raises_fetch_error(self, api_client, monkeypatch):
        async def mock_http_get(path, params=None):
            return envelope([], code="51001", msg="Instrument ID does not exist")

        monkeypatch.setattr(api_client.http, "get_json", mock_http_get)

        with pytest.raises(FetchError, match="Instrument ID does not exist"):
            await api_client.get_klines(JAN_1, FEB_1)


class TestProxies:
    """Tests for proxy configuration"""

    def test_proxies_passed_to_rotator(self):
        client = OKXAPIClient(proxies=["http://p1:8080", "http://p2:8080"])
        assert client.rotator.current_proxy() == "http://p1:8080"
        client.rotator.rotate()
        assert client.rotator.current_proxy() == "http://p2:8080"


class TestOKXExchange:
    """Tests for the OKXExchange connector"""

    def test_page_size_capped_at_100(self):
        exchange = OKXExchange()
        assert exchange.page_size == 100
        assert exchange.name == "okx"
