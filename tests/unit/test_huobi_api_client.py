"""
Unit Tests for Huobi API Client

These tests verify that the HuobiAPIClient:
- Unwraps the Huobi envelope and rejects error statuses
- Dates candles by their UTC+8 trading day
- Filters the newest-candles response down to the cursor window
- Ends the fetch once no candle is left past the cursor

Run with:
    pytest tests/unit/test_huobi_api_client.py -v
"""

from datetime import date

import pytest
import pytest_asyncio

from core.http_client import FetchError
from core.paginator import PagedKlineFetcher
from core.utils.time import MS_PER_DAY, date_to_timestamp_ms
from exchanges.huobi import HuobiExchange
from exchanges.huobi.api_client import HuobiAPIClient

# 2024-01-01 00:00 UTC+8
JAN_1_ID = 1704038400
DAY_S = 86400


def kline(candle_id, close=44179.55, amount=27174.3):
    return {
        "id": candle_id,
        "open": 42283.58,
        "close": close,
        "low": 42180.77,
        "high": 44184.1,
        "amount": amount,
        "vol": 1169438736.5,
        "count": 1215745
    }


def envelope(rows, status="ok"):
    return {"status": status, "ch": "market.btcusdt.kline.1day", "data": rows}


# ============================================
# Fixtures
# ============================================

@pytest_asyncio.fixture
async def api_client():
    """Create a HuobiAPIClient instance for testing"""
    async with HuobiAPIClient(symbol="BTCUSDT") as client:
        yield client


# ============================================
# Tests
# ============================================

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

        await api_client.get_klines(date_to_timestamp_ms(date(2024, 1, 1)), date_to_timestamp_ms(date(2024, 2, 1)))

        assert called["path"] == "/market/history/kline"
        assert called["params"]["symbol"] == "btcusdt"
        assert called["params"]["period"] == "1day"
        assert 1 <= called["params"]["size"] <= 2000

    @pytest.mark.asyncio
    async def test_candles_dated_in_utc_plus_8(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return [kline(JAN_1_ID + DAY_S), kline(JAN_1_ID)]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(date_to_timestamp_ms(date(2024, 1, 1)), date_to_timestamp_ms(date(2024, 2, 1)))

        assert [r.date for r in page.records] == [date(2024, 1, 1), date(2024, 1, 2)]
        record = page.records[0]
        assert record.volume == 27174.3
        assert record.quote_volume == 1169438736.5
        assert record.trades == 1215745
        assert page.next_cursor == date_to_timestamp_ms(date(2024, 1, 2)) + 1

    @pytest.mark.asyncio
    async def test_filters_to_window(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return [kline(JAN_1_ID + i * DAY_S) for i in reversed(range(10))]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(date_to_timestamp_ms(date(2024, 1, 3)), date_to_timestamp_ms(date(2024, 1, 6)))

        assert [r.date for r in page.records] == [date(2024, 1, 3), date(2024, 1, 4), date(2024, 1, 5)]

    @pytest.mark.asyncio
    async def test_nothing_past_cursor_ends_fetch(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return [kline(JAN_1_ID)]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(date_to_timestamp_ms(date(2024, 1, 1)) + 1, date_to_timestamp_ms(date(2024, 2, 1)))

        assert page.records == []
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_error_status_raises_fetch_error(self, api_client, monkeypatch):
        async def mock_http_get(path, params=None):
            return {"status": "error", "err-code": "invalid-parameter", "err-msg": "invalid symbol"}

        monkeypatch.setattr(api_client.http, "get_json", mock_http_get)

        with pytest.raises(FetchError, match="invalid symbol"):
            await api_client.get_klines(0, MS_PER_DAY)

    @pytest.mark.asyncio
    async def test_missing_values_become_none(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            row = kline(JAN_1_ID)
            row["close"] = None
            return [row]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(date_to_timestamp_ms(date(2024, 1, 1)), date_to_timestamp_ms(date(2024, 2, 1)))

        assert page.records[0].close is None

    @pytest.mark.asyncio
    async def test_out_of_range_id_is_skipped(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return [kline(10 ** 17), kline(JAN_1_ID)]

        monkeypatch.setattr(api_client, "_get", mock_get)

        page = await api_client.get_klines(date_to_timestamp_ms(date(2024, 1, 1)), date_to_timestamp_ms(date(2024, 2, 1)))

        assert [r.date for r in page.records] == [date(2024, 1, 1)]


class TestHuobiExchange:
    """Tests for the HuobiExchange connector"""

    @pytest.mark.asyncio
    async def test_fetch_series_terminates_after_newest_candle(self, monkeypatch):
        exchange = HuobiExchange()
        assert isinstance(exchange.fetcher, PagedKlineFetcher)

        async def no_sleep(delay):
            return None

        exchange.fetcher._sleep = no_sleep
        calls = {"n": 0}

        async def mock_get(path, params=None):
            calls["n"] += 1
            return [kline(JAN_1_ID + i * DAY_S) for i in reversed(range(3))]

        monkeypatch.setattr(exchange.client, "_get", mock_get)

        records = await exchange.fetch_series(
            date_to_timestamp_ms(date(2024, 1, 1)),
            date_to_timestamp_ms(date(2024, 2, 1))
        )

        assert [r.date for r in records] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
        assert calls["n"] == 2
