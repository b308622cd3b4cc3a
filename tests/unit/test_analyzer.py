"""
Unit Tests for analyze_data

Run with:
    pytest tests/unit/test_analyzer.py -v
"""

import math
import statistics
from datetime import date, timedelta

import pytest

from core.schemas import AnalysisResult, KlineRecord, MergedDayRecord
from services.analyzer import analyze_data

# 2024-01-01 is a Monday
BASE = date(2024, 1, 1)


def day(offset: int, **closes_and_volumes) -> MergedDayRecord:
    """day(0, binance=(close, volume), okx=(close, volume))"""
    exchanges = {
        source: KlineRecord(
            date=BASE + timedelta(days=offset),
            open=close, high=close, low=close, close=close, volume=volume
        )
        for source, (close, volume) in closes_and_volumes.items()
    }
    return MergedDayRecord(date=BASE + timedelta(days=offset), exchanges=exchanges)


class TestPriceStats:
    """Tests for price extremes, averages and volatility"""

    def test_extremes_with_date_and_source(self):
        result = analyze_data([
            day(0, binance=(100.0, 1.0), okx=(101.0, 1.0)),
            day(1, binance=(90.0, 1.0), okx=(120.0, 1.0)),
        ])

        assert result.price.highest.value == 120.0
        assert result.price.highest.exchange == "okx"
        assert result.price.highest.date == BASE + timedelta(days=1)
        assert result.price.lowest.value == 90.0
        assert result.price.lowest.exchange == "binance"

    def test_averages_per_source(self):
        result = analyze_data([day(0, binance=(100.0, 1.0)), day(1, binance=(200.0, 1.0))])

        assert result.price.averages == {"binance": 150.0}

    def test_volatility_is_annualized_population_stdev(self):
        closes = [100.0, 110.0, 99.0, 105.0]
        result = analyze_data([day(i, binance=(c, 1.0)) for i, c in enumerate(closes)])

        returns = [math.log(closes[i] / closes[i - 1]) for i in range(1, len(closes))]
        expected = statistics.pstdev(returns) * math.sqrt(252) * 100
        assert result.price.volatility["binance"] == pytest.approx(expected)

    def test_single_day_volatility_is_zero(self):
        result = analyze_data([day(0, binance=(100.0, 1.0))])

        assert result.price.volatility == {"binance": 0.0}


class TestVolumeStats:
    """Tests for volume totals and market share"""

    def test_totals_daily_average_and_share(self):
        result = analyze_data([
            day(0, binance=(100.0, 300.0), okx=(100.0, 100.0)),
            day(1, binance=(100.0, 300.0), okx=(100.0, 100.0)),
        ])

        assert result.volume.total == {"binance": 600.0, "okx": 200.0}
        assert result.volume.daily_average == {"binance": 300.0, "okx": 100.0}
        assert result.volume.market_share["binance"] == pytest.approx(0.75)
        assert result.volume.market_share["okx"] == pytest.approx(0.25)
        assert sum(result.volume.market_share.values()) == pytest.approx(1.0)

    def test_highest_volume(self):
        result = analyze_data([day(0, binance=(100.0, 5.0), okx=(100.0, 9.0))])

        assert result.volume.highest.value == 9.0
        assert result.volume.highest.exchange == "okx"


class TestTrendStats:
    """Tests for direction counts and streaks"""

    def test_direction_counts_and_streaks(self):
        closes = [100.0, 101.0, 102.0, 103.0, 102.0, 101.0, 101.0, 102.0]
        result = analyze_data([day(i, binance=(c, 1.0)) for i, c in enumerate(closes)])

        assert result.trends.up_days["binance"] == 4
        assert result.trends.down_days["binance"] == 2
        assert result.trends.flat_days["binance"] == 1
        assert result.trends.max_up_streak["binance"] == 3
        assert result.trends.max_down_streak["binance"] == 2

    def test_compares_with_previous_valid_day_of_same_source(self):
        # okx is absent on day 1, so day 2 is compared with day 0
        result = analyze_data([
            day(0, okx=(100.0, 1.0)),
            day(1, binance=(50.0, 1.0)),
            day(2, okx=(90.0, 1.0)),
        ])

        assert result.trends.down_days["okx"] == 1
        assert result.trends.up_days["okx"] == 0


class TestTimeStats:
    """Tests for year/month/weekday buckets"""

    def test_buckets(self):
        result = analyze_data([
            day(0, binance=(100.0, 10.0), okx=(200.0, 20.0)),
            day(31, binance=(300.0, 30.0)),
        ])

        year = result.time_stats.by_year["2024"]
        assert year.avg_price == pytest.approx(200.0)
        assert year.total_volume == pytest.approx(60.0)
        assert year.observations == 3

        assert set(result.time_stats.by_month) == {"2024-01", "2024-02"}
        assert result.time_stats.by_month["2024-02"].avg_price == 300.0

        assert result.time_stats.by_weekday["Monday"].observations == 2
        assert result.time_stats.by_weekday["Thursday"].observations == 1


class TestEmptyInput:
    """Tests for an empty validated sequence"""

    def test_empty_result(self):
        result = analyze_data([])

        assert isinstance(result, AnalysisResult)
        assert result.price.highest.value is None
        assert result.price.averages == {}
        assert result.volume.market_share == {}
        assert result.time_stats.by_year == {}
