"""
Data Analyzer

Aggregates statistics over the validated day sequence in a single forward pass:

- Price: highest/lowest close (with date and source), average close and
  annualized volatility of daily log returns per source
- Volume: highest volume, total and daily average per source, market share
- Trends: up/down/flat days and the longest up/down streaks per source,
  each day compared with the source's previous valid-day close
- Time: average close and total volume per year, month and weekday

Records whose close or volume is missing are skipped for the statistics
that need them.
"""

import math
import statistics
from typing import Dict, List, Sequence

from core.logging import get_logger
from core.schemas import (
    AnalysisResult,
    Extreme,
    MergedDayRecord,
    PriceStats,
    TimeBucket,
    TimeStats,
    TrendStats,
    VolumeStats,
)

logger = get_logger(__name__)

TRADING_DAYS_PER_YEAR = 252


class _Bucket:
    """Running sums for one time bucket."""

    __slots__ = ("price_sum", "price_count", "volume")

    def __init__(self):
        self.price_sum = 0.0
        self.price_count = 0
        self.volume = 0.0

    def to_model(self) -> TimeBucket:
        return TimeBucket(
            avg_price=self.price_sum / self.price_count if self.price_count else 0.0,
            total_volume=self.volume,
            observations=self.price_count
        )


def _annualized_volatility(returns: List[float]) -> float:
    if not returns:
        return 0.0
    return statistics.pstdev(returns) * math.sqrt(TRADING_DAYS_PER_YEAR) * 100


def analyze_data(valid: Sequence[MergedDayRecord]) -> AnalysisResult:
    """
    Compute aggregate statistics over ``valid`` (ascending by date).

    Returns:
        AnalysisResult. For an empty input every dictionary is empty and
        the extremes carry no value.
    """
    highest_price = Extreme()
    lowest_price = Extreme()
    highest_volume = Extreme()

    price_sums: Dict[str, float] = {}
    price_counts: Dict[str, int] = {}
    returns: Dict[str, List[float]] = {}
    volume_totals: Dict[str, float] = {}
    volume_counts: Dict[str, int] = {}

    prev_close: Dict[str, float] = {}
    up_days: Dict[str, int] = {}
    down_days: Dict[str, int] = {}
    flat_days: Dict[str, int] = {}
    up_streak: Dict[str, int] = {}
    down_streak: Dict[str, int] = {}
    max_up_streak: Dict[str, int] = {}
    max_down_streak: Dict[str, int] = {}

    by_year: Dict[str, _Bucket] = {}
    by_month: Dict[str, _Bucket] = {}
    by_weekday: Dict[str, _Bucket] = {}

    for day in valid:
        buckets = (
            by_year.setdefault(day.date.strftime("%Y"), _Bucket()),
            by_month.setdefault(day.date.strftime("%Y-%m"), _Bucket()),
            by_weekday.setdefault(day.date.strftime("%A"), _Bucket()),
        )

        for source in sorted(day.exchanges):
            record = day.exchanges[source]
            close, volume = record.close, record.volume

            if close is not None:
                if highest_price.value is None or close > highest_price.value:
                    highest_price = Extreme(value=close, date=day.date, exchange=source)
                if lowest_price.value is None or close < lowest_price.value:
                    lowest_price = Extreme(value=close, date=day.date, exchange=source)

                price_sums[source] = price_sums.get(source, 0.0) + close
                price_counts[source] = price_counts.get(source, 0) + 1
                returns.setdefault(source, [])

                for counter in (up_days, down_days, flat_days, up_streak, down_streak,
                                max_up_streak, max_down_streak):
                    counter.setdefault(source, 0)

                previous = prev_close.get(source)
                if previous is not None:
                    if previous > 0 and close > 0:
                        returns[source].append(math.log(close / previous))

                    change = close - previous
                    if change > 0:
                        up_days[source] += 1
                        up_streak[source] += 1
                        down_streak[source] = 0
                    elif change < 0:
                        down_days[source] += 1
                        down_streak[source] += 1
                        up_streak[source] = 0
                    else:
                        flat_days[source] += 1
                        up_streak[source] = 0
                        down_streak[source] = 0

                    max_up_streak[source] = max(max_up_streak[source], up_streak[source])
                    max_down_streak[source] = max(max_down_streak[source], down_streak[source])

                prev_close[source] = close

                for bucket in buckets:
                    bucket.price_sum += close
                    bucket.price_count += 1

            if volume is not None:
                if highest_volume.value is None or volume > highest_volume.value:
                    highest_volume = Extreme(value=volume, date=day.date, exchange=source)

                volume_totals[source] = volume_totals.get(source, 0.0) + volume
                volume_counts[source] = volume_counts.get(source, 0) + 1

                for bucket in buckets:
                    bucket.volume += volume

    grand_total = sum(volume_totals.values())

    result = AnalysisResult(
        price=PriceStats(
            highest=highest_price,
            lowest=lowest_price,
            averages={source: price_sums[source] / price_counts[source] for source in price_sums},
            volatility={source: _annualized_volatility(r) for source, r in returns.items()},
        ),
        volume=VolumeStats(
            highest=highest_volume,
            total=dict(volume_totals),
            daily_average={source: volume_totals[source] / volume_counts[source] for source in volume_totals},
            market_share={
                source: (total / grand_total if grand_total > 0 else 0.0)
                for source, total in volume_totals.items()
            },
        ),
        trends=TrendStats(
            up_days=up_days,
            down_days=down_days,
            flat_days=flat_days,
            max_up_streak=max_up_streak,
            max_down_streak=max_down_streak,
        ),
        time_stats=TimeStats(
            by_year={key: bucket.to_model() for key, bucket in by_year.items()},
            by_month={key: bucket.to_model() for key, bucket in by_month.items()},
            by_weekday={key: bucket.to_model() for key, bucket in by_weekday.items()},
        ),
    )

    logger.info(f"Analyzed {len(valid)} valid days across {len(price_sums)} source(s)")
    return result
