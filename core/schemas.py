"""
Normalized Data Schemas

This module defines Pydantic models for every value passed between pipeline stages.

Key Principle:
    Regardless of which exchange the data comes from (Binance, Huobi, OKX),
    it gets normalized into these standardized schemas. Every model is frozen:
    each stage builds new values instead of mutating what it received.

Models:
    - KlineRecord: One daily candle from one source
    - KlinePage: One page of candles plus the cursor to resume from
    - MergedDayRecord: All sources' candles for one calendar date
    - PriceDeviation / VolumeSpike / MissingData / PriceGap: Anomaly variants
    - ValidationResult: Valid days, categorized anomalies and coverage stats
    - AnalysisResult: Aggregate statistics over the valid days

Serialization:
    Models are persisted with ``model_dump(mode="json", by_alias=True)`` so
    dates become ISO strings and ``quote_volume`` is written as ``quoteVolume``.
"""

import datetime as dt
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


# ============================================
# Kline Schemas
# ============================================

OHLCV_FIELDS = ("open", "high", "low", "close", "volume")


class KlineRecord(BaseModel):
    """
    Daily Open-High-Low-Close-Volume candle from a single source.

    Price and volume fields are ``None`` when the upstream value was missing
    or not a finite number. NaN and infinity are rejected outright, so a
    defective wire value can only surface as ``None``, which the validator
    reports as missing data.

    Attributes:
        date: Calendar day of the candle
        open / high / low / close: Prices in quote asset
        volume: Traded volume in base asset (e.g., BTC)
        trades: Number of trades (0 when the source does not report it)
        quote_volume: Traded volume in quote asset (JSON key "quoteVolume")

    Example:
        >>> KlineRecord(
        ...     date=dt.date(2024, 1, 1),
        ...     open=42283.58, high=44184.1, low=42180.77, close=44179.55,
        ...     volume=27174.3, trades=1215745, quote_volume=1169438736.5
        ... )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, allow_inf_nan=False)

    date: dt.date = Field(..., description="Calendar day of the candle")

    open: Optional[float] = Field(default=None, description="Opening price")
    high: Optional[float] = Field(default=None, description="Highest price")
    low: Optional[float] = Field(default=None, description="Lowest price")
    close: Optional[float] = Field(default=None, description="Closing price")
    volume: Optional[float] = Field(default=None, description="Volume in base asset")

    trades: int = Field(default=0, ge=0, description="Number of trades")

    quote_volume: Optional[float] = Field(
        default=None,
        alias="quoteVolume",
        description="Volume in quote asset"
    )

    def missing_fields(self) -> List[str]:
        """Names of the OHLCV fields that are not numeric."""
        return [name for name in OHLCV_FIELDS if getattr(self, name) is None]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class KlinePage(BaseModel):
    """
    One page returned by a source.

    ``next_cursor`` is the epoch-millisecond timestamp the next page should
    start at (one millisecond past the last candle), or None for an empty page.
    """

    model_config = ConfigDict(frozen=True)

    records: List[KlineRecord] = Field(default_factory=list)
    next_cursor: Optional[int] = None


class MergedDayRecord(BaseModel):
    """
    All sources' candles for one calendar date.

    Invariant: only dates for which at least one source returned a candle
    exist, and ``exchanges`` keys are a subset of the configured sources.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date = Field(..., description="Calendar day")
    exchanges: Dict[str, KlineRecord] = Field(
        default_factory=dict,
        description="Source name -> candle"
    )


# ============================================
# Anomaly Schemas
# ============================================

class AnomalyKind(str, Enum):
    """Categories of data-quality anomalies."""

    PRICE_DEVIATION = "price_deviation"
    VOLUME_SPIKE = "volume_spike"
    MISSING_DATA = "missing_data"
    PRICE_GAP = "price_gap"


class PriceDeviation(BaseModel):
    """Closing prices disagree across sources by more than the threshold."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["price_deviation"] = "price_deviation"
    date: dt.date
    exchanges: List[str]
    max_diff: float = Field(..., description="max(close) - min(close)")
    diff_percent: float = Field(..., description="max_diff / mean(close) * 100")


class VolumeSpike(BaseModel):
    """One source's volume exceeds a multiple of its trailing average."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["volume_spike"] = "volume_spike"
    date: dt.date
    exchange: str
    volume: float
    avg_volume: float
    ratio: float = Field(..., description="volume / avg_volume")


class MissingData(BaseModel):
    """At least one source's OHLCV fields are missing or non-numeric."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["missing_data"] = "missing_data"
    date: dt.date
    exchanges: List[str] = Field(..., description="Sources with defective candles")
    missing: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Source -> names of missing fields"
    )


class PriceGap(BaseModel):
    """One source opened far away from its previous close."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["price_gap"] = "price_gap"
    date: dt.date
    exchange: str
    gap_percent: float
    prev_close: float
    curr_open: float


AnomalyEntry = Annotated[
    Union[PriceDeviation, VolumeSpike, MissingData, PriceGap],
    Field(discriminator="kind")
]


class ValidationStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_days: int = 0
    valid_days: int = 0
    exchange_coverage: Dict[str, int] = Field(
        default_factory=dict,
        description="Source -> number of valid days including that source"
    )


def empty_anomalies() -> Dict[AnomalyKind, List[AnomalyEntry]]:
    return {kind: [] for kind in AnomalyKind}


class ValidationResult(BaseModel):
    """
    Output of the validator.

    Attributes:
        valid: Days for which no rule fired, ascending by date
        anomalies: Anomaly kind -> entries in date order
        stats: Day counts and per-source coverage of valid days
    """

    model_config = ConfigDict(frozen=True)

    valid: List[MergedDayRecord] = Field(default_factory=list)
    anomalies: Dict[AnomalyKind, List[AnomalyEntry]] = Field(default_factory=empty_anomalies)
    stats: ValidationStats = Field(default_factory=ValidationStats)


# ============================================
# Analysis Schemas
# ============================================

class Extreme(BaseModel):
    """An extreme value with the date and source it was observed on."""

    model_config = ConfigDict(frozen=True)

    value: Optional[float] = None
    date: Optional[dt.date] = None
    exchange: Optional[str] = None


class PriceStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    highest: Extreme = Field(default_factory=Extreme)
    lowest: Extreme = Field(default_factory=Extreme)
    averages: Dict[str, float] = Field(default_factory=dict)
    volatility: Dict[str, float] = Field(
        default_factory=dict,
        description="Annualized volatility of daily log returns, in percent"
    )


class VolumeStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    highest: Extreme = Field(default_factory=Extreme)
    total: Dict[str, float] = Field(default_factory=dict)
    daily_average: Dict[str, float] = Field(default_factory=dict)
    market_share: Dict[str, float] = Field(
        default_factory=dict,
        description="Fraction (0-1) of summed volume across sources"
    )


class TrendStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    up_days: Dict[str, int] = Field(default_factory=dict)
    down_days: Dict[str, int] = Field(default_factory=dict)
    flat_days: Dict[str, int] = Field(default_factory=dict)
    max_up_streak: Dict[str, int] = Field(default_factory=dict)
    max_down_streak: Dict[str, int] = Field(default_factory=dict)


class TimeBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_price: float = 0.0
    total_volume: float = 0.0
    observations: int = 0


class TimeStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    by_year: Dict[str, TimeBucket] = Field(default_factory=dict)
    by_month: Dict[str, TimeBucket] = Field(default_factory=dict)
    by_weekday: Dict[str, TimeBucket] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Aggregate statistics over the validated sequence."""

    model_config = ConfigDict(frozen=True)

    price: PriceStats = Field(default_factory=PriceStats)
    volume: VolumeStats = Field(default_factory=VolumeStats)
    trends: TrendStats = Field(default_factory=TrendStats)
    time_stats: TimeStats = Field(default_factory=TimeStats)
