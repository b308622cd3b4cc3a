"""
Data Validator

Runs four data-quality rules over every merged day and separates clean days
from anomalous ones:

1. Completeness: every source's open/high/low/close/volume must be numeric
2. Cross-source deviation: closing prices must agree within ``price_deviation_pct``
3. Volume spike: a source's volume must stay below ``volume_spike_ratio`` times
   its trailing average over the previous ``volume_window_days`` days
4. Price gap: a source's open must stay within ``price_gap_pct`` of its
   previous day's close

All rules run on every day, so one day can produce several anomalies. A day
is valid only if no rule fired. Data defects never raise; they become
anomalies.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from core.logging import get_logger
from core.schemas import (
    AnomalyEntry,
    AnomalyKind,
    MergedDayRecord,
    MissingData,
    PriceDeviation,
    PriceGap,
    ValidationResult,
    ValidationStats,
    VolumeSpike,
    empty_anomalies,
)

logger = get_logger(__name__)


class ValidationThresholds:
    """
    Rule thresholds.

    Attributes:
        price_deviation_pct: Max close spread across sources (percent of mean)
        volume_spike_ratio: Max volume / trailing average
        volume_window_days: Trailing window for the volume average
        price_gap_pct: Max |open - previous close| (percent of previous close)
    """

    def __init__(
        self,
        price_deviation_pct: float = 1.0,
        volume_spike_ratio: float = 3.0,
        volume_window_days: int = 30,
        price_gap_pct: float = 5.0
    ):
        self.price_deviation_pct = price_deviation_pct
        self.volume_spike_ratio = volume_spike_ratio
        self.volume_window_days = volume_window_days
        self.price_gap_pct = price_gap_pct

    @classmethod
    def from_settings(cls, config=None) -> "ValidationThresholds":
        from core.config import settings

        config = config or settings
        return cls(
            price_deviation_pct=config.price_deviation_pct,
            volume_spike_ratio=config.volume_spike_ratio,
            volume_window_days=config.volume_window_days,
            price_gap_pct=config.price_gap_pct,
        )

    def __repr__(self) -> str:
        return (
            f"<ValidationThresholds(deviation={self.price_deviation_pct}%, "
            f"spike={self.volume_spike_ratio}x/{self.volume_window_days}d, gap={self.price_gap_pct}%)>"
        )


class DataValidator:
    """
    Applies the validation rules to a merged, date-ascending sequence.

    Example:
        >>> validator = DataValidator(ValidationThresholds())
        >>> result = validator.validate(merged)
        >>> print(result.stats.valid_days, len(result.anomalies[AnomalyKind.PRICE_GAP]))
    """

    def __init__(self, thresholds: Optional[ValidationThresholds] = None):
        self.thresholds = thresholds or ValidationThresholds.from_settings()

    def validate(self, merged: Sequence[MergedDayRecord]) -> ValidationResult:
        """
        Validate every day of ``merged``.

        Args:
            merged: Output of merge_exchange_data (ascending, unique dates)

        Returns:
            ValidationResult with the valid days, anomalies per kind and stats
        """
        anomalies = empty_anomalies()
        valid: List[MergedDayRecord] = []
        coverage: Dict[str, int] = {}

        # Source -> numeric volumes of the previous merged days
        volume_history: Dict[str, Deque[float]] = {}
        previous: Optional[MergedDayRecord] = None

        for day in merged:
            found: List[AnomalyEntry] = []

            missing = self._check_completeness(day)
            if missing is not None:
                found.append(missing)

            deviation = self._check_price_deviation(day)
            if deviation is not None:
                found.append(deviation)

            found.extend(self._check_volume_spikes(day, volume_history))
            found.extend(self._check_price_gaps(day, previous))

            for entry in found:
                anomalies[AnomalyKind(entry.kind)].append(entry)

            if not found:
                valid.append(day)
                for source in day.exchanges:
                    coverage[source] = coverage.get(source, 0) + 1

            for source, record in day.exchanges.items():
                if record.volume is not None:
                    history = volume_history.setdefault(
                        source, deque(maxlen=self.thresholds.volume_window_days)
                    )
                    history.append(record.volume)

            previous = day

        stats = ValidationStats(
            total_days=len(merged),
            valid_days=len(valid),
            exchange_coverage=coverage
        )

        logger.info(
            f"Validated {stats.total_days} days: {stats.valid_days} valid, "
            + ", ".join(f"{len(entries)} {kind.value}" for kind, entries in anomalies.items())
        )

        return ValidationResult(valid=valid, anomalies=anomalies, stats=stats)

    # ============================================
    # Rules
    # ============================================

    @staticmethod
    def _check_completeness(day: MergedDayRecord) -> Optional[MissingData]:
        defective = {
            source: record.missing_fields()
            for source, record in day.exchanges.items()
            if not record.is_complete
        }
        if not defective:
            return None
        return MissingData(date=day.date, exchanges=list(defective), missing=defective)

    def _check_price_deviation(self, day: MergedDayRecord) -> Optional[PriceDeviation]:
        closes = {
            source: record.close
            for source, record in day.exchanges.items()
            if record.close is not None
        }
        if len(closes) < 2:
            return None

        mean = sum(closes.values()) / len(closes)
        if mean <= 0:
            return None

        max_diff = max(closes.values()) - min(closes.values())
        diff_percent = max_diff / mean * 100
        if diff_percent <= self.thresholds.price_deviation_pct:
            return None

        return PriceDeviation(
            date=day.date,
            exchanges=list(closes),
            max_diff=max_diff,
            diff_percent=diff_percent
        )

    def _check_volume_spikes(
        self,
        day: MergedDayRecord,
        volume_history: Dict[str, Deque[float]]
    ) -> List[VolumeSpike]:
        spikes = []
        for source, record in day.exchanges.items():
            history = volume_history.get(source)
            if record.volume is None or not history:
                continue

            avg_volume = sum(history) / len(history)
            if avg_volume <= 0:
                continue

            if record.volume > avg_volume * self.thresholds.volume_spike_ratio:
                spikes.append(VolumeSpike(
                    date=day.date,
                    exchange=source,
                    volume=record.volume,
                    avg_volume=avg_volume,
                    ratio=record.volume / avg_volume
                ))
        return spikes

    def _check_price_gaps(
        self,
        day: MergedDayRecord,
        previous: Optional[MergedDayRecord]
    ) -> List[PriceGap]:
        if previous is None:
            return []

        gaps = []
        for source, record in day.exchanges.items():
            prev_record = previous.exchanges.get(source)
            if prev_record is None:
                continue

            prev_close, curr_open = prev_record.close, record.open
            if prev_close is None or curr_open is None or prev_close == 0:
                continue

            gap_percent = abs(curr_open - prev_close) / prev_close * 100
            if gap_percent > self.thresholds.price_gap_pct:
                gaps.append(PriceGap(
                    date=day.date,
                    exchange=source,
                    gap_percent=gap_percent,
                    prev_close=prev_close,
                    curr_open=curr_open
                ))
        return gaps


def validate_data(merged: Sequence[MergedDayRecord], config=None) -> ValidationResult:
    """Validate ``merged`` with thresholds from settings."""
    return DataValidator(ValidationThresholds.from_settings(config)).validate(merged)
