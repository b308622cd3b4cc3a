"""
Collection Pipeline

Runs one collection pass end to end:

    resolve window -> fetch all sources concurrently -> back up data dir
        -> save raw series -> merge -> validate -> (increment: reconcile)
        -> save validated dataset + anomalies -> analyze -> save analysis

Modes:
    full       Fetch from ``full_mode_epoch`` (2017-07-01) to now and replace
               the validated dataset.
    increment  Fetch from the day after the newest persisted day (or the
               epoch when there is no dataset) and reconcile into the dataset.

If every source comes back empty the run fails with NoDataError and nothing
is written.
"""

import datetime as dt
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.exchange_manager import ExchangeManager
from core.logging import get_logger
from core.schemas import AnalysisResult, MergedDayRecord, ValidationResult
from core.utils.time import current_utc_datetime, date_to_timestamp_ms, datetime_to_timestamp
from services.analyzer import analyze_data
from services.event_bus import FETCH_TOPIC, PIPELINE_TOPIC, EventBus
from services.incremental import reconcile
from services.merger import merge_exchange_data
from services.validator import DataValidator, ValidationThresholds
from storage.backup import BackupService
from storage.json_store import JsonStore

logger = get_logger(__name__)

MODES = ("full", "increment")


class NoDataError(RuntimeError):
    """No source returned any candle for the requested window."""


class PipelineReport(BaseModel):
    """Outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    mode: str
    start: dt.date
    end: dt.date
    fetched: Dict[str, int] = Field(default_factory=dict, description="Source -> candles fetched")
    incomplete_sources: List[str] = Field(default_factory=list)
    total_days: int = 0
    valid_days: int = 0
    dataset_days: int = 0
    anomaly_counts: Dict[str, int] = Field(default_factory=dict)


def resolve_start_date(mode: str, store: JsonStore, epoch: Optional[dt.date] = None) -> dt.date:
    """
    First date to fetch for ``mode``.

    Args:
        mode: "full" or "increment"
        store: Store holding the validated dataset
        epoch: Full-mode start (defaults to settings.full_mode_epoch)

    Raises:
        ValueError: If mode is unknown
    """
    if mode not in MODES:
        raise ValueError(f"Invalid mode: '{mode}'. Must be one of: {', '.join(MODES)}")

    if epoch is None:
        from core.config import settings
        epoch = settings.full_mode_epoch

    if mode == "full":
        logger.info(f"Performing full data retrieval from {epoch}")
        return epoch

    latest = store.latest_date()
    if latest is None:
        logger.info("No existing data found, will perform full retrieval")
        return epoch

    start = latest + timedelta(days=1)
    logger.info(f"Increment retrieval, start date: {start}")
    return start


def log_summary(result: ValidationResult, analysis: AnalysisResult, dataset: List[MergedDayRecord]) -> None:
    """Log a human-readable report of a finished run."""
    stats = result.stats
    completeness = stats.valid_days / stats.total_days * 100 if stats.total_days else 0.0

    logger.info("=" * 60)
    logger.info("Data quality report")
    logger.info(f"  Total days: {stats.total_days}")
    logger.info(f"  Valid days: {stats.valid_days} ({completeness:.2f}%)")
    logger.info(f"  Dataset days: {len(dataset)}")
    for source, days in sorted(stats.exchange_coverage.items()):
        logger.info(f"  {source} coverage: {days} days")
    for kind, entries in result.anomalies.items():
        logger.info(f"  {kind.value}: {len(entries)}")

    price = analysis.price
    if price.highest.value is not None:
        logger.info(f"  Highest close: {price.highest.value:.2f} ({price.highest.exchange}, {price.highest.date})")
        logger.info(f"  Lowest close: {price.lowest.value:.2f} ({price.lowest.exchange}, {price.lowest.date})")
    for source, volatility in sorted(price.volatility.items()):
        logger.info(f"  {source} annualized volatility: {volatility:.2f}%")
    for source, share in sorted(analysis.volume.market_share.items()):
        logger.info(f"  {source} volume share: {share * 100:.2f}%")

    trends = analysis.trends
    for source in sorted(trends.up_days):
        moves = trends.up_days[source] + trends.down_days[source] + trends.flat_days[source]
        if moves:
            logger.info(
                f"  {source} up {trends.up_days[source] / moves * 100:.1f}% / "
                f"down {trends.down_days[source] / moves * 100:.1f}% "
                f"(longest streaks: {trends.max_up_streak[source]} up, {trends.max_down_streak[source]} down)"
            )
    logger.info("=" * 60)


async def run_pipeline(
    mode: str = "full",
    config=None,
    store: Optional[JsonStore] = None,
    manager: Optional[ExchangeManager] = None,
    backup: Optional[BackupService] = None,
    bus: Optional[EventBus] = None,
    end: Optional[datetime] = None
) -> PipelineReport:
    """
    Run one collection pass.

    Args:
        mode: "full" or "increment"
        config: Settings instance (defaults to the global settings)
        store: Document store (defaults to one built from settings)
        manager: ExchangeManager (defaults to the enabled sources)
        backup: BackupService (defaults to one built from settings)
        bus: EventBus receiving progress events (defaults to the global bus)
        end: End of the window (defaults to now, UTC)

    Returns:
        PipelineReport summarizing the run

    Raises:
        ValueError: If mode is unknown
        NoDataError: If the window is empty or no source returned data
    """
    from core.config import settings
    from services.event_bus import bus as default_bus

    config = config or settings
    store = store or JsonStore.from_settings(config)
    bus = bus or default_bus

    start_date = resolve_start_date(mode, store, config.full_mode_epoch)
    end_dt = end or current_utc_datetime()
    start_ms = date_to_timestamp_ms(start_date)
    end_ms = datetime_to_timestamp(end_dt, milliseconds=True)
    end_date = end_dt.date()

    if start_ms >= end_ms:
        await bus.publish(PIPELINE_TOPIC, {"event": "pipeline_failed", "mode": mode, "reason": "up_to_date"})
        raise NoDataError(f"Nothing to fetch: dataset already covers {start_date - timedelta(days=1)}")

    manager = manager or ExchangeManager(config=config)
    async with manager:
        series = await manager.fetch_all(start_ms, end_ms)

    incomplete: List[str] = []
    for source, records in series.items():
        outcome = manager.get_exchange(source).last_outcome
        complete = source not in manager.failed and (outcome is None or not outcome.aborted)
        if not complete:
            incomplete.append(source)
        logger.info(f"Data collection completed for {source}, total {len(records)} records")
        await bus.publish(FETCH_TOPIC, {
            "event": "source_fetched",
            "exchange": source,
            "records": len(records),
            "complete": complete,
        })

    if not any(series.values()):
        await bus.publish(PIPELINE_TOPIC, {"event": "pipeline_failed", "mode": mode, "reason": "no_data"})
        raise NoDataError(f"No source returned data between {start_date} and {end_date}")

    if config.backup_enabled:
        (backup or BackupService.from_settings(config)).backup()

    for source, records in series.items():
        if records:
            store.save_raw(source, records, start_date, end_date)

    merged = merge_exchange_data(series)
    result = DataValidator(ValidationThresholds.from_settings(config)).validate(merged)

    dataset = result.valid
    if mode == "increment":
        dataset = reconcile(store.load_validated(), result.valid)

    store.save_validated(dataset)
    store.save_anomalies(result.anomalies)

    analysis = analyze_data(dataset)
    store.save_analysis(analysis)

    log_summary(result, analysis, dataset)

    report = PipelineReport(
        mode=mode,
        start=start_date,
        end=end_date,
        fetched={source: len(records) for source, records in series.items()},
        incomplete_sources=incomplete,
        total_days=result.stats.total_days,
        valid_days=result.stats.valid_days,
        dataset_days=len(dataset),
        anomaly_counts={kind.value: len(entries) for kind, entries in result.anomalies.items()},
    )
    await bus.publish(PIPELINE_TOPIC, {"event": "pipeline_completed", **report.model_dump(mode="json")})
    return report
