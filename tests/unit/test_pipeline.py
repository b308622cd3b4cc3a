"""
Unit Tests for the Collection Pipeline

These tests run the pipeline end to end against in-memory sources and a
temporary data directory, verifying:
- Start date resolution for full and increment modes
- Documents written by a full run
- Reconciliation with the persisted dataset in increment mode
- NoDataError when every source is empty (nothing written)
- Progress events on the event bus

Run with:
    pytest tests/unit/test_pipeline.py -v
"""

from datetime import date, datetime, timedelta, timezone
from typing import List

import pytest

from core.config import Settings
from core.exchange_interface import ExchangeInterface
from core.exchange_manager import ExchangeManager
from core.paginator import FetchOutcome
from core.schemas import KlineRecord, MergedDayRecord
from core.utils.time import date_to_timestamp_ms
from services.event_bus import FETCH_TOPIC, PIPELINE_TOPIC, EventBus
from services.pipeline import NoDataError, resolve_start_date, run_pipeline
from storage.json_store import JsonStore

END = datetime(2024, 1, 10, tzinfo=timezone.utc)


class RaisingExchange(ExchangeInterface):
    """Fails every fetch with an unexpected error"""

    def __init__(self, name: str):
        self.name = name

    async def fetch_series(self, start_time: int, end_time: int) -> List[KlineRecord]:
        raise RuntimeError("connector crashed")


class StaticExchange(ExchangeInterface):
    """Returns a fixed series and remembers the requested window"""

    def __init__(self, name: str, records: List[KlineRecord], aborted: bool = False):
        self.name = name
        self.records = records
        self.aborted = aborted
        self.windows = []

    async def fetch_series(self, start_time: int, end_time: int) -> List[KlineRecord]:
        self.windows.append((start_time, end_time))
        self.last_outcome = FetchOutcome(
            records=self.records, cursor=end_time, end_time=end_time, aborted=self.aborted
        )
        return list(self.records)


def kline(day: date, close: float = 100.0) -> KlineRecord:
    return KlineRecord(date=day, open=close, high=close, low=close, close=close, volume=10.0, trades=1)


def days(first: date, count: int) -> List[date]:
    return [first + timedelta(days=i) for i in range(count)]


@pytest.fixture
def config(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        backup_dir=str(tmp_path / "backups"),
        full_mode_epoch=date(2024, 1, 1),
    )


@pytest.fixture
def store(config):
    return JsonStore.from_settings(config)


def make_manager(**series) -> ExchangeManager:
    return ExchangeManager(exchanges={
        name: StaticExchange(name, records) for name, records in series.items()
    })


class TestResolveStartDate:
    """Tests for resolve_start_date"""

    def test_full_mode_uses_epoch(self, store):
        assert resolve_start_date("full", store, date(2017, 7, 1)) == date(2017, 7, 1)

    def test_increment_starts_day_after_latest(self, store):
        store.save_validated([MergedDayRecord(date=date(2024, 1, 5), exchanges={"binance": kline(date(2024, 1, 5))})])

        assert resolve_start_date("increment", store, date(2017, 7, 1)) == date(2024, 1, 6)

    def test_increment_without_dataset_uses_epoch(self, store):
        assert resolve_start_date("increment", store, date(2017, 7, 1)) == date(2017, 7, 1)

    def test_full_mode_ignores_existing_dataset(self, store):
        store.save_validated([MergedDayRecord(date=date(2024, 1, 5), exchanges={"binance": kline(date(2024, 1, 5))})])

        assert resolve_start_date("full", store, date(2017, 7, 1)) == date(2017, 7, 1)

    def test_unknown_mode_rejected(self, store):
        with pytest.raises(ValueError, match="Invalid mode"):
            resolve_start_date("partial", store, date(2017, 7, 1))


class TestRunPipeline:
    """Tests for run_pipeline"""

    @pytest.mark.asyncio
    async def test_full_run_writes_all_documents(self, config, store):
        manager = make_manager(
            binance=[kline(d) for d in days(date(2024, 1, 1), 9)],
            okx=[kline(d) for d in days(date(2024, 1, 3), 7)],
        )

        report = await run_pipeline("full", config=config, store=store, manager=manager, bus=EventBus(), end=END)

        binance = manager.get_exchange("binance")
        assert binance.windows == [(date_to_timestamp_ms(date(2024, 1, 1)), date_to_timestamp_ms(date(2024, 1, 10)))]

        assert report.fetched == {"binance": 9, "okx": 7}
        assert report.total_days == 9
        assert report.valid_days == 9
        assert report.dataset_days == 9

        assert store.raw_path("binance", date(2024, 1, 1), date(2024, 1, 10)).exists()
        assert store.raw_path("okx", date(2024, 1, 1), date(2024, 1, 10)).exists()
        assert [d.date for d in store.load_validated()] == days(date(2024, 1, 1), 9)
        assert store.load_anomalies() is not None
        assert store.load_analysis().volume.total == {"binance": 90.0, "okx": 70.0}

    @pytest.mark.asyncio
    async def test_anomalous_days_excluded_from_dataset(self, config, store):
        manager = make_manager(
            binance=[kline(date(2024, 1, 1)), kline(date(2024, 1, 2))],
            okx=[kline(date(2024, 1, 1)), kline(date(2024, 1, 2), close=110.0)],
        )

        report = await run_pipeline("full", config=config, store=store, manager=manager, bus=EventBus(), end=END)

        assert report.anomaly_counts["price_deviation"] == 1
        assert [d.date for d in store.load_validated()] == [date(2024, 1, 1)]

    @pytest.mark.asyncio
    async def test_increment_reconciles_with_existing_dataset(self, config, store):
        existing = [
            MergedDayRecord(date=d, exchanges={"binance": kline(d)})
            for d in days(date(2024, 1, 1), 5)
        ]
        store.save_validated(existing)
        manager = make_manager(binance=[kline(d) for d in days(date(2024, 1, 6), 4)])

        report = await run_pipeline("increment", config=config, store=store, manager=manager, bus=EventBus(), end=END)

        assert manager.get_exchange("binance").windows[0][0] == date_to_timestamp_ms(date(2024, 1, 6))
        assert report.dataset_days == 9
        assert [d.date for d in store.load_validated()] == days(date(2024, 1, 1), 9)

    @pytest.mark.asyncio
    async def test_no_data_raises_and_writes_nothing(self, config, store):
        manager = make_manager(binance=[], okx=[])

        with pytest.raises(NoDataError):
            await run_pipeline("full", config=config, store=store, manager=manager, bus=EventBus(), end=END)

        assert not store.data_dir.exists()

    @pytest.mark.asyncio
    async def test_up_to_date_dataset_raises_no_data(self, config, store):
        store.save_validated([MergedDayRecord(date=date(2024, 1, 9), exchanges={"binance": kline(date(2024, 1, 9))})])
        manager = make_manager(binance=[kline(date(2024, 1, 10))])

        with pytest.raises(NoDataError):
            await run_pipeline("increment", config=config, store=store, manager=manager, bus=EventBus(), end=END)

        assert manager.get_exchange("binance").windows == []

    @pytest.mark.asyncio
    async def test_backup_taken_before_overwrite(self, config, store, tmp_path):
        store.save_validated([MergedDayRecord(date=date(2024, 1, 1), exchanges={"binance": kline(date(2024, 1, 1))})])
        manager = make_manager(binance=[kline(d) for d in days(date(2024, 1, 1), 3)])

        await run_pipeline("full", config=config, store=store, manager=manager, bus=EventBus(), end=END)

        snapshots = list((tmp_path / "backups").iterdir())
        assert len(snapshots) == 1
        assert (snapshots[0] / "btc_price_validated.json").exists()

    @pytest.mark.asyncio
    async def test_publishes_fetch_and_pipeline_events(self, config, store):
        bus = EventBus()
        fetch_events = await bus.subscribe(FETCH_TOPIC)
        pipeline_events = await bus.subscribe(PIPELINE_TOPIC)
        manager = ExchangeManager(exchanges={
            "binance": StaticExchange("binance", [kline(date(2024, 1, 1))]),
            "okx": StaticExchange("okx", [kline(date(2024, 1, 1))], aborted=True),
        })

        report = await run_pipeline("full", config=config, store=store, manager=manager, bus=bus, end=END)

        fetched = {}
        while not fetch_events.empty():
            event = fetch_events.get_nowait()
            fetched[event["exchange"]] = event["complete"]
        assert fetched == {"binance": True, "okx": False}
        assert report.incomplete_sources == ["okx"]

        completed = pipeline_events.get_nowait()
        assert completed["event"] == "pipeline_completed"
        assert completed["valid_days"] == 1

    @pytest.mark.asyncio
    async def test_source_that_raised_is_reported_incomplete(self, config, store):
        bus = EventBus()
        fetch_events = await bus.subscribe(FETCH_TOPIC)
        manager = ExchangeManager(exchanges={
            "binance": StaticExchange("binance", [kline(date(2024, 1, 1))]),
            "okx": RaisingExchange("okx"),
        })

        report = await run_pipeline("full", config=config, store=store, manager=manager, bus=bus, end=END)

        fetched = {}
        while not fetch_events.empty():
            event = fetch_events.get_nowait()
            fetched[event["exchange"]] = (event["records"], event["complete"])
        assert fetched == {"binance": (1, True), "okx": (0, False)}
        assert report.incomplete_sources == ["okx"]
