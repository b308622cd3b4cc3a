"""
Exchange Data Merger

Joins the per-source kline series into one record per calendar date.

    {"binance": [d1, d2], "okx": [d2, d3]}
        -> [MergedDayRecord(d1, {binance}), MergedDayRecord(d2, {binance, okx}),
            MergedDayRecord(d3, {okx})]

Only dates that at least one source reported appear in the output; gaps are
never filled. If a source reports the same date twice, its later record wins.
"""

import datetime as dt
from typing import Dict, Iterable, List, Mapping

from core.logging import get_logger
from core.schemas import KlineRecord, MergedDayRecord

logger = get_logger(__name__)


def merge_exchange_data(source_series: Mapping[str, Iterable[KlineRecord]]) -> List[MergedDayRecord]:
    """
    Merge per-source series into per-date records.

    Args:
        source_series: Source name -> candles (any order)

    Returns:
        MergedDayRecord list in strictly ascending, unique date order
    """
    by_date: Dict[dt.date, Dict[str, KlineRecord]] = {}

    for source, records in source_series.items():
        for record in records:
            by_date.setdefault(record.date, {})[source] = record

    merged = [
        MergedDayRecord(date=day, exchanges=by_date[day])
        for day in sorted(by_date)
    ]

    logger.info(f"Merged {len(merged)} days from {len(source_series)} source(s)")
    return merged
