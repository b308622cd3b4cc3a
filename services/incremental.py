"""
Incremental Reconciliation

Combines the persisted validated dataset with a freshly validated batch.
Records are keyed by date; an incoming record replaces the existing one for
the same date. Reconciling the same batch twice gives the same result.
"""

import datetime as dt
from typing import Dict, Iterable, List, Optional

from core.logging import get_logger
from core.schemas import MergedDayRecord

logger = get_logger(__name__)


def reconcile(
    existing: Optional[Iterable[MergedDayRecord]],
    incoming: Iterable[MergedDayRecord]
) -> List[MergedDayRecord]:
    """
    Date-keyed union of ``existing`` and ``incoming``, ascending by date.

    Args:
        existing: Persisted dataset, or None when there is none
        incoming: Newly validated days (win on conflicts)

    Returns:
        Reconciled dataset without duplicate dates
    """
    incoming = list(incoming)
    if existing is None:
        return sorted(incoming, key=lambda record: record.date)

    index: Dict[dt.date, MergedDayRecord] = {record.date: record for record in existing}
    before = len(index)

    replaced = 0
    for record in incoming:
        if record.date in index:
            replaced += 1
        index[record.date] = record

    logger.info(
        f"Reconciled {len(incoming)} new day(s) with {before} existing "
        f"({replaced} replaced, {len(index) - before} added)"
    )
    return [index[day] for day in sorted(index)]
