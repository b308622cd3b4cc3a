#!/usr/bin/env python3
"""
Validate the persisted validated dataset.

Checks performed:
- File exists and holds a JSON array
- Every day has a date and at least one source
- Every source record has the required fields with numeric types
- Logical OHLC consistency (high/low vs open/close; non-negative values)
- Strictly ascending, unique dates (oldest -> newest)

Usage examples:
  python scripts/validate_dataset.py
  python scripts/validate_dataset.py --file data/btc_price_validated.json --print-sample 3
"""

import argparse
import json
import os
import sys
from typing import Any, List, Optional, Tuple

from dateutil import parser as dateparser


REQUIRED_FIELDS = [
    "open",
    "high",
    "low",
    "close",
    "volume",
    "trades",
    "quoteVolume",
]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate the persisted validated kline dataset.")
    p.add_argument("--file", default=os.path.join("data", "btc_price_validated.json"),
                   help="Dataset path (default: data/btc_price_validated.json)")
    p.add_argument("--allow-empty", action="store_true", help="Do not fail if the dataset is empty")
    p.add_argument("--print-sample", type=int, default=0, help="Print last N days for visual inspection")
    return p.parse_args(argv)


def is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def validate_record(source: str, record: Any) -> Tuple[bool, str]:
    if not isinstance(record, dict):
        return False, f"{source}: record must be an object"

    # Required fields
    for f in REQUIRED_FIELDS:
        if f not in record:
            return False, f"{source}: missing field: {f}"

    # Types
    for f in ("open", "high", "low", "close", "volume"):
        if not is_number(record[f]):
            return False, f"{source}: {f} must be a number"
    if record["quoteVolume"] is not None and not is_number(record["quoteVolume"]):
        return False, f"{source}: quoteVolume must be a number or null"
    if not isinstance(record["trades"], int) or isinstance(record["trades"], bool):
        return False, f"{source}: trades must be int"

    # Logical OHLC constraints
    high = float(record["high"])
    low = float(record["low"])
    opn = float(record["open"])
    cls = float(record["close"])
    vol = float(record["volume"])
    if high < low:
        return False, f"{source}: high < low ({high} < {low})"
    if high < opn or high < cls:
        return False, f"{source}: high must be >= open/close ({high} < {opn}/{cls})"
    if low > opn or low > cls:
        return False, f"{source}: low must be <= open/close ({low} > {opn}/{cls})"
    if any(v < 0 for v in (opn, high, low, cls, vol)):
        return False, f"{source}: negative values not allowed in OHLC/volume"
    if record["trades"] < 0:
        return False, f"{source}: trades negative"

    return True, ""


def validate_day(day: Any) -> Tuple[bool, str]:
    if not isinstance(day, dict):
        return False, "day must be an object"
    if "date" not in day:
        return False, "missing field: date"

    try:
        dateparser.isoparse(day["date"])
    except (TypeError, ValueError):
        return False, f"invalid date: {day['date']}"

    exchanges = day.get("exchanges")
    if not isinstance(exchanges, dict) or not exchanges:
        return False, "exchanges must be a non-empty object"

    for source, record in exchanges.items():
        ok, msg = validate_record(source, record)
        if not ok:
            return False, msg

    return True, ""


def validate_ordering(days: List[dict]) -> Tuple[bool, str]:
    dates = [dateparser.isoparse(day["date"]).date() for day in days]
    # Strictly ascending (oldest -> newest, no duplicates)
    for i in range(1, len(dates)):
        if dates[i] <= dates[i - 1]:
            return False, f"dates not strictly ascending at index {i}: {dates[i-1]} -> {dates[i]}"
    return True, ""


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    print(f"[Info] Checking: {args.file}")

    try:
        with open(args.file, encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        print(f"[Error] File not found: {args.file}")
        return 2
    except (OSError, json.JSONDecodeError) as e:
        print(f"[Error] Invalid JSON: {e}")
        return 2

    if not isinstance(data, list):
        print("[Error] Dataset is not a list")
        return 2

    if not data:
        if args.allow_empty:
            print("[Warn] Empty dataset (allowed by flag).")
            return 0
        print("[Error] Empty dataset (use --allow-empty to accept).")
        return 1

    for idx, day in enumerate(data):
        ok, msg = validate_day(day)
        if not ok:
            print(f"[Error] Day {idx} invalid: {msg}")
            return 1

    ok, msg = validate_ordering(data)
    if not ok:
        print(f"[Error] Ordering check failed: {msg}")
        return 1

    if args.print_sample > 0:
        sample = data[-args.print_sample:]
        print(f"[Info] Sample ({len(sample)} of {len(data)}):")
        for day in sample:
            print(day)

    print(f"[OK] Validated {len(data)} days ({data[0]['date']} -> {data[-1]['date']})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
