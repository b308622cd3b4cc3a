#!/usr/bin/env python3
"""
Collector start script - runs one collection pass

Usage:
    python start.py --mode full
    python start.py --mode increment
    python start.py -m increment --end 2024-06-30 --log-level DEBUG

Exit codes:
    0  Run completed and documents were written
    1  No source returned data (nothing written)
    2  Invalid configuration or arguments
"""

import argparse
import asyncio
import sys
from datetime import timezone
from typing import List, Optional

from dateutil import parser as dateparser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Collect, merge, validate and analyze daily klines.")
    p.add_argument("--mode", "-m", choices=["full", "increment"], default="full",
                   help="Retrieval mode: full or increment (default: full)")
    p.add_argument("--end", default=None,
                   help="End of the fetch window, ISO date or datetime in UTC (default: now)")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")
    return p.parse_args(argv)


async def run_with_event_log(mode: str, config, end):
    """Run the pipeline and log every event it published once it finishes."""
    from core.logging import get_logger
    from services.event_bus import FETCH_TOPIC, PIPELINE_TOPIC, bus, drain
    from services.pipeline import run_pipeline

    event_logger = get_logger("events")
    queues = {topic: await bus.subscribe(topic) for topic in (FETCH_TOPIC, PIPELINE_TOPIC)}
    try:
        return await run_pipeline(mode, config=config, end=end)
    finally:
        for topic, queue in queues.items():
            for event in drain(queue):
                event_logger.debug(f"[{topic}] {event}")
            await bus.unsubscribe(topic, queue)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    from core.config import settings, validate_configuration
    from core.logging import logger, set_log_level
    from services.pipeline import NoDataError

    if args.log_level:
        set_log_level(args.log_level)

    try:
        validate_configuration(settings)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    end = None
    if args.end:
        try:
            end = dateparser.isoparse(args.end)
        except ValueError as e:
            logger.error(f"Invalid --end value '{args.end}': {e}")
            return 2
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)

    try:
        report = asyncio.run(run_with_event_log(args.mode, settings, end))
    except NoDataError as e:
        logger.critical(f"Data collection failed: {e}")
        return 1

    logger.info(
        f"Data collection finished ({report.mode}): {report.dataset_days} days in dataset, "
        f"{report.valid_days}/{report.total_days} new days valid"
    )
    if report.incomplete_sources:
        logger.warning(f"Incomplete sources: {', '.join(report.incomplete_sources)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
