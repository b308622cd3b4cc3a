"""
Paged Kline Fetcher

Drives the cursor loop that walks a time window page by page for one source:

    cursor = start
    while cursor < end:
        page = fetch_page(cursor, end)
        success      -> append, move cursor past the last candle, pace requests
        empty page   -> stop (no more data)
        FetchError   -> count failure; at the ceiling stop with what we have,
                        otherwise rotate endpoint and back off
        other error  -> stop with what we have

Pages are requested strictly one after another. Reaching the failure
ceiling is not an exception: the records accumulated so far are returned
and ``FetchOutcome.aborted`` tells the caller the window is incomplete.
"""

import asyncio
from typing import Awaitable, Callable, List

from pydantic import BaseModel, ConfigDict, Field

from core.endpoint_rotator import EndpointRotator
from core.http_client import FetchError, RetryPolicy
from core.logging import get_logger, log_fetch_progress
from core.schemas import KlinePage, KlineRecord
from core.utils.time import timestamp_ms_to_date_str

PageFetcher = Callable[[int, int], Awaitable[KlinePage]]


class FetchOutcome(BaseModel):
    """
    Result of one paged fetch.

    Attributes:
        records: Candles in chronological order
        cursor: Where the loop stopped (epoch ms)
        end_time: Requested end of the window (epoch ms)
        aborted: True if the failure ceiling was hit or a page raised unexpectedly
    """

    model_config = ConfigDict(frozen=True)

    records: List[KlineRecord] = Field(default_factory=list)
    cursor: int
    end_time: int
    aborted: bool = False

    @property
    def reached_end(self) -> bool:
        return self.cursor >= self.end_time


class PagedKlineFetcher:
    """
    Cursor loop with pacing, failure ceiling and endpoint rotation.

    Attributes:
        exchange: Source name (for logs)
        rotator: The connector's EndpointRotator
        policy: Backoff policy after a failed page
        max_consecutive_failures: Failure ceiling (default 10)
        request_delay: Pause after each successful page (seconds)
        batch_pause_every: Apply ``batch_pause`` each time this many more records accumulated
        batch_pause: Longer rate-limit pause (seconds)
    """

    def __init__(
        self,
        exchange: str,
        rotator: EndpointRotator,
        policy: RetryPolicy,
        max_consecutive_failures: int = 10,
        request_delay: float = 0.3,
        batch_pause_every: int = 100,
        batch_pause: float = 2.0
    ):
        self.exchange = exchange
        self.rotator = rotator
        self.policy = policy
        self.max_consecutive_failures = max_consecutive_failures
        self.request_delay = request_delay
        self.batch_pause_every = batch_pause_every
        self.batch_pause = batch_pause
        self.logger = get_logger(__name__)
        self._sleep = asyncio.sleep

    @classmethod
    def from_settings(cls, exchange: str, rotator: EndpointRotator, config=None) -> "PagedKlineFetcher":
        from core.config import settings

        config = config or settings
        return cls(
            exchange,
            rotator,
            RetryPolicy.from_settings(config),
            max_consecutive_failures=config.max_consecutive_failures,
            request_delay=config.request_delay,
            batch_pause_every=config.batch_pause_every,
            batch_pause=config.batch_pause,
        )

    async def run(self, fetch_page: PageFetcher, start_time: int, end_time: int) -> FetchOutcome:
        """
        Fetch every page in [start_time, end_time).

        Args:
            fetch_page: Coroutine returning one KlinePage starting at a cursor
            start_time: Window start (epoch ms)
            end_time: Window end (epoch ms)

        Returns:
            FetchOutcome with all accumulated records
        """
        records: List[KlineRecord] = []
        cursor = start_time
        failures = 0
        next_pause_at = self.batch_pause_every
        aborted = False

        while cursor < end_time:
            try:
                page = await fetch_page(cursor, end_time)
            except FetchError as e:
                failures += 1
                self.logger.error(
                    f"Failed to fetch {self.exchange} page at {timestamp_ms_to_date_str(cursor)}: {e} "
                    f"({failures}/{self.max_consecutive_failures} consecutive failures)"
                )
                if failures >= self.max_consecutive_failures:
                    self.logger.error(f"Too many consecutive {self.exchange} failures, stopping retrieval")
                    aborted = True
                    break

                self.rotator.rotate()
                delay = self.policy.backoff_delay(failures)
                self.logger.warning(
                    f"Switched {self.exchange} endpoint to {self.rotator.current()}, "
                    f"waiting {delay:.1f}s before retry"
                )
                await self._sleep(delay)
                continue
            except Exception as e:
                self.logger.error(
                    f"Unexpected error on {self.exchange} page at {timestamp_ms_to_date_str(cursor)}, "
                    f"stopping retrieval: {e!r}",
                    exc_info=True
                )
                aborted = True
                break

            if page.next_cursor is None or page.next_cursor <= cursor:
                records.extend(page.records)
                if not page.records:
                    self.logger.info(f"No more {self.exchange} data")
                else:
                    self.logger.warning(f"{self.exchange} cursor did not advance, stopping retrieval")
                break

            # A window with no candles that still advances the cursor (source listed later)
            if not page.records:
                self.logger.debug(
                    f"No {self.exchange} candles before {timestamp_ms_to_date_str(page.next_cursor)}, skipping ahead"
                )

            records.extend(page.records)
            cursor = page.next_cursor
            failures = 0

            progress = min(100.0, (cursor - start_time) / max(end_time - start_time, 1) * 100)
            log_fetch_progress(self.exchange, progress, timestamp_ms_to_date_str(min(cursor, end_time)), len(records))

            await self._sleep(self.request_delay)

            if self.batch_pause_every and len(records) >= next_pause_at:
                self.logger.debug(f"Request limit protection delay for {self.exchange}")
                await self._sleep(self.batch_pause)
                next_pause_at = (len(records) // self.batch_pause_every + 1) * self.batch_pause_every

        outcome = FetchOutcome(records=records, cursor=cursor, end_time=end_time, aborted=aborted)
        if not aborted:
            self.logger.info(f"Fetched {len(records)} {self.exchange} klines")
        else:
            self.logger.warning(
                f"Fetched {len(records)} {self.exchange} klines, stopped early at "
                f"{timestamp_ms_to_date_str(cursor)} (window incomplete)"
            )
        return outcome
