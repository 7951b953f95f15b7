"""
Historical loader — populate the store once at startup.

Computes the slot range (current epoch, or a short bootstrap window in
mocked mode), fetches it in windows of rps_limit slots with every slot of a
window in flight at once, and paces windows so the aggregate request rate
stays at or below rps_limit per second. Any failure aborts the whole load.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import pyarrow as pa

from solagg.config.settings import AggregatorConfig
from solagg.core.exceptions import LoadFailed, RemoteError
from solagg.solagg_logging import get_logger
from solagg.solana_listener.fetcher import SolFetcher
from solagg.solana_listener.models import EpochCursor
from solagg.store.transaction_store import TransactionStore

logger = get_logger(__name__)


def historical_start_slot(cursor: EpochCursor, config: AggregatorConfig, mocked: bool) -> int:
    """First slot to load: epoch start, or current_slot - bootstrap_len (clamped at 0) when mocked."""
    if mocked:
        return max(0, cursor.current_slot - config.bootstrap_len)
    return cursor.start_slot


def slot_windows(start_slot: int, end_slot: int, window_len: int) -> list[list[int]]:
    """Partition the inclusive range [start_slot, end_slot] into windows of window_len slots."""
    if window_len <= 0:
        raise ValueError("window_len must be positive")
    slots = list(range(start_slot, end_slot + 1))
    return [slots[i : i + window_len] for i in range(0, len(slots), window_len)]


async def _fetch_window(fetcher: SolFetcher, window: list[int]) -> list[pa.RecordBatch]:
    """Fetch all slots of one window concurrently (no retry); first failure in slot order wins."""
    results = await asyncio.gather(
        *(fetcher.fetch_transactions_as_batch(slot, retrying=False) for slot in window),
        return_exceptions=True,
    )
    batches: list[pa.RecordBatch] = []
    for slot, result in zip(window, results):
        if isinstance(result, Exception):
            raise LoadFailed(f"historical fetch failed for slot {slot}: {result}", slot=slot) from result
        if isinstance(result, BaseException):
            raise result
        batches.append(result)
    return batches


async def load_transaction_store(
    fetcher: SolFetcher,
    config: AggregatorConfig | None = None,
    *,
    mocked: bool,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> TransactionStore:
    """
    Build the startup TransactionStore.

    Args:
        fetcher: Fetch client used in non-retrying mode.
        config: rps_limit, bootstrap_len and pace interval; defaults to the fetcher's.
        mocked: Load only the bootstrap window instead of the whole epoch.
        sleep: Awaitable sleep for window pacing; injectable for tests.
        clock: Monotonic clock for window pacing; injectable for tests.

    Raises:
        LoadFailed: if the epoch query or any slot fetch fails.
    """
    config = config or fetcher.config
    try:
        cursor = await fetcher.get_current_epoch()
    except RemoteError as e:
        raise LoadFailed(f"could not query current epoch: {e}") from e

    current_slot = cursor.current_slot
    start_slot = historical_start_slot(cursor, config, mocked)
    windows = slot_windows(start_slot, current_slot, config.rps_limit)
    logger.info(
        "historical_load_started",
        epoch=cursor.epoch,
        start_slot=start_slot,
        current_slot=current_slot,
        windows=len(windows),
        mocked=mocked,
    )

    tx_batches: list[pa.RecordBatch] = []
    timer = clock()
    for index, window in enumerate(windows, start=1):
        tx_batches.extend(await _fetch_window(fetcher, window))
        elapsed = clock() - timer
        logger.debug(
            "historical_window_loaded",
            window=index,
            slots=len(window),
            elapsed_sec=round(elapsed, 3),
        )
        # mini rate limiting: a window may not start sooner than pace_interval after the last
        if index < len(windows) and elapsed < config.pace_interval_sec:
            await sleep(config.pace_interval_sec - elapsed)
        timer = clock()

    store = TransactionStore(
        tx_batches,
        current_slot=current_slot,
        init_slot=current_slot,
        current_epoch=cursor.epoch,
        mocked=mocked,
    )
    logger.info(
        "historical_load_finished",
        batches=store.batch_count(),
        rows=store.row_count(),
        current_slot=current_slot,
    )
    return store
