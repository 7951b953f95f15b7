"""
Real-time Solana ingestion: slotSubscribe WebSocket → slot channel → fetch → store.

Two cooperating tasks joined by an unbounded SlotChannel:

- Watcher: one WebSocket connection, one slotSubscribe request, then every
  slotNotification root is sent to the channel. No auto-reconnect; losing
  the connection ends the watcher.
- Processor: receives slots in FIFO order, fetches each with retry (no lock
  held), repairs the one-time seam between the historical snapshot and the
  first live slot, then appends under the write lock.

Usage: build a SharedStore from load_transaction_store(), then
`await start_streamer(shared, fetcher, ws_url)`.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pyarrow as pa
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from solagg.core.exceptions import RemoteError, TransportClosed
from solagg.ingestion.channel import SlotChannel
from solagg.solagg_logging import get_logger
from solagg.solana_listener.fetcher import SolFetcher
from solagg.store.shared import SharedStore

logger = get_logger(__name__)

SLOT_SUBSCRIBE_MSG = {"jsonrpc": "2.0", "id": "1", "method": "slotSubscribe"}

DEFAULT_WS_PING_INTERVAL = 30.0
DEFAULT_WS_PING_TIMEOUT = 10.0
_WS_CLOSE_TIMEOUT = 5.0

# Siblings still running after start_streamer returns; kept referenced until done
_background_tasks: set[asyncio.Task[None]] = set()


def parse_slot_notification(msg: dict[str, Any]) -> int | None:
    """Return params.result.root of a slotNotification, or None if absent/invalid."""
    params = msg.get("params")
    if not isinstance(params, dict):
        return None
    result = params.get("result")
    if not isinstance(result, dict):
        return None
    root = result.get("root")
    if isinstance(root, bool) or not isinstance(root, int) or root < 0:
        return None
    return root


async def _handle_message(raw: str | bytes, channel: SlotChannel) -> None:
    """Route one inbound message; malformed or unknown shapes are logged and ignored."""
    try:
        msg = json.loads(raw)
    except ValueError:
        logger.warning("stream_message_malformed", raw=str(raw)[:200])
        return
    if not isinstance(msg, dict):
        logger.warning("stream_message_malformed", raw=str(raw)[:200])
        return

    method = msg.get("method")
    if method == "slotNotification":
        slot = parse_slot_notification(msg)
        if slot is None:
            logger.warning("stream_slot_notification_without_root", raw=str(raw)[:200])
            return
        logger.debug("stream_slot_notification", slot=slot)
        await channel.send(slot)
    elif method == "accountNotification":
        params = msg.get("params") or {}
        value = (params.get("result") or {}).get("value") if isinstance(params, dict) else None
        logger.debug("stream_account_notification", value=value)
    elif "result" in msg and "error" not in msg:
        logger.info("stream_subscribed", subscription_id=msg.get("result"))
    else:
        logger.debug("stream_message_ignored", method=method)


async def _receive_loop(ws: Any, channel: SlotChannel) -> None:
    """Read until the peer closes; an orderly close surfaces as TransportClosed."""
    while True:
        try:
            raw = await ws.recv()
        except ConnectionClosedOK as e:
            raise TransportClosed("subscription closed by peer") from e
        await _handle_message(raw, channel)


async def watch_slot_notifications(
    ws_url: str,
    channel: SlotChannel,
    *,
    connect: Callable[..., Any] = websockets.connect,
    ping_interval: float | None = DEFAULT_WS_PING_INTERVAL,
    ping_timeout: float | None = DEFAULT_WS_PING_TIMEOUT,
) -> None:
    """
    Watcher task: subscribe to slot finalization and feed slots to the channel.

    Returns normally when the peer closes the connection. Raises RemoteError
    on transport failure and ChannelClosed if the processor has gone away.
    The channel is closed on every exit path so the processor can drain and stop.
    """
    try:
        logger.info("stream_connecting", url=ws_url)
        async with connect(
            ws_url,
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            close_timeout=_WS_CLOSE_TIMEOUT,
        ) as ws:
            await ws.send(json.dumps(SLOT_SUBSCRIBE_MSG))
            logger.info("stream_subscribe_sent", method=SLOT_SUBSCRIBE_MSG["method"])
            await _receive_loop(ws, channel)
    except TransportClosed:
        logger.info("stream_closed", url=ws_url)
    except ConnectionClosed as e:
        logger.warning("stream_disconnected", code=getattr(e.rcvd, "code", None), error=str(e))
        raise RemoteError(f"subscription connection lost: {e}") from e
    except (OSError, WebSocketException) as e:
        logger.error("stream_transport_error", error=str(e))
        raise RemoteError(f"subscription transport error: {e}") from e
    finally:
        await channel.close()
        logger.info("stream_watcher_exited")


async def _process_slot(shared: SharedStore, fetcher: SolFetcher, slot: int) -> None:
    batch = await fetcher.fetch_transactions_as_batch(slot, retrying=True)

    async with shared.read() as store:
        current_slot = store.current_slot
        init_slot = store.init_slot

    # The first live notification may land a few slots past the snapshot cursor.
    # Only that seam is repaired; once the cursor moves the check is a no-op.
    gap_batches: list[pa.RecordBatch] = []
    if current_slot == init_slot and slot > current_slot + 1:
        for missing in range(current_slot + 1, slot):
            logger.info("init_slot_gap_backfill", init_slot=init_slot, slot=missing)
            gap_batches.append(await fetcher.fetch_transactions_as_batch(missing, retrying=True))

    async with shared.write() as store:
        for gap_batch in gap_batches:
            store.append_batch(gap_batch)
        store.current_slot = slot
        store.append_batch(batch)
    logger.debug("slot_appended", slot=slot, rows=batch.num_rows, backfilled=len(gap_batches))


async def process_slot_notifications(
    shared: SharedStore,
    fetcher: SolFetcher,
    channel: SlotChannel,
) -> None:
    """
    Processor task: consume slots until the watcher closes the channel.

    FetchExhausted propagates and ends the task; the receiver end is closed
    on exit so the watcher fails on its next send instead of buffering forever.
    """
    processed = 0
    try:
        while True:
            slot = await channel.recv()
            if slot is None:
                break
            await _process_slot(shared, fetcher, slot)
            processed += 1
    finally:
        channel.close_receiver()
        logger.info("stream_processor_exited", processed=processed)


@dataclass
class StreamOutcome:
    """What start_streamer observed: finished tasks and their errors (None if clean)."""

    finished: dict[str, BaseException | None] = field(default_factory=dict)
    pending: list[asyncio.Task[None]] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(err is not None for err in self.finished.values())


def _log_late_exit(task: asyncio.Task[None]) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        logger.info("streamer_task_cancelled", task=task.get_name())
        return
    err = task.exception()
    if err is not None:
        logger.error("streamer_task_failed", task=task.get_name(), error=str(err))
    else:
        logger.info("streamer_task_exited", task=task.get_name())


async def start_streamer(
    shared: SharedStore,
    fetcher: SolFetcher,
    ws_url: str,
    *,
    connect: Callable[..., Any] = websockets.connect,
) -> StreamOutcome:
    """
    Run watcher and processor jointly until either one terminates.

    The sibling is not cancelled: it is returned in StreamOutcome.pending
    and its eventual exit is logged. Channel closure on either side makes
    it wind down on its own.
    """
    channel = SlotChannel()
    watcher = asyncio.create_task(
        watch_slot_notifications(ws_url, channel, connect=connect),
        name="slot-watcher",
    )
    processor = asyncio.create_task(
        process_slot_notifications(shared, fetcher, channel),
        name="slot-processor",
    )
    done, pending = await asyncio.wait({watcher, processor}, return_when=asyncio.FIRST_COMPLETED)

    outcome = StreamOutcome()
    for task in (watcher, processor):
        if task not in done:
            continue
        err = asyncio.CancelledError() if task.cancelled() else task.exception()
        outcome.finished[task.get_name()] = err
        if err is not None:
            logger.error("streamer_task_failed", task=task.get_name(), error=str(err))
        else:
            logger.info("streamer_task_exited", task=task.get_name())
    for task in pending:
        _background_tasks.add(task)
        task.add_done_callback(_log_late_exit)
        outcome.pending.append(task)
    logger.info(
        "streamer_finished",
        finished=sorted(outcome.finished),
        still_running=[t.get_name() for t in outcome.pending],
    )
    return outcome
