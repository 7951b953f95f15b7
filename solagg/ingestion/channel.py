"""
SlotChannel — unbounded single-producer/single-consumer queue of slot numbers.

Unlike asyncio.Queue it has an explicit close on both ends: the producer
closing ends the consumer once the buffer is drained, and the consumer
closing makes the next send fail with ChannelClosed.
"""

from __future__ import annotations

import asyncio
from collections import deque

from solagg.core.exceptions import ChannelClosed


class SlotChannel:
    """Unbounded FIFO of slots between the watcher and the processor."""

    def __init__(self) -> None:
        self._deque: deque[int] = deque()
        self._not_empty = asyncio.Condition()
        self._sender_closed = False
        self._receiver_closed = False

    def qsize(self) -> int:
        return len(self._deque)

    def empty(self) -> bool:
        return len(self._deque) == 0

    @property
    def sender_closed(self) -> bool:
        return self._sender_closed

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed

    async def send(self, slot: int) -> None:
        """Enqueue a slot; raises ChannelClosed if either end has been closed."""
        if self._receiver_closed:
            raise ChannelClosed(f"failed to send slot {slot}, receiver dropped")
        if self._sender_closed:
            raise ChannelClosed(f"failed to send slot {slot}, channel already closed")
        async with self._not_empty:
            self._deque.append(slot)
            self._not_empty.notify(1)

    async def recv(self) -> int | None:
        """Dequeue the next slot in arrival order; None once closed and drained."""
        async with self._not_empty:
            while not self._deque and not self._sender_closed:
                await self._not_empty.wait()
            if self._deque:
                return self._deque.popleft()
            return None

    async def close(self) -> None:
        """Producer side: no more slots will be sent."""
        async with self._not_empty:
            self._sender_closed = True
            self._not_empty.notify_all()

    def close_receiver(self) -> None:
        """Consumer side: drop buffered slots and refuse further sends."""
        self._receiver_closed = True
        self._deque.clear()
