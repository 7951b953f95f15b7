"""
SharedStore — the store plus the lock that guards it.

Handed to both the ingestion side and the query side. Read and write
acquisition are explicit at call sites:

    async with shared.read() as store:
        ...
    async with shared.write() as store:
        store.append_batch(batch)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from solagg.store.rwlock import ReadWriteLock
from solagg.store.transaction_store import TransactionStore


class SharedStore:
    """Capability object: one TransactionStore guarded by one ReadWriteLock."""

    def __init__(self, store: TransactionStore) -> None:
        self._store = store
        self._lock = ReadWriteLock()

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock

    @asynccontextmanager
    async def read(self) -> AsyncIterator[TransactionStore]:
        async with self._lock.read():
            yield self._store

    @asynccontextmanager
    async def write(self) -> AsyncIterator[TransactionStore]:
        async with self._lock.write():
            yield self._store

    async def query_to_json(self, sql: str, table_name: str) -> str:
        """
        Run one query under the read lock; DuckDB executes in the default
        executor so the event loop keeps serving while it runs.
        """
        loop = asyncio.get_running_loop()
        async with self.read() as store:
            return await loop.run_in_executor(None, store.query_to_json, sql, table_name)

    async def status(self) -> dict[str, Any]:
        """Cursor and size snapshot for operators."""
        async with self.read() as store:
            return {
                "current_slot": store.current_slot,
                "init_slot": store.init_slot,
                "current_epoch": store.current_epoch,
                "mocked": store.mocked,
                "batch_count": store.batch_count(),
                "row_count": store.row_count(),
            }
