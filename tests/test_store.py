"""
Pytest tests for TransactionStore, SharedStore and the reader-writer lock.
"""

from __future__ import annotations

import asyncio
import json

import pyarrow as pa
import pytest

from solagg.core.exceptions import QueryError
from solagg.solana_listener.models import TRANSACTION_SCHEMA, empty_batch, records_to_batch
from solagg.store.rwlock import ReadWriteLock
from solagg.store.transaction_store import TransactionStore, batches_to_json
from tests.helpers import make_records


def test_count_query(seeded_store):
    """count over 25 empty batches and 15 rows is exactly 15."""
    body = seeded_store.query_to_json("SELECT count(1) as count FROM transactions", "transactions")
    assert '"count":15' in body
    assert json.loads(body) == [{"count": 15}]


def test_day_filter_by_date_cast(seeded_store):
    """block_time cast to DATE matches all 15 rows dated 2024-07-07."""
    sql = "SELECT * FROM transactions WHERE cast(block_time as DATE) = '2024-07-07'"
    rows = json.loads(seeded_store.query_to_json(sql, "transactions"))
    assert len(rows) == 15
    assert rows[0]["block_time"] == "2024-07-07T12:00:00"
    assert set(rows[0]) == set(TRANSACTION_SCHEMA.names)


def test_empty_result_is_empty_array(seeded_store):
    sql = "SELECT * FROM transactions WHERE signature = 'nope'"
    assert seeded_store.query_to_json(sql, "transactions") == "[]"


def test_query_on_empty_store():
    """A store with no batches still exposes the table with its schema."""
    store = TransactionStore([], current_slot=1)
    assert store.query_to_json("SELECT count(*) AS n FROM transactions", "transactions") == '[{"n":0}]'
    assert store.init_slot == 1


def test_invalid_sql_is_query_error(seeded_store):
    """Bad SQL raises QueryError and leaves the store untouched."""
    with pytest.raises(QueryError):
        seeded_store.query("SELEC nonsense", "transactions")
    with pytest.raises(QueryError):
        seeded_store.query("SELECT * FROM no_such_table", "transactions")
    assert seeded_store.row_count() == 15
    assert seeded_store.batch_count() == 26


def test_custom_table_name(seeded_store):
    body = seeded_store.query_to_json("SELECT max(fee) AS fee FROM txs", "txs")
    assert json.loads(body) == [{"fee": 5_014}]


def test_append_rejects_foreign_schema(seeded_store):
    """Batches that do not match the transaction schema are refused."""
    foreign = pa.RecordBatch.from_pydict({"signature": ["x"]})
    with pytest.raises(ValueError, match="schema"):
        seeded_store.append_batch(foreign)
    assert seeded_store.batch_count() == 26


def test_append_keeps_ingestion_order(seeded_store):
    """Batches are kept in append order, not slot order."""
    seeded_store.append_batch(records_to_batch(make_records(1, slot=2_000)))
    seeded_store.append_batch(records_to_batch(make_records(1, slot=1_500)))
    seeded_store.append_batch(empty_batch())
    slots = [b.column("slot")[0].as_py() for b in seeded_store.tx_batches[-3:-1]]
    assert slots == [2_000, 1_500]
    assert seeded_store.batch_count() == 29


def test_batches_to_json_encodes_scalars():
    batch = records_to_batch(make_records(2, slot=7, block_time=None))
    rows = json.loads(batches_to_json([batch]))
    assert rows[1] == {
        "signature": "sig-7-1",
        "slot": 7,
        "err": None,
        "block_time": None,
        "fee": 5_001,
        "sender": "sender-1",
        "receiver": "receiver-1",
        "amount": 500,
    }


def test_shared_store_query_and_status(shared_store):
    """SharedStore runs queries under the read lock and reports cursor state."""

    async def scenario():
        body = await shared_store.query_to_json("SELECT count(1) as count FROM transactions", "transactions")
        status = await shared_store.status()
        return body, status

    body, status = asyncio.run(scenario())
    assert json.loads(body) == [{"count": 15}]
    assert status == {
        "current_slot": 1_025,
        "init_slot": 1_025,
        "current_epoch": 720,
        "mocked": True,
        "batch_count": 26,
        "row_count": 15,
    }


def test_queries_and_appends_interleave(shared_store):
    """Concurrent queries during appends each see a whole number of batches."""

    async def writer():
        for i in range(10):
            async with shared_store.write() as store:
                store.append_batch(records_to_batch(make_records(3, slot=2_000 + i)))
                store.current_slot = 2_000 + i
            await asyncio.sleep(0)

    async def reader():
        counts = []
        for _ in range(10):
            body = await shared_store.query_to_json("SELECT count(1) as count FROM transactions", "transactions")
            counts.append(json.loads(body)[0]["count"])
        return counts

    async def scenario():
        _, counts = await asyncio.gather(writer(), reader())
        return counts

    counts = asyncio.run(scenario())
    assert all((c - 15) % 3 == 0 for c in counts)
    assert counts == sorted(counts)
    assert shared_store.lock.readers == 0
    assert not shared_store.lock.write_locked


def test_rwlock_readers_share_writer_excludes():
    """Readers overlap; a queued writer blocks later readers until it has run."""
    lock = ReadWriteLock()
    events: list[str] = []

    async def scenario():
        first_in = asyncio.Event()
        release_first = asyncio.Event()

        async def first_reader():
            async with lock.read():
                events.append("r1-in")
                first_in.set()
                await release_first.wait()
            events.append("r1-out")

        async def writer():
            async with lock.write():
                events.append("w-in")
                assert lock.readers == 0
            events.append("w-out")

        async def late_reader():
            async with lock.read():
                events.append("r2-in")

        t1 = asyncio.create_task(first_reader())
        await first_in.wait()
        tw = asyncio.create_task(writer())
        await asyncio.sleep(0)
        t2 = asyncio.create_task(late_reader())
        await asyncio.sleep(0)
        assert lock.readers == 1
        release_first.set()
        await asyncio.gather(t1, tw, t2)

    asyncio.run(scenario())
    assert events.index("w-in") > events.index("r1-out")
    assert events.index("r2-in") > events.index("w-out")


def test_rwlock_cancelled_writer_unblocks_readers():
    """A writer cancelled while queued does not leave readers waiting forever."""
    lock = ReadWriteLock()

    async def scenario():
        async with lock.read():
            writer = asyncio.create_task(_hold_write(lock))
            await asyncio.sleep(0)
            writer.cancel()
            with pytest.raises(asyncio.CancelledError):
                await writer
        async with lock.read():
            return lock.readers

    assert asyncio.run(scenario()) == 1


async def _hold_write(lock: ReadWriteLock) -> None:
    async with lock.write():
        pass
