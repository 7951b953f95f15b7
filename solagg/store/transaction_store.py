"""
In-memory transaction store over Arrow batches, queried with DuckDB.

Holds the ordered batch collection (ingestion order, not slot order) and the
ingestion cursor. Not internally synchronized: callers go through
SharedStore and its reader-writer lock.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

import duckdb
import pyarrow as pa

from solagg.core.exceptions import QueryError
from solagg.solana_listener.models import TRANSACTION_SCHEMA


def _json_default(value: Any) -> Any:
    """Encode the non-JSON scalars DuckDB results can carry."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bytes):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def batches_to_json(batches: Iterable[pa.RecordBatch]) -> str:
    """Serialize result batches to a JSON array of row objects keyed by field name."""
    rows: list[dict[str, Any]] = []
    for batch in batches:
        rows.extend(batch.to_pylist())
    return json.dumps(rows, default=_json_default, separators=(",", ":"))


class TransactionStore:
    """
    Accumulated transaction batches plus cursor metadata.

    current_slot is the highest slot processed by the live pipeline;
    init_slot is where the live pipeline began and never changes.
    """

    def __init__(
        self,
        tx_batches: Iterable[pa.RecordBatch] | None = None,
        *,
        current_slot: int,
        init_slot: int | None = None,
        current_epoch: int | None = None,
        mocked: bool = False,
    ) -> None:
        self._tx_batches: list[pa.RecordBatch] = []
        for batch in tx_batches or ():
            self.append_batch(batch)
        self.current_slot = current_slot
        self._init_slot = current_slot if init_slot is None else init_slot
        self.current_epoch = current_epoch
        self._mocked = mocked

    @property
    def init_slot(self) -> int:
        return self._init_slot

    @property
    def mocked(self) -> bool:
        return self._mocked

    @property
    def tx_batches(self) -> tuple[pa.RecordBatch, ...]:
        return tuple(self._tx_batches)

    def batch_count(self) -> int:
        return len(self._tx_batches)

    def append_batch(self, batch: pa.RecordBatch) -> None:
        """Append one batch; only schema conformance is checked."""
        if not batch.schema.equals(TRANSACTION_SCHEMA):
            raise ValueError("batch does not match the transaction schema")
        self._tx_batches.append(batch)

    def row_count(self) -> int:
        return sum(b.num_rows for b in self._tx_batches)

    def query(self, sql: str, table_name: str) -> list[pa.RecordBatch]:
        """
        Register the current batches as table_name and run sql against them.

        Each call gets its own DuckDB connection over a snapshot of the batch
        list, so later appends are invisible to an in-flight query.

        Raises:
            QueryError: on invalid SQL or engine failure.
        """
        table = pa.Table.from_batches(list(self._tx_batches), schema=TRANSACTION_SCHEMA)
        con = duckdb.connect(database=":memory:")
        try:
            con.register(table_name, table)
            result = con.execute(sql).fetch_arrow_table()
        except duckdb.Error as e:
            raise QueryError(f"query failed: {e}") from e
        finally:
            con.close()
        return result.to_batches()

    def query_to_json(self, sql: str, table_name: str) -> str:
        """Like query(), serialized as a JSON array of row objects; no rows -> "[]"."""
        return batches_to_json(self.query(sql, table_name))
