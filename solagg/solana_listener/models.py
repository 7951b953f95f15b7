"""
Data models for Solana fetch output.

TransactionRecord is the normalized row; TRANSACTION_SCHEMA is the fixed
Arrow schema every ColumnarBatch conforms to, including zero-row batches.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import pyarrow as pa

TRANSACTION_SCHEMA = pa.schema(
    [
        pa.field("signature", pa.string(), nullable=False),
        pa.field("slot", pa.uint64(), nullable=False),
        pa.field("err", pa.string(), nullable=True),
        pa.field("block_time", pa.timestamp("s"), nullable=True),
        pa.field("fee", pa.uint64(), nullable=False),
        pa.field("sender", pa.string(), nullable=False),
        pa.field("receiver", pa.string(), nullable=False),
        pa.field("amount", pa.int64(), nullable=False),
    ]
)


@dataclass(frozen=True)
class TransactionRecord:
    """
    One normalized ledger transaction.

    amount is pre-balance minus post-balance of the first account (lamports),
    so it is negative when the first account gained funds.
    """

    signature: str
    slot: int
    err: str | None
    block_time: int | None  # Unix timestamp; None if the node has none
    fee: int
    sender: str
    receiver: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "slot": self.slot,
            "err": self.err,
            "block_time": self.block_time,
            "fee": self.fee,
            "sender": self.sender,
            "receiver": self.receiver,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class EpochCursor:
    """Result of getEpochInfo; used only to compute the historical range."""

    epoch: int
    absolute_slot: int
    slot_index: int
    slots_in_epoch: int

    @property
    def start_slot(self) -> int:
        return self.absolute_slot - self.slot_index

    @property
    def current_slot(self) -> int:
        return self.absolute_slot

    @property
    def start_slot_next_epoch(self) -> int:
        return self.start_slot + self.slots_in_epoch

    @classmethod
    def from_rpc_result(cls, result: dict[str, Any]) -> "EpochCursor":
        """Build from a getEpochInfo result; raises KeyError/TypeError/ValueError if malformed."""
        return cls(
            epoch=int(result["epoch"]),
            absolute_slot=int(result["absoluteSlot"]),
            slot_index=int(result["slotIndex"]),
            slots_in_epoch=int(result["slotsInEpoch"]),
        )


def empty_batch() -> pa.RecordBatch:
    """Zero-row batch with the full schema."""
    return records_to_batch([])


def records_to_batch(records: Sequence[TransactionRecord]) -> pa.RecordBatch:
    """Serialize records column by column into a batch matching TRANSACTION_SCHEMA."""
    columns = [
        pa.array([r.signature for r in records], type=pa.string()),
        pa.array([r.slot for r in records], type=pa.uint64()),
        pa.array([r.err for r in records], type=pa.string()),
        pa.array([r.block_time for r in records], type=pa.timestamp("s")),
        pa.array([r.fee for r in records], type=pa.uint64()),
        pa.array([r.sender for r in records], type=pa.string()),
        pa.array([r.receiver for r in records], type=pa.string()),
        pa.array([r.amount for r in records], type=pa.int64()),
    ]
    return pa.RecordBatch.from_arrays(columns, schema=TRANSACTION_SCHEMA)
