"""
Solana fetch client package.

Retrieves blocks and epoch info over JSON-RPC, normalizes raw transactions
into TransactionRecord rows and batches them into Arrow columnar form.
"""

from solagg.solana_listener.fetcher import SolFetcher
from solagg.solana_listener.models import (
    TRANSACTION_SCHEMA,
    EpochCursor,
    TransactionRecord,
    empty_batch,
    records_to_batch,
)
from solagg.solana_listener.parser import parse_block, parse_transaction

__all__ = [
    "TRANSACTION_SCHEMA",
    "EpochCursor",
    "SolFetcher",
    "TransactionRecord",
    "empty_batch",
    "parse_block",
    "parse_transaction",
    "records_to_batch",
]
