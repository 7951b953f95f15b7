"""
Store package — in-memory columnar transaction store, its lock and the
startup historical loader.
"""

from solagg.store.loader import load_transaction_store, slot_windows
from solagg.store.rwlock import ReadWriteLock
from solagg.store.shared import SharedStore
from solagg.store.transaction_store import TransactionStore, batches_to_json

__all__ = [
    "ReadWriteLock",
    "SharedStore",
    "TransactionStore",
    "batches_to_json",
    "load_transaction_store",
    "slot_windows",
]
