"""
Pytest fixtures for SolAgg tests. Test doubles live in tests/helpers.py.
"""

from __future__ import annotations

import pytest

from solagg.config.settings import AggregatorConfig
from solagg.solana_listener.models import records_to_batch
from solagg.store.shared import SharedStore
from solagg.store.transaction_store import TransactionStore
from tests.helpers import FakeSolanaNode, make_records


@pytest.fixture
def node() -> FakeSolanaNode:
    return FakeSolanaNode()


@pytest.fixture
def fast_config() -> AggregatorConfig:
    return AggregatorConfig(rps_limit=25, bootstrap_len=25, max_retries=5, initial_backoff_sec=0.05)


@pytest.fixture
def seeded_store() -> TransactionStore:
    """Mocked store: 25 empty slots plus one slot holding 15 rows dated 2024-07-07."""
    batches = [records_to_batch([]) for _ in range(25)]
    batches.append(records_to_batch(make_records(15, slot=1_025)))
    return TransactionStore(batches, current_slot=1_025, init_slot=1_025, current_epoch=720, mocked=True)


@pytest.fixture
def shared_store(seeded_store: TransactionStore) -> SharedStore:
    return SharedStore(seeded_store)
