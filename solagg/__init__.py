"""
SolAgg — Solana ledger aggregator.

Backfills the current epoch (or a short bootstrap window) of finalized
transactions into an in-memory Arrow store, keeps it current from a live
slot subscription, and answers SQL over it. Modular architecture with clear
separation between fetch client, historical loader, streaming pipeline,
store and API server.
"""

__version__ = "0.1.0"
