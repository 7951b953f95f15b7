"""
Application-level exceptions.

Fetch-level and load-level failures propagate to task boundaries; decode
anomalies never raise (the parser returns None and the row is dropped).
"""

from __future__ import annotations


class SolAggError(Exception):
    """Base exception for SolAgg errors."""


class RemoteError(SolAggError):
    """Failure talking to the node: transport, HTTP status, RPC error or malformed result."""


class FetchExhausted(RemoteError):
    """Raised when all retry attempts for a slot are exhausted."""

    def __init__(
        self,
        message: str,
        *,
        slot: int,
        attempts: int,
        last_exception: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.slot = slot
        self.attempts = attempts
        self.last_exception = last_exception


class LoadFailed(SolAggError):
    """Raised when any fetch fails during the historical load; there is no partial store."""

    def __init__(self, message: str, *, slot: int | None = None) -> None:
        super().__init__(message)
        self.slot = slot


class TransportClosed(SolAggError):
    """Orderly end of the live subscription."""


class ChannelClosed(SolAggError):
    """The other end of the slot channel has gone away."""


class QueryError(SolAggError):
    """Invalid SQL or query engine failure."""


class UnsupportedDateFormat(ValueError):
    """Date text matches none of the accepted formats."""
