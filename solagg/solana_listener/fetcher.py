"""
Solana fetch client — JSON-RPC block retrieval with retry and backoff.

Responsibilities:
- Query the current epoch (getEpochInfo) to seed the historical range.
- Fetch one slot's block (getBlock), normalize its transactions and
  serialize them into a columnar batch with the fixed schema.
- Retry with exponential backoff on the live path; single attempt on the
  historical path, where retry storms would break the rate ceiling.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pyarrow as pa

from solagg.config.settings import AggregatorConfig
from solagg.core.exceptions import FetchExhausted, RemoteError
from solagg.solagg_logging import get_logger
from solagg.solana_listener.models import EpochCursor, TransactionRecord, records_to_batch
from solagg.solana_listener.parser import parse_block

logger = get_logger(__name__)

# getBlock errors that mean "no block for this slot", not a failure
RPC_SLOT_SKIPPED = -32007
RPC_SLOT_MISSING_IN_STORAGE = -32009
_EMPTY_BLOCK_ERROR_CODES = (RPC_SLOT_SKIPPED, RPC_SLOT_MISSING_IN_STORAGE)

SleepFn = Callable[[float], Awaitable[None]]


class SolFetcher:
    """
    Async JSON-RPC client for block and epoch retrieval.

    One shared httpx.AsyncClient serves all calls, so a historical window can
    fan out concurrently over pooled connections. Close with aclose() or use
    as an async context manager.
    """

    def __init__(
        self,
        rpc_url: str,
        config: AggregatorConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """
        Args:
            rpc_url: Solana JSON-RPC HTTP endpoint.
            config: Retry policy, encoding and timeout; defaults if omitted.
            http_client: Optional preconfigured client (tests pass one with a
                MockTransport). Not closed by aclose() when supplied.
            sleep: Awaitable sleep used for backoff; injectable for tests.
        """
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._config = config or AggregatorConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.request_timeout_sec)
        )
        self._sleep = sleep
        self._next_rpc_id = 0

    @property
    def config(self) -> AggregatorConfig:
        return self._config

    async def __aenter__(self) -> "SolFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _next_id(self) -> int:
        self._next_rpc_id += 1
        return self._next_rpc_id

    async def _rpc_call(self, method: str, params: list[Any] | None = None) -> dict[str, Any]:
        """
        Perform one JSON-RPC call and return the decoded envelope.

        Raises RemoteError on transport failure, HTTP error status or a body
        that is not a JSON object. RPC-level errors are left to the caller.
        """
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": self._next_id(), "method": method}
        if params is not None:
            body["params"] = params
        try:
            resp = await self._client.post(self._rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise RemoteError(f"Solana RPC {method} transport failure: {e}") from e
        except ValueError as e:
            raise RemoteError(f"Solana RPC {method} returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RemoteError(f"Solana RPC {method} returned unexpected response shape")
        return data

    async def get_current_epoch(self) -> EpochCursor:
        """Single getEpochInfo call; raises RemoteError if unreachable or malformed."""
        data = await self._rpc_call("getEpochInfo", [{"commitment": self._config.commitment}])
        err = data.get("error")
        if err:
            raise RemoteError(f"Solana RPC error: {_rpc_error_message(err)}")
        result = data.get("result")
        if not isinstance(result, dict):
            raise RemoteError("Solana RPC getEpochInfo returned no result")
        try:
            cursor = EpochCursor.from_rpc_result(result)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(f"Malformed getEpochInfo result: {e}") from e
        logger.debug(
            "epoch_info_fetched",
            epoch=cursor.epoch,
            absolute_slot=cursor.absolute_slot,
            slot_index=cursor.slot_index,
        )
        return cursor

    async def _get_block(self, slot: int) -> dict[str, Any] | None:
        """One getBlock attempt. None for a skipped or missing block."""
        params = [
            slot,
            {
                "encoding": self._config.block_encoding,
                "transactionDetails": "full",
                "rewards": False,
                "maxSupportedTransactionVersion": 0,
                "commitment": self._config.commitment,
            },
        ]
        data = await self._rpc_call("getBlock", params)
        err = data.get("error")
        if err:
            code = err.get("code") if isinstance(err, dict) else None
            if code in _EMPTY_BLOCK_ERROR_CODES:
                logger.debug("block_missing", slot=slot, code=code)
                return None
            raise RemoteError(f"Solana RPC error for slot {slot}: {_rpc_error_message(err)}")
        result = data.get("result")
        if result is None:
            return None
        if not isinstance(result, dict):
            raise RemoteError(f"Solana RPC getBlock returned unexpected result for slot {slot}")
        return result

    async def _get_block_with_retry(self, slot: int) -> dict[str, Any] | None:
        """getBlock with exponential backoff; FetchExhausted after max_retries attempts."""
        max_attempts = self._config.max_retries
        delay = self._config.initial_backoff_sec
        last_error: RemoteError | None = None

        for attempt in range(max_attempts):
            try:
                return await self._get_block(slot)
            except RemoteError as e:
                last_error = e
                if attempt + 1 >= max_attempts:
                    break
                logger.warning(
                    "fetch_block_retry",
                    slot=slot,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    backoff_sec=delay,
                    error=str(e),
                )
                await self._sleep(delay)
                delay *= 2

        logger.error(
            "fetch_block_give_up",
            slot=slot,
            max_attempts=max_attempts,
            error=str(last_error),
        )
        raise FetchExhausted(
            f"Failed to fetch block {slot} after {max_attempts} attempts",
            slot=slot,
            attempts=max_attempts,
            last_exception=last_error,
        )

    async def fetch_transactions(self, slot: int, retrying: bool) -> list[TransactionRecord]:
        """
        Fetch the block at slot and normalize its transactions.

        Empty or missing block -> empty list. With retrying=False a remote
        failure surfaces immediately as RemoteError.
        """
        if retrying:
            block = await self._get_block_with_retry(slot)
        else:
            block = await self._get_block(slot)
        return parse_block(block, slot)

    async def fetch_transactions_as_batch(self, slot: int, retrying: bool) -> pa.RecordBatch:
        """Fetch a slot and serialize it into a batch; zero rows still carry the schema."""
        records = await self.fetch_transactions(slot, retrying)
        return records_to_batch(records)


def _rpc_error_message(err: Any) -> str:
    if isinstance(err, dict):
        return f"{err.get('message', err)} (code={err.get('code')})"
    return str(err)
