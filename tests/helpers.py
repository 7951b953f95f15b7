"""
Test doubles for SolAgg tests.

No network: the JSON-RPC node is an httpx.MockTransport handler, the slot
subscription is an in-memory fake connection, and sleeps are recorded
instead of awaited. Transactions are real signed solders transactions so
the decoder sees genuine wire bytes.
"""

from __future__ import annotations

import base64
import json
from collections import defaultdict, deque
from typing import Any

import base58
import httpx
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction
from websockets.exceptions import ConnectionClosedOK
from websockets.frames import Close

from solagg.config.settings import AggregatorConfig
from solagg.solana_listener.fetcher import SolFetcher
from solagg.solana_listener.models import TransactionRecord

RPC_URL = "https://rpc.test.invalid"
WS_URL = "wss://rpc.test.invalid"
# 2024-07-07T12:00:00Z
BLOCK_TIME_2024_07_07 = 1_720_353_600


def make_keypair(seed: int) -> Keypair:
    return Keypair.from_seed(bytes([seed % 256]) * 32)


def signed_transfer(seed: int, lamports: int = 1_000) -> tuple[bytes, str, str, str]:
    """Return (wire bytes, signature, sender, receiver) of a signed System transfer."""
    payer = make_keypair(seed)
    receiver = make_keypair(seed + 100).pubkey()
    ix = transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=receiver, lamports=lamports))
    tx = Transaction([payer], Message([ix], payer.pubkey()), Hash.default())
    return bytes(tx), str(tx.signatures[0]), str(payer.pubkey()), str(receiver)


def signed_single_key_tx(seed: int) -> bytes:
    """A signed transaction whose message has only the fee payer as account key."""
    payer = make_keypair(seed)
    tx = Transaction([payer], Message([], payer.pubkey()), Hash.default())
    return bytes(tx)


def encode_tx(raw: bytes, encoding: str = "base64") -> Any:
    if encoding == "base64":
        return [base64.b64encode(raw).decode("ascii"), "base64"]
    if encoding == "base58":
        return [base58.b58encode(raw).decode("ascii"), "base58"]
    # legacy "binary": bare base58 string
    return base58.b58encode(raw).decode("ascii")


def default_meta(**overrides: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "err": None,
        "fee": 5_000,
        "preBalances": [10_000, 0, 1],
        "postBalances": [4_000, 1_000, 1],
    }
    meta.update(overrides)
    return meta


def block_entry(raw: bytes, encoding: str = "base64", meta: Any = "default") -> dict[str, Any]:
    return {
        "transaction": encode_tx(raw, encoding),
        "meta": default_meta() if meta == "default" else meta,
    }


def transfer_block(seeds: list[int], block_time: int | None = BLOCK_TIME_2024_07_07) -> dict[str, Any]:
    """getBlock result with one transfer per seed."""
    return {
        "blockTime": block_time,
        "transactions": [block_entry(signed_transfer(seed)[0]) for seed in seeds],
    }


def make_records(count: int, slot: int, block_time: int | None = BLOCK_TIME_2024_07_07) -> list[TransactionRecord]:
    """Synthetic rows (no chain bytes) for store-level tests."""
    return [
        TransactionRecord(
            signature=f"sig-{slot}-{i}",
            slot=slot,
            err=None,
            block_time=block_time,
            fee=5_000 + i,
            sender=f"sender-{i}",
            receiver=f"receiver-{i}",
            amount=1_000 * i - 500,
        )
        for i in range(count)
    ]


class SleepRecorder:
    """Injectable async sleep that records requested delays and returns at once."""

    def __init__(self, clock: "FakeClock | None" = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakeSolanaNode:
    """
    In-memory JSON-RPC node for getEpochInfo and getBlock.

    blocks: slot -> getBlock result (missing slot -> null result).
    failures: slot -> number of leading getBlock calls answered with HTTP 500
    (-1 fails forever).
    """

    def __init__(
        self,
        *,
        absolute_slot: int = 1_000,
        slot_index: int = 59,
        slots_in_epoch: int = 432_000,
        epoch: int = 720,
    ) -> None:
        self.epoch_info = {
            "epoch": epoch,
            "absoluteSlot": absolute_slot,
            "slotIndex": slot_index,
            "slotsInEpoch": slots_in_epoch,
            "blockHeight": absolute_slot - 10,
        }
        self.blocks: dict[int, dict[str, Any]] = {}
        self.failures: dict[int, int] = {}
        self.rpc_errors: dict[int, dict[str, Any]] = {}
        self.block_calls: list[int] = []
        self.block_params: list[dict[str, Any]] = []
        self.calls_per_slot: defaultdict[int, int] = defaultdict(int)
        self.epoch_calls = 0
        self.epoch_broken = False
        self.latency_sec = 0.0
        self.clock: FakeClock | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        rpc_id = body["id"]
        if self.clock is not None:
            self.clock.advance(self.latency_sec)
        if method == "getEpochInfo":
            self.epoch_calls += 1
            if self.epoch_broken:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": rpc_id, "result": {"epoch": 1}})
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": rpc_id, "result": self.epoch_info})
        if method == "getBlock":
            slot, params = body["params"]
            self.block_calls.append(slot)
            self.block_params.append(params)
            self.calls_per_slot[slot] += 1
            remaining = self.failures.get(slot, 0)
            if remaining != 0:
                if remaining > 0:
                    self.failures[slot] = remaining - 1
                return httpx.Response(500, text="upstream unavailable")
            if slot in self.rpc_errors:
                return httpx.Response(
                    200, json={"jsonrpc": "2.0", "id": rpc_id, "error": self.rpc_errors[slot]}
                )
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": rpc_id, "result": self.blocks.get(slot)}
            )
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": rpc_id, "error": {"code": -32601, "message": "Method not found"}},
        )

    def fetcher(self, config: AggregatorConfig | None = None, sleep: Any = None) -> SolFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        kwargs: dict[str, Any] = {"http_client": client}
        if sleep is not None:
            kwargs["sleep"] = sleep
        return SolFetcher(RPC_URL, config, **kwargs)


class FakeWebSocket:
    """Connection stand-in: replays messages, then raises the close exception."""

    def __init__(self, messages: list[Any], close_exc: Exception | None = None) -> None:
        self.sent: list[str] = []
        self._messages = deque(messages)
        self._close_exc = close_exc or ConnectionClosedOK(Close(1000, "bye"), Close(1000, "bye"), True)

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def recv(self) -> Any:
        if self._messages:
            return self._messages.popleft()
        raise self._close_exc


class FakeConnect:
    """Replacement for websockets.connect returning one FakeWebSocket."""

    def __init__(self, ws: FakeWebSocket) -> None:
        self.ws = ws
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, url: str, **kwargs: Any) -> "FakeConnect":
        self.calls.append((url, kwargs))
        return self

    async def __aenter__(self) -> FakeWebSocket:
        return self.ws

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


def slot_notification(root: int) -> str:
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "method": "slotNotification",
            "params": {"result": {"parent": root - 1, "root": root, "slot": root + 32}, "subscription": 7},
        }
    )
