"""
Solana block parser — raw getBlock payloads to TransactionRecord rows.

Best-effort and purely structural: a transaction that lacks metadata, a
decodable message with two static account keys, or a pre/post balance pair
for the first account is dropped (None), never an error. Many blocks are
mostly vote or program transactions that do not fit the
two-account/balance-delta model.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import base58
from solders.transaction import VersionedTransaction

from solagg.solagg_logging import get_logger
from solagg.solana_listener.models import TransactionRecord

logger = get_logger(__name__)


def _decode_wire_bytes(encoded: Any) -> bytes | None:
    """
    Return raw transaction bytes from either RPC shape:
    a bare base58 string (legacy "binary") or [data, "base58" | "base64"].
    """
    if isinstance(encoded, str):
        return base58.b58decode(encoded)
    if isinstance(encoded, list) and len(encoded) == 2:
        data, encoding = encoded
        if not isinstance(data, str):
            return None
        if encoding == "base64":
            return base64.b64decode(data, validate=True)
        if encoding == "base58":
            return base58.b58decode(data)
    return None


def decode_transaction(encoded: Any) -> VersionedTransaction | None:
    """Decode an encoded transaction (legacy or v0); None if it is not decodable."""
    try:
        raw = _decode_wire_bytes(encoded)
        if raw is None:
            return None
        return VersionedTransaction.from_bytes(raw)
    except Exception:
        return None


def _format_err(err: Any) -> str | None:
    if err is None:
        return None
    if isinstance(err, str):
        return err
    return json.dumps(err, separators=(",", ":"), sort_keys=True)


def _first_balance_delta(meta: dict[str, Any]) -> int | None:
    pre = meta.get("preBalances")
    post = meta.get("postBalances")
    if not isinstance(pre, list) or not isinstance(post, list) or not pre or not post:
        return None
    try:
        return int(pre[0]) - int(post[0])
    except (TypeError, ValueError):
        return None


def parse_transaction(
    raw: dict[str, Any],
    slot: int,
    block_time: int | None,
) -> TransactionRecord | None:
    """
    Parse one entry of a getBlock "transactions" array.

    Returns None if the payload cannot be normalized (missing meta, undecodable
    message, fewer than two static account keys, no balance pair).
    """
    if not isinstance(raw, dict):
        return None
    meta = raw.get("meta")
    if not isinstance(meta, dict):
        return None

    tx = decode_transaction(raw.get("transaction"))
    if tx is None or not tx.signatures:
        return None
    account_keys = tx.message.account_keys
    if len(account_keys) < 2:
        return None

    amount = _first_balance_delta(meta)
    if amount is None:
        return None
    fee = meta.get("fee")
    if not isinstance(fee, int) or fee < 0:
        return None

    return TransactionRecord(
        signature=str(tx.signatures[0]),
        slot=slot,
        err=_format_err(meta.get("err")),
        block_time=block_time,
        fee=fee,
        sender=str(account_keys[0]),
        receiver=str(account_keys[1]),
        amount=amount,
    )


def parse_block(block: dict[str, Any] | None, slot: int) -> list[TransactionRecord]:
    """
    Parse a getBlock result into records, in block order.

    Missing block or missing transaction list -> empty list. Skips unparseable
    items; the returned list may be shorter than the block.
    """
    if not block:
        return []
    raw_list = block.get("transactions") or []
    block_time = block.get("blockTime")
    if block_time is not None and not isinstance(block_time, int):
        try:
            block_time = int(block_time)
        except (TypeError, ValueError):
            block_time = None

    records: list[TransactionRecord] = []
    skipped = 0
    for raw in raw_list:
        record = parse_transaction(raw, slot, block_time)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug("block_parse_skipped", slot=slot, skipped=skipped, kept=len(records))
    return records
