from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Any, List

from sleuth.core.dto import RawTransaction
from sleuth.core.enums import FlowStatus, TransferType
from sleuth.core.models import LAMPORTS_PER_SOL, Flow

log = logging.getLogger("sleuth.flow_extractor")

LAMPORTS = Decimal(LAMPORTS_PER_SOL)


def extract_flows(raw: RawTransaction, focus_address: str, noise_threshold: int = 1000) -> List[Flow]:
    """
    Normalize one raw transaction record into directed value transfers.

    Two record shapes are understood:

    - enriched: `nativeTransfers` / `tokenTransfers` are mapped 1:1 to flows;
    - raw: only `meta.preBalances` / `meta.postBalances` are available. Every
      account debited by more than `noise_threshold` is paired with every
      other account credited by more than `noise_threshold`, one flow per
      (debit, credit) pair, each carrying the full debit amount. With several
      debits and credits this over-counts compared to the real settlement;
      without instruction-level intent it is the least surprising reading.

    The focus address does not filter the result. A record that fails to
    parse yields whatever flows were built before the failure.
    """
    flows: List[Flow] = []
    try:
        _extract_enriched(raw, flows)
        if not flows and raw.get("transaction"):
            _extract_from_balances(raw, noise_threshold, flows)
    except Exception as e:
        log.debug("partial extraction (focus %s, %d flow(s) kept): %s", focus_address, len(flows), e)
    return flows


# -------------------------
# Enriched records
# -------------------------

def _extract_enriched(raw: RawTransaction, out: List[Flow]) -> None:
    native = raw.get("nativeTransfers") or []
    tokens = raw.get("tokenTransfers") or []
    if not native and not tokens:
        return

    signature = _signature(raw)
    timestamp = _timestamp(raw.get("timestamp"))
    status = FlowStatus.FAILED if raw.get("transactionError") else FlowStatus.SUCCESS

    for t in native:
        src, dst = t.get("fromUserAccount"), t.get("toUserAccount")
        if not src or not dst:
            continue
        amount = int(t.get("amount") or 0)
        out.append(
            Flow(
                signature=signature,
                timestamp=timestamp,
                from_address=src,
                to_address=dst,
                amount=amount,
                amount_whole=Decimal(amount) / LAMPORTS,
                transfer_type=TransferType.NATIVE,
                status=status,
            )
        )

    for t in tokens:
        src, dst = t.get("fromUserAccount"), t.get("toUserAccount")
        if not src or not dst:
            continue
        # token amounts arrive in whole units; scale onto the lamport grid
        token_amount = Decimal(str(t.get("tokenAmount") or 0))
        out.append(
            Flow(
                signature=signature,
                timestamp=timestamp,
                from_address=src,
                to_address=dst,
                amount=int(token_amount * LAMPORTS),
                amount_whole=token_amount,
                transfer_type=TransferType.TOKEN,
                status=status,
            )
        )


# -------------------------
# Raw records (balance snapshots)
# -------------------------

def _extract_from_balances(raw: RawTransaction, noise_threshold: int, out: List[Flow]) -> None:
    tx = raw.get("transaction") or {}
    meta = raw.get("meta") or {}

    accounts = [_account_key(a) for a in (tx.get("message") or {}).get("accountKeys") or []]
    pre = meta.get("preBalances") or []
    post = meta.get("postBalances") or []
    n = min(len(accounts), len(pre), len(post))
    deltas = [int(post[i]) - int(pre[i]) for i in range(n)]

    signature = _signature(raw)
    timestamp = _timestamp(raw.get("blockTime"))
    status = FlowStatus.FAILED if meta.get("err") else FlowStatus.SUCCESS

    credited = [j for j in range(n) if deltas[j] > noise_threshold]
    for i in range(n):
        if deltas[i] >= -noise_threshold:
            continue
        amount = -deltas[i]
        for j in credited:
            if i == j:
                continue
            out.append(
                Flow(
                    signature=signature,
                    timestamp=timestamp,
                    from_address=accounts[i],
                    to_address=accounts[j],
                    amount=amount,
                    amount_whole=Decimal(amount) / LAMPORTS,
                    transfer_type=TransferType.NATIVE,
                    status=status,
                )
            )


def _account_key(entry: Any) -> str:
    if isinstance(entry, str):
        return entry
    return entry["pubkey"]


def _signature(raw: RawTransaction) -> str:
    sigs = (raw.get("transaction") or {}).get("signatures") or []
    return sigs[0] if sigs else (raw.get("signature") or "")


def _timestamp(value: Any) -> int:
    """Unix seconds from an int, a numeric string or an ISO-8601 string; 0 when unknown."""
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    try:
        return int(Decimal(text))
    except (ArithmeticError, ValueError):
        pass
    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        log.debug("unparseable timestamp %r", value)
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return int(parsed.timestamp())
