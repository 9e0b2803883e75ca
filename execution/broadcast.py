from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from web3 import Web3
from web3.exceptions import TimeExhausted

from errors import ConfirmationTimeout, MalformedInput, classify_exception
from observability import log_event
from signing.base import content_hash, decode_signed_payload

from .evm import send_raw_transaction


@dataclass(frozen=True)
class SubmissionResult:
    """
    `hash` is the identifier returned by the node (use it for tracking).
    `local_hash` is keccak-256 of the submitted bytes (use it for integrity checks).
    """

    hash: str
    local_hash: str

    @property
    def hashes_match(self) -> bool:
        return self.hash.lower() == self.local_hash.lower()


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    status: str
    block_number: int
    gas_used: int

    @classmethod
    def from_web3(cls, receipt: Mapping[str, Any]) -> "Receipt":
        tx_hash = receipt["transactionHash"]
        return cls(
            transaction_hash=Web3.to_hex(tx_hash) if isinstance(tx_hash, (bytes, bytearray)) else str(tx_hash),
            status="success" if int(receipt["status"]) == 1 else "reverted",
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt["gasUsed"]),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "status": self.status,
            "blockNumber": str(self.block_number),
            "gasUsed": str(self.gas_used),
        }


def check_receipt_timeout(timeout: Optional[float]) -> float:
    """Receipt waits are always bounded: the timeout must be a positive, finite number of seconds."""
    if timeout is None or isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise MalformedInput(f"Receipt timeout must be a number of seconds, got {timeout!r}")
    if not math.isfinite(timeout) or timeout <= 0:
        raise MalformedInput(f"Receipt timeout must be positive and finite, got {timeout!r}")
    return float(timeout)


class BroadcastClient:
    """
    Submits signed payloads and optionally observes their outcome.

    Never resubmits: a retry after a failed submit could double-spend the
    nonce if the first attempt actually reached the network.
    """

    def __init__(self, w3: Web3, *, poll_interval: float = 2.0, ctx: Optional[Dict[str, Any]] = None) -> None:
        self._w3 = w3
        self._poll_interval = float(poll_interval)
        self._ctx = ctx or {}

    def submit(self, serialized: str | bytes) -> SubmissionResult:
        raw = decode_signed_payload(serialized)
        local_hash = content_hash(raw)
        network_hash = send_raw_transaction(self._w3, raw)
        result = SubmissionResult(hash=network_hash, local_hash=local_hash)
        if not result.hashes_match:
            log_event(
                "tx_hash_mismatch",
                ctx=self._ctx,
                data={"hash": network_hash, "local_hash": local_hash},
                level="warning",
            )
        log_event("tx_submitted", ctx=self._ctx, data={"hash": network_hash})
        return result

    def await_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        """
        Poll until a receipt exists or `timeout` seconds elapse.

        A timeout only stops observing; the transaction is not cancelled and
        may still confirm later.
        """
        timeout = check_receipt_timeout(timeout)
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self._poll_interval
            )
        except TimeExhausted:
            raise ConfirmationTimeout(
                f"No receipt for {tx_hash} within {timeout}s; the transaction was not cancelled and may still confirm",
                {"hash": tx_hash, "timeout": timeout},
            ) from None
        except Exception as e:
            err = classify_exception(e)
            err.data.setdefault("hash", tx_hash)
            raise err from e
        out = Receipt.from_web3(receipt)
        log_event(
            "tx_confirmed",
            ctx=self._ctx,
            data={"hash": tx_hash, "status": out.status, "block_number": out.block_number},
        )
        return out
