from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict

from eth_utils import is_hex, keccak

from errors import MalformedInput

from .transaction import PreparedTransaction


@dataclass(frozen=True)
class SignedTransaction:
    """
    Signed, serialized transaction plus its keccak-256 content hash.

    Ephemeral: produced, written to the wire, discarded.
    """

    serialized_transaction: str
    hash: str

    def to_dict(self) -> Dict[str, str]:
        return {"serializedTransaction": self.serialized_transaction, "hash": self.hash}


def decode_signed_payload(serialized: str | bytes) -> bytes:
    if isinstance(serialized, (bytes, bytearray)):
        raw = bytes(serialized)
    else:
        s = (serialized or "").strip()
        if not s.startswith("0x") or not is_hex(s) or len(s) % 2 != 0 or len(s) <= 2:
            raise MalformedInput("Signed transaction must be non-empty 0x-prefixed hex")
        raw = bytes.fromhex(s[2:])
    if not raw:
        raise MalformedInput("Signed transaction must be non-empty 0x-prefixed hex")
    return raw


def content_hash(serialized: str | bytes) -> str:
    """keccak-256 over the fully serialized bytes, 0x-prefixed."""
    return "0x" + keccak(decode_signed_payload(serialized)).hex()


class Signer(ABC):
    """
    A minimal signing interface for EVM transactions.
    """

    @abstractmethod
    def get_address(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def sign_transaction(self, tx: PreparedTransaction) -> SignedTransaction:
        raise NotImplementedError
