from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from eth_utils import is_address, is_hex, to_checksum_address

from errors import MalformedAddress, MalformedInput


class FeeModel(Enum):
    """Fee pricing model, the discriminator of a prepared transaction."""

    LEGACY = "legacy"
    EIP1559 = "eip1559"


@dataclass(frozen=True)
class PreparedTransaction:
    """
    Unsigned description of an intended on-chain action.

    Built fresh per call (never reused across nonces). All monetary and gas
    fields are plain Python ints, so no precision is lost at any size.
    Fee fields are validated against `type` by signing.fees, not here.
    """

    to: str
    gas: int
    nonce: int
    chain_id: int
    type: FeeModel = FeeModel.LEGACY
    data: str = "0x"
    value: int = 0
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        """
        JSON-safe form for the command boundary: big integers travel as decimal
        strings, nonce/chainId as plain numbers, absent fee fields are omitted.
        """
        out: Dict[str, Any] = {
            "to": self.to,
            "data": self.data or "0x",
            "value": str(self.value),
            "gas": str(self.gas),
            "nonce": self.nonce,
            "chainId": self.chain_id,
            "type": self.type.value,
        }
        if self.gas_price is not None:
            out["gasPrice"] = str(self.gas_price)
        if self.max_fee_per_gas is not None:
            out["maxFeePerGas"] = str(self.max_fee_per_gas)
        if self.max_priority_fee_per_gas is not None:
            out["maxPriorityFeePerGas"] = str(self.max_priority_fee_per_gas)
        return out


def normalize_address(value: Any, *, name: str = "to") -> str:
    """
    Return the checksummed form of a 20-byte hex address.

    All-lowercase / all-uppercase input is corrected; mixed-case input with a
    bad checksum is rejected rather than passed through.
    """
    if not isinstance(value, str) or not is_address(value.strip()):
        raise MalformedAddress(f"Invalid {name} address: {value!r}", {"field": name})
    return to_checksum_address(value.strip())


def normalize_data(value: Any) -> str:
    if value is None:
        return "0x"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise MalformedInput(f"Invalid data field: expected 0x-prefixed hex, got {type(value).__name__}")
    s = value.strip()
    if s in ("", "0x"):
        return "0x"
    if not s.startswith("0x") or not is_hex(s) or len(s) % 2 != 0:
        raise MalformedInput("Invalid data field: expected 0x-prefixed, even-length hex")
    return s.lower()
