from __future__ import annotations

from typing import Any, Dict

from eth_account.signers.local import LocalAccount
from eth_utils import keccak

from errors import AddressMismatch, ChainMismatch, ValidationError

from .base import SignedTransaction, Signer
from .fees import resolve_fee_fields
from .transaction import FeeModel, PreparedTransaction, normalize_address, normalize_data


class LocalAccountSigner(Signer):
    """
    Signs with a key held in this process only.

    The key is never returned, logged, or included in an exception message.
    Signing is local and stateless: no network call is made.
    """

    def __init__(self, account: LocalAccount, *, chain_id: int, expected_address: str | None = None) -> None:
        if expected_address:
            expected = normalize_address(expected_address, name="expected")
            if expected != account.address:
                raise AddressMismatch(
                    "AGENT_ADDRESS does not match the configured signing key",
                    {"expected_address": expected, "derived_address": account.address},
                )
        self._account = account
        self._chain_id = int(chain_id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self._account.address!r}, chain_id={self._chain_id})"

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def get_address(self) -> str:
        return self._account.address

    def _envelope(self, tx: PreparedTransaction) -> Dict[str, Any]:
        fees = resolve_fee_fields(tx)
        if tx.chain_id != self._chain_id:
            raise ChainMismatch(
                f"Transaction chainId {tx.chain_id} does not match configured chain {self._chain_id}",
                {"tx_chain_id": tx.chain_id, "chain_id": self._chain_id},
            )
        envelope: Dict[str, Any] = {
            "to": normalize_address(tx.to),
            "data": normalize_data(tx.data),
            "value": tx.value,
            "gas": tx.gas,
            "nonce": tx.nonce,
            "chainId": tx.chain_id,
            **fees,
        }
        if tx.type is FeeModel.EIP1559:
            envelope["type"] = 2
            envelope["accessList"] = []
        return envelope

    def sign_transaction(self, tx: PreparedTransaction) -> SignedTransaction:
        envelope = self._envelope(tx)
        try:
            signed = self._account.sign_transaction(envelope)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Transaction rejected by signer: {e}", {"type": tx.type.value}) from None
        raw = bytes(signed.raw_transaction)
        return SignedTransaction(
            serialized_transaction="0x" + raw.hex(),
            hash="0x" + keccak(raw).hex(),
        )
