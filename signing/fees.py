from __future__ import annotations

from typing import Dict, Tuple

from errors import ConflictingFeeFields, IncompleteFeeFields

from .transaction import FeeModel, PreparedTransaction

# Every FeeModel has an entry; there is no fallback model.
REQUIRED_FEE_FIELDS: Dict[FeeModel, Tuple[str, ...]] = {
    FeeModel.LEGACY: ("gas_price",),
    FeeModel.EIP1559: ("max_fee_per_gas", "max_priority_fee_per_gas"),
}

WIRE_NAMES: Dict[str, str] = {
    "gas_price": "gasPrice",
    "max_fee_per_gas": "maxFeePerGas",
    "max_priority_fee_per_gas": "maxPriorityFeePerGas",
}

_INCOMPLETE_MESSAGES: Dict[FeeModel, str] = {
    FeeModel.LEGACY: "Legacy transaction requires gasPrice",
    FeeModel.EIP1559: "EIP-1559 transaction requires maxFeePerGas and maxPriorityFeePerGas",
}


def _is_fee_value(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def resolve_fee_fields(tx: PreparedTransaction) -> Dict[str, int]:
    """
    Validate the fee fields of `tx` against its fee model and return them keyed
    by their wire names (e.g. {"gasPrice": 1000000000}).

    Pure validation: never fills in or infers a fee.
    """
    required = REQUIRED_FEE_FIELDS[tx.type]
    missing = [f for f in required if not _is_fee_value(getattr(tx, f))]
    if missing:
        raise IncompleteFeeFields(
            _INCOMPLETE_MESSAGES[tx.type],
            {"type": tx.type.value, "missing": [WIRE_NAMES[f] for f in missing]},
        )

    foreign = [
        f
        for model, fields in REQUIRED_FEE_FIELDS.items()
        if model is not tx.type
        for f in fields
        if getattr(tx, f) is not None
    ]
    if foreign:
        names = ", ".join(WIRE_NAMES[f] for f in foreign)
        raise ConflictingFeeFields(
            f"{tx.type.value} transaction must not carry {names}",
            {"type": tx.type.value, "conflicting": [WIRE_NAMES[f] for f in foreign]},
        )

    return {WIRE_NAMES[f]: getattr(tx, f) for f in required}
