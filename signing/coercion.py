"""
Ingress coercion for prepared transactions.

Everything arriving from the CLI or from JSON passes through here exactly once.
After coercion, internal code only sees typed values: ints for every numeric
field, a FeeModel for `type`, and a hex string for `data`.
"""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Mapping

from web3 import Web3

from errors import MalformedInput

from .transaction import FeeModel, PreparedTransaction, normalize_data

BIGINT_FIELDS = ("value", "gas", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")
INT_FIELDS = ("nonce", "chainId")
REQUIRED_FIELDS = ("to", "gas", "nonce", "chainId")

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")


def _is_absent(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def coerce_int(v: Any, *, name: str) -> int:
    """
    Convert a CLI/JSON value into a non-negative int without losing precision.

    Accepted: ints, decimal digit strings, 0x-hex strings, and floating-point
    literals that represent an exact integer (JSON is parsed with Decimal so
    `1e18` and `1000000000000000000.0` stay exact).
    """
    if isinstance(v, bool):
        raise MalformedInput(f"Invalid integer field {name}: {v!r}", {"field": name})
    if isinstance(v, int):
        out = v
    elif isinstance(v, Decimal):
        if not v.is_finite() or v != v.to_integral_value():
            raise MalformedInput(f"Invalid integer field {name}: {v} is not an exact integer", {"field": name})
        out = int(v)
    elif isinstance(v, float):
        if not v.is_integer():
            raise MalformedInput(f"Invalid integer field {name}: {v!r} is not an exact integer", {"field": name})
        out = int(v)
    elif isinstance(v, str):
        s = v.strip()
        if _HEX_RE.match(s):
            out = int(s, 16)
        elif _DECIMAL_RE.match(s):
            out = int(s, 10)
        else:
            raise MalformedInput(f"Invalid integer field {name}: {v!r}", {"field": name})
    else:
        raise MalformedInput(f"Invalid integer field {name}: {type(v).__name__}", {"field": name})

    if out < 0:
        raise MalformedInput(f"Invalid integer field {name}: must be non-negative", {"field": name})
    return out


def coerce_fee_model(v: Any) -> FeeModel:
    if _is_absent(v):
        return FeeModel.LEGACY
    if isinstance(v, str):
        try:
            return FeeModel(v.strip().lower())
        except ValueError:
            pass
    raise MalformedInput(f"Unsupported transaction type: {v!r} (supported: legacy, eip1559)", {"field": "type"})


def coerce_prepared_tx(raw: Mapping[str, Any]) -> PreparedTransaction:
    if not isinstance(raw, Mapping):
        raise MalformedInput("Transaction JSON must be an object")

    for name in REQUIRED_FIELDS:
        if _is_absent(raw.get(name)):
            raise MalformedInput(f"Missing required tx field: {name}", {"field": name})

    to = raw.get("to")
    if not isinstance(to, str):
        raise MalformedInput("Invalid to field: expected a hex address string", {"field": "to"})

    ints: Dict[str, Any] = {}
    for name in BIGINT_FIELDS + INT_FIELDS:
        value = raw.get(name)
        ints[name] = None if _is_absent(value) else coerce_int(value, name=name)

    if ints["chainId"] == 0:
        raise MalformedInput("Invalid integer field chainId: must be positive", {"field": "chainId"})

    return PreparedTransaction(
        to=to.strip(),
        gas=ints["gas"],
        nonce=ints["nonce"],
        chain_id=ints["chainId"],
        type=coerce_fee_model(raw.get("type")),
        data=normalize_data(raw.get("data")),
        value=ints["value"] if ints["value"] is not None else 0,
        gas_price=ints["gasPrice"],
        max_fee_per_gas=ints["maxFeePerGas"],
        max_priority_fee_per_gas=ints["maxPriorityFeePerGas"],
    )


def parse_tx_json(text: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(text, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"Malformed transaction JSON: {e.msg} (line {e.lineno}, column {e.colno})") from None
    if not isinstance(parsed, dict):
        raise MalformedInput("Transaction JSON must be an object")
    return parsed


def load_tx_file(path: Path) -> Dict[str, Any]:
    try:
        text = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        raise MalformedInput(f"Cannot read transaction file {path}: {e.strerror or e}") from None
    return parse_tx_json(text)


def parse_json_array(raw: str | None, *, flag: str) -> list:
    if raw is None or raw.strip() == "":
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"{flag} is not valid JSON: {e.msg}") from None
    if not isinstance(parsed, list):
        raise MalformedInput(f"{flag} must be a JSON array")
    return parsed


def parse_value(value_wei: str | None, value_eth: str | None) -> int:
    """Resolve a transfer amount from exactly one of wei / ether units (default 0)."""
    if value_wei and value_eth:
        raise MalformedInput("Pass only one value unit: --value-wei or --value-eth")
    if value_wei:
        return coerce_int(value_wei, name="value-wei")
    if value_eth:
        try:
            amount = Decimal(value_eth.strip())
        except InvalidOperation:
            raise MalformedInput(f"Invalid --value-eth: {value_eth!r}") from None
        if not amount.is_finite() or amount < 0:
            raise MalformedInput(f"Invalid --value-eth: {value_eth!r}")
        if (amount * 10**18) % 1 != 0:
            raise MalformedInput("Invalid --value-eth: more than 18 decimal places")
        return int(Web3.to_wei(amount, "ether"))
    return 0
