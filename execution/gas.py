from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from web3 import Web3

from errors import InvalidGasBuffer, classify_exception

DEFAULT_GAS_BUFFER_PERCENT = 20


def _check_percent(percent: int) -> int:
    if isinstance(percent, bool) or not isinstance(percent, int):
        raise InvalidGasBuffer(f"gas-buffer-percent must be an integer, got {percent!r}", {"percent": percent})
    if percent < 0:
        raise InvalidGasBuffer("gas-buffer-percent must be >= 0", {"percent": percent})
    return percent


def with_gas_buffer(estimate: int, percent: int) -> int:
    """estimate + estimate * percent / 100, in integer arithmetic (rounds the margin down)."""
    _check_percent(percent)
    return int(estimate) + (int(estimate) * percent) // 100


@dataclass(frozen=True)
class GasLimit:
    limit: int
    estimated: Optional[int] = None
    buffer_percent: Optional[int] = None


def resolve_gas_limit(
    w3: Web3,
    *,
    to: str,
    data: str,
    value: int,
    sender: str,
    explicit_gas: Optional[int] = None,
    buffer_percent: int = DEFAULT_GAS_BUFFER_PERCENT,
) -> GasLimit:
    """
    Gas limit for a contract call. An explicit limit wins and skips estimation.
    """
    if explicit_gas is not None:
        return GasLimit(limit=int(explicit_gas))

    _check_percent(buffer_percent)
    try:
        estimate = int(w3.eth.estimate_gas({"from": sender, "to": to, "data": data, "value": value}))
    except Exception as e:
        raise classify_exception(e) from e
    return GasLimit(
        limit=with_gas_buffer(estimate, buffer_percent),
        estimated=estimate,
        buffer_percent=buffer_percent,
    )
