"""
Caller-side transaction actions.

These run in the caller process, which never holds the key: the prepared
transaction is signed and broadcast through the signer process (ProcessSigner).
RPC reads (nonce, gas price, gas estimate, eth_call) happen here.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from web3 import Web3

from errors import IncompleteFeeFields, MalformedInput, classify_exception
from signing.process_signer import ProcessSigner
from signing.transaction import FeeModel, PreparedTransaction, normalize_address

from .abi import function_abi_from_signature
from .evm import network_gas_price, pending_nonce
from .gas import DEFAULT_GAS_BUFFER_PERCENT, resolve_gas_limit

NATIVE_TRANSFER_GAS = 21000


def load_abi(
    abi_file: Optional[Path] = None, abi_json: Optional[str] = None, signature: Optional[str] = None
) -> List[Dict[str, Any]]:
    sources = [flag for flag, v in (("--abi-file", abi_file), ("--abi-json", abi_json), ("--signature", signature)) if v]
    if len(sources) > 1:
        raise MalformedInput(f"Pass only one ABI source, got {', '.join(sources)}")
    if abi_file:
        try:
            raw = Path(abi_file).expanduser().read_text(encoding="utf-8").strip()
        except OSError as e:
            raise MalformedInput(f"Cannot read ABI file {abi_file}: {e.strerror or e}") from None
        if raw.startswith("export "):
            raise MalformedInput(
                f"ABI file at {abi_file} looks like TypeScript/JavaScript export syntax. "
                "Use a pure JSON ABI file (array), or pass --signature / --abi-json."
            )
        source = f"ABI file {abi_file}"
    elif abi_json:
        raw = abi_json
        source = "--abi-json"
    elif signature:
        return [function_abi_from_signature(signature)]
    else:
        raise MalformedInput("Missing ABI input: pass --abi-file, --abi-json, or --signature")
    try:
        abi = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"{source} is not valid JSON: {e.msg}") from None
    if not isinstance(abi, list):
        raise MalformedInput(f"{source} must be a JSON array")
    return abi


def _fee_fields(
    w3: Web3,
    tx_type: FeeModel,
    *,
    gas_price_wei: Optional[int],
    max_fee_per_gas_wei: Optional[int],
    max_priority_fee_per_gas_wei: Optional[int],
) -> Dict[str, Optional[int]]:
    if tx_type is FeeModel.EIP1559:
        if max_fee_per_gas_wei is None or max_priority_fee_per_gas_wei is None:
            raise IncompleteFeeFields(
                "EIP-1559 mode requires --max-fee-per-gas-wei and --max-priority-fee-per-gas-wei"
            )
        return {
            "max_fee_per_gas": max_fee_per_gas_wei,
            "max_priority_fee_per_gas": max_priority_fee_per_gas_wei,
        }
    # Legacy: the caller asks the network explicitly when no price was given.
    return {"gas_price": gas_price_wei if gas_price_wei is not None else network_gas_price(w3)}


def _jsonable(v: Any) -> Any:
    if isinstance(v, bool) or v is None or isinstance(v, str):
        return v
    if isinstance(v, int):
        return str(v)
    if isinstance(v, (bytes, bytearray)):
        return Web3.to_hex(bytes(v))
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _jsonable(x) for k, x in v.items()}
    return str(v)


def _sign_and_send(signer: ProcessSigner, tx: PreparedTransaction, *, wait: bool, timeout: Optional[float]):
    signed = signer.sign_transaction(tx)
    sent = signer.send_signed(signed.serialized_transaction, wait=wait, timeout=timeout)
    return signed, sent


def send_native(
    w3: Web3,
    signer: ProcessSigner,
    *,
    to: str,
    value: int,
    chain_id: int,
    gas: int = NATIVE_TRANSFER_GAS,
    tx_type: FeeModel = FeeModel.LEGACY,
    gas_price_wei: Optional[int] = None,
    max_fee_per_gas_wei: Optional[int] = None,
    max_priority_fee_per_gas_wei: Optional[int] = None,
    wait: bool = False,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    to_addr = normalize_address(to)
    sender = signer.get_address()
    nonce = pending_nonce(w3, sender)
    fees = _fee_fields(
        w3,
        tx_type,
        gas_price_wei=gas_price_wei,
        max_fee_per_gas_wei=max_fee_per_gas_wei,
        max_priority_fee_per_gas_wei=max_priority_fee_per_gas_wei,
    )
    tx = PreparedTransaction(
        to=to_addr, gas=gas, nonce=nonce, chain_id=chain_id, type=tx_type, data="0x", value=value, **fees
    )
    signed, sent = _sign_and_send(signer, tx, wait=wait, timeout=timeout)
    return {
        "status": "ok",
        "from": sender,
        "to": to_addr,
        "value": str(value),
        "signHash": signed.hash,
        **sent,
    }


def write_contract(
    w3: Web3,
    signer: ProcessSigner,
    *,
    to: str,
    abi: List[Dict[str, Any]],
    function: str,
    args: List[Any],
    chain_id: int,
    value: int = 0,
    gas: Optional[int] = None,
    gas_buffer_percent: int = DEFAULT_GAS_BUFFER_PERCENT,
    tx_type: FeeModel = FeeModel.LEGACY,
    gas_price_wei: Optional[int] = None,
    max_fee_per_gas_wei: Optional[int] = None,
    max_priority_fee_per_gas_wei: Optional[int] = None,
    wait: bool = False,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    to_addr = normalize_address(to)
    try:
        contract = w3.eth.contract(address=to_addr, abi=abi)
        data = contract.encode_abi(function, args=args)
    except Exception as e:
        raise MalformedInput(f"Cannot encode call to {function}: {e}") from None

    sender = signer.get_address()
    nonce = pending_nonce(w3, sender)
    gas_limit = resolve_gas_limit(
        w3,
        to=to_addr,
        data=data,
        value=value,
        sender=sender,
        explicit_gas=gas,
        buffer_percent=gas_buffer_percent,
    )
    fees = _fee_fields(
        w3,
        tx_type,
        gas_price_wei=gas_price_wei,
        max_fee_per_gas_wei=max_fee_per_gas_wei,
        max_priority_fee_per_gas_wei=max_priority_fee_per_gas_wei,
    )
    tx = PreparedTransaction(
        to=to_addr,
        gas=gas_limit.limit,
        nonce=nonce,
        chain_id=chain_id,
        type=tx_type,
        data=data,
        value=value,
        **fees,
    )
    signed, sent = _sign_and_send(signer, tx, wait=wait, timeout=timeout)
    return {
        "status": "ok",
        "from": sender,
        "to": to_addr,
        "functionName": function,
        "estimatedGas": str(gas_limit.estimated) if gas_limit.estimated is not None else None,
        "gasLimit": str(gas_limit.limit),
        "signHash": signed.hash,
        **sent,
    }


def read_contract(
    w3: Web3,
    *,
    to: str,
    abi: List[Dict[str, Any]],
    function: str,
    args: List[Any],
    chain_id: int,
) -> Dict[str, Any]:
    to_addr = normalize_address(to)
    try:
        contract = w3.eth.contract(address=to_addr, abi=abi)
        call = getattr(contract.functions, function)(*args)
    except Exception as e:
        raise MalformedInput(f"Cannot build call to {function}: {e}") from None
    try:
        result = call.call()
    except Exception as e:
        raise classify_exception(e) from e
    return {
        "status": "ok",
        "chainId": chain_id,
        "to": to_addr,
        "functionName": function,
        "result": _jsonable(result),
    }


def broadcast_signed(
    signer: ProcessSigner, serialized: str, *, wait: bool = False, timeout: Optional[float] = None
) -> Dict[str, Any]:
    sent = signer.send_signed(serialized, wait=wait, timeout=timeout)
    return {"status": "ok", **sent}
