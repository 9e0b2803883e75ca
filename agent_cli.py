"""
agent-tx: caller-side transaction commands.

This process never holds the key. It reads chain state over RPC, builds the
prepared transaction, and hands signing and broadcasting to the signer process
(SIGNER_COMMAND, default `agent-signer`).
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import typer
from web3 import Web3

from app.core.settings import Settings
from errors import AppError, MalformedInput, classify_exception, format_error_lines
from execution import actions
from execution.evm import get_web3
from observability import build_log_context, configure_logging, log_event
from signing import ProcessSigner
from signing.coercion import coerce_fee_model, coerce_int, parse_json_array, parse_value

PROG = "agent-tx"

app = typer.Typer(
    name=PROG,
    help="Build, sign (via the signer process) and broadcast transactions.",
    no_args_is_help=True,
    add_completion=False,
)


def _bootstrap() -> Tuple[Settings, Web3, ProcessSigner]:
    settings = Settings()
    configure_logging(settings.LOG_LEVEL, settings.SERVICE_NAME)
    w3 = get_web3(settings.RPC_URL, settings.HTTP_TIMEOUT_SEC)
    signer = ProcessSigner(
        settings.SIGNER_COMMAND,
        timeout=settings.HTTP_TIMEOUT_SEC * 6,
        receipt_timeout=settings.RECEIPT_TIMEOUT_SEC,
    )
    return settings, w3, signer


def _optional_int(raw: Optional[str], name: str) -> Optional[int]:
    return None if raw is None else coerce_int(raw, name=name)


def _emit(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(e: AppError, ctx: Dict[str, Any]) -> None:
    log_event("command_failed", ctx=ctx, data={"code": e.code, "message": e.message}, level="warning")
    for line in format_error_lines(PROG, e):
        typer.echo(line, err=True)
    raise typer.Exit(code=1)


@app.command("send-native")
def send_native(
    to: str = typer.Option(..., "--to", help="Recipient address."),
    value_wei: Optional[str] = typer.Option(None, "--value-wei"),
    value_eth: Optional[str] = typer.Option(None, "--value-eth"),
    gas: str = typer.Option(str(actions.NATIVE_TRANSFER_GAS), "--gas"),
    tx_type: str = typer.Option("legacy", "--type", help="legacy or eip1559"),
    gas_price_wei: Optional[str] = typer.Option(None, "--gas-price-wei"),
    max_fee_per_gas_wei: Optional[str] = typer.Option(None, "--max-fee-per-gas-wei"),
    max_priority_fee_per_gas_wei: Optional[str] = typer.Option(None, "--max-priority-fee-per-gas-wei"),
    wait: bool = typer.Option(False, "--wait"),
    timeout: Optional[float] = typer.Option(None, "--timeout"),
) -> None:
    """Transfer native currency."""
    ctx = build_log_context(operation="send-native")
    try:
        value = parse_value(value_wei, value_eth)
        fee_model = coerce_fee_model(tx_type)
        settings, w3, signer = _bootstrap()
        result = actions.send_native(
            w3,
            signer,
            to=to,
            value=value,
            chain_id=settings.CHAIN_ID,
            gas=coerce_int(gas, name="gas"),
            tx_type=fee_model,
            gas_price_wei=_optional_int(gas_price_wei, "gas-price-wei"),
            max_fee_per_gas_wei=_optional_int(max_fee_per_gas_wei, "max-fee-per-gas-wei"),
            max_priority_fee_per_gas_wei=_optional_int(max_priority_fee_per_gas_wei, "max-priority-fee-per-gas-wei"),
            wait=wait,
            timeout=timeout,
        )
    except AppError as e:
        _fail(e, ctx)
    _emit(result)


@app.command("write-contract")
def write_contract(
    to: str = typer.Option(..., "--to", help="Contract address."),
    function: str = typer.Option(..., "--function", help="Function name."),
    abi_file: Optional[Path] = typer.Option(None, "--abi-file"),
    abi_json: Optional[str] = typer.Option(None, "--abi-json"),
    args_json: Optional[str] = typer.Option(None, "--args-json", help="Function arguments as a JSON array."),
    value_wei: Optional[str] = typer.Option(None, "--value-wei"),
    value_eth: Optional[str] = typer.Option(None, "--value-eth"),
    gas: Optional[str] = typer.Option(None, "--gas", help="Explicit gas limit (skips estimation)."),
    gas_buffer_percent: Optional[int] = typer.Option(None, "--gas-buffer-percent"),
    tx_type: str = typer.Option("legacy", "--type", help="legacy or eip1559"),
    gas_price_wei: Optional[str] = typer.Option(None, "--gas-price-wei"),
    max_fee_per_gas_wei: Optional[str] = typer.Option(None, "--max-fee-per-gas-wei"),
    max_priority_fee_per_gas_wei: Optional[str] = typer.Option(None, "--max-priority-fee-per-gas-wei"),
    wait: bool = typer.Option(False, "--wait"),
    timeout: Optional[float] = typer.Option(None, "--timeout"),
) -> None:
    """Call a state-changing contract function."""
    ctx = build_log_context(operation="write-contract")
    try:
        abi = actions.load_abi(abi_file, abi_json)
        fn_args = parse_json_array(args_json, flag="--args-json")
        value = parse_value(value_wei, value_eth)
        fee_model = coerce_fee_model(tx_type)
        settings, w3, signer = _bootstrap()
        result = actions.write_contract(
            w3,
            signer,
            to=to,
            abi=abi,
            function=function,
            args=fn_args,
            chain_id=settings.CHAIN_ID,
            value=value,
            gas=_optional_int(gas, "gas"),
            gas_buffer_percent=gas_buffer_percent if gas_buffer_percent is not None else settings.GAS_BUFFER_PERCENT,
            tx_type=fee_model,
            gas_price_wei=_optional_int(gas_price_wei, "gas-price-wei"),
            max_fee_per_gas_wei=_optional_int(max_fee_per_gas_wei, "max-fee-per-gas-wei"),
            max_priority_fee_per_gas_wei=_optional_int(max_priority_fee_per_gas_wei, "max-priority-fee-per-gas-wei"),
            wait=wait,
            timeout=timeout,
        )
    except AppError as e:
        _fail(e, ctx)
    _emit(result)


@app.command("read-contract")
def read_contract(
    to: str = typer.Option(..., "--to", help="Contract address."),
    function: str = typer.Option(..., "--function", help="Function name."),
    abi_file: Optional[Path] = typer.Option(None, "--abi-file"),
    abi_json: Optional[str] = typer.Option(None, "--abi-json"),
    signature: Optional[str] = typer.Option(
        None, "--signature", help="Human-readable function signature, e.g. 'function balanceOf(address) view returns (uint256)'."
    ),
    args_json: Optional[str] = typer.Option(None, "--args-json", help="Function arguments as a JSON array."),
) -> None:
    """Call a read-only contract function."""
    ctx = build_log_context(operation="read-contract")
    try:
        abi = actions.load_abi(abi_file, abi_json, signature)
        fn_args = parse_json_array(args_json, flag="--args-json")
        settings, w3, _ = _bootstrap()
        result = actions.read_contract(
            w3, to=to, abi=abi, function=function, args=fn_args, chain_id=settings.CHAIN_ID
        )
    except AppError as e:
        _fail(e, ctx)
    _emit(result)


@app.command("broadcast-signed")
def broadcast_signed(
    signed_tx: str = typer.Option(..., "--signed-tx", help="0x-prefixed signed transaction."),
    wait: bool = typer.Option(False, "--wait"),
    timeout: Optional[float] = typer.Option(None, "--timeout"),
) -> None:
    """Relay an already signed transaction through the signer process."""
    ctx = build_log_context(operation="broadcast-signed")
    try:
        settings = Settings()
        configure_logging(settings.LOG_LEVEL, settings.SERVICE_NAME)
        signer = ProcessSigner(
            settings.SIGNER_COMMAND,
            timeout=settings.HTTP_TIMEOUT_SEC * 6,
            receipt_timeout=settings.RECEIPT_TIMEOUT_SEC,
        )
        result = actions.broadcast_signed(signer, signed_tx, wait=wait, timeout=timeout)
    except AppError as e:
        _fail(e, ctx)
    _emit(result)


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        rv = typer.main.get_command(app).main(args=args, prog_name=PROG, standalone_mode=False)
    except click.ClickException as e:
        typer.echo(f"{PROG} error [{MalformedInput.code}]: {e.format_message()}", err=True)
        return 1
    except click.exceptions.Abort:
        typer.echo(f"{PROG} error [app_error]: aborted", err=True)
        return 1
    except Exception as e:
        for line in format_error_lines(PROG, classify_exception(e)):
            typer.echo(line, err=True)
        return 1
    return rv if isinstance(rv, int) else 0


if __name__ == "__main__":
    sys.exit(main())
