"""
agent-signer: the isolated signer process.

This is the only process that ever materializes the private key. Callers talk
to it through argv in and JSON on stdout; failures go to stderr as
`agent-signer error [<code>]: <message>` with exit status 1, followed by
`agent-signer error data: <json>` when the error carries structured data
(e.g. the submitted hash on a confirmation timeout).
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import typer

from app.core.settings import Settings
from errors import AppError, MalformedInput, classify_exception, format_error_lines
from execution.broadcast import BroadcastClient, check_receipt_timeout
from execution.evm import get_web3
from observability import AuditLog, build_log_context, configure_logging, log_event, now_ms
from signing import coerce_prepared_tx, get_signer
from signing.coercion import load_tx_file, parse_tx_json

PROG = "agent-signer"

USAGE = "\n".join(
    [
        "Usage:",
        f"  {PROG} address",
        f"  {PROG} sign-raw --tx-json '<json>'",
        f"  {PROG} sign-raw --tx-file /path/to/tx.json",
        f"  {PROG} send-signed --signed-tx <0x...> [--wait] [--timeout <seconds>]",
    ]
)

app = typer.Typer(
    name=PROG,
    help="Sign and broadcast EVM transactions with a locally held key.",
    add_completion=False,
)


def _load_settings() -> Settings:
    """Validate configuration. Raises before any key is loaded or any network call is made."""
    settings = Settings()
    configure_logging(settings.LOG_LEVEL, settings.SERVICE_NAME)
    return settings


def _emit(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _audit(settings: Optional[Settings], ctx: Dict[str, Any], *, ok: bool, **kwargs: Any) -> None:
    """One audit row per command; the connection is closed again right away."""
    if settings is None or not settings.AUDIT_DB_PATH:
        return
    audit = AuditLog(settings.AUDIT_DB_PATH)
    try:
        audit.append(
            ts_ms=now_ms(),
            request_id=ctx["request_id"],
            operation=ctx["operation"],
            ok=ok,
            chain_id=settings.CHAIN_ID,
            **kwargs,
        )
    finally:
        audit.close()


def _fail(e: AppError, ctx: Dict[str, Any], settings: Optional[Settings] = None) -> None:
    log_event("command_failed", ctx=ctx, data={"code": e.code, "message": e.message}, level="warning")
    _audit(settings, ctx, ok=False, error_code=e.code, tx_hash=e.data.get("hash"))
    for line in format_error_lines(PROG, e):
        typer.echo(line, err=True)
    raise typer.Exit(code=1)


@app.command("address")
def address() -> None:
    """Print the signer's checksummed address."""
    ctx = build_log_context(operation="address")
    settings = None
    try:
        settings = _load_settings()
        signer = get_signer(settings)
    except AppError as e:
        _fail(e, ctx, settings)
    _audit(settings, ctx, ok=True, summary={"address": signer.get_address()})
    typer.echo(signer.get_address())


@app.command("sign-raw")
def sign_raw(
    tx_json: Optional[str] = typer.Option(None, "--tx-json", help="Prepared transaction as a JSON object."),
    tx_file: Optional[Path] = typer.Option(None, "--tx-file", help="Path to a prepared transaction JSON file."),
) -> None:
    """Sign a prepared transaction and print its serialized form and hash."""
    ctx = build_log_context(operation="sign-raw")
    settings = None
    try:
        settings = _load_settings()
        signer = get_signer(settings)
        if tx_json is None and tx_file is None:
            raise MalformedInput("Missing required --tx-json or --tx-file")
        if tx_json is not None and tx_file is not None:
            raise MalformedInput("Pass only one of --tx-json or --tx-file")
        raw = load_tx_file(tx_file) if tx_file is not None else parse_tx_json(tx_json)
        tx = coerce_prepared_tx(raw)
        signed = signer.sign_transaction(tx)
    except AppError as e:
        _fail(e, ctx, settings)

    log_event("tx_signed", ctx=ctx, data={"hash": signed.hash, "nonce": tx.nonce, "type": tx.type.value})
    _audit(
        settings,
        ctx,
        ok=True,
        tx_hash=signed.hash,
        summary={"to": tx.to, "nonce": tx.nonce, "type": tx.type.value},
    )
    _emit({"status": "signed", "hash": signed.hash, "serializedTransaction": signed.serialized_transaction})


@app.command("send-signed")
def send_signed(
    signed_tx: Optional[str] = typer.Option(None, "--signed-tx", help="0x-prefixed signed transaction."),
    wait: bool = typer.Option(False, "--wait", help="Wait for the receipt before returning."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Receipt wait timeout in seconds."),
) -> None:
    """Submit a signed transaction, optionally waiting for its receipt."""
    ctx = build_log_context(operation="send-signed")
    settings = None
    try:
        settings = _load_settings()
        get_signer(settings)
        if not signed_tx:
            raise MalformedInput("Missing required --signed-tx argument")
        wait_timeout = check_receipt_timeout(timeout if timeout is not None else settings.RECEIPT_TIMEOUT_SEC)
        w3 = get_web3(settings.RPC_URL, settings.HTTP_TIMEOUT_SEC)
        client = BroadcastClient(w3, poll_interval=settings.RECEIPT_POLL_INTERVAL_SEC, ctx=ctx)
        submitted = client.submit(signed_tx)
        receipt = client.await_receipt(submitted.hash, wait_timeout) if wait else None
    except AppError as e:
        _fail(e, ctx, settings)

    if receipt is None:
        _audit(settings, ctx, ok=True, tx_hash=submitted.hash, summary={"status": "submitted"})
        _emit({"hash": submitted.hash, "status": "submitted"})
        return
    _audit(settings, ctx, ok=True, tx_hash=submitted.hash, summary={"status": receipt.status})
    _emit({"hash": submitted.hash, **receipt.to_dict()})


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] in ("--help", "-h", "help"):
        typer.echo(USAGE)
        return 0

    command = typer.main.get_command(app)
    if args[0] not in command.commands:
        typer.echo(f"{PROG} error [{MalformedInput.code}]: Unknown command: {args[0]}", err=True)
        typer.echo(USAGE)
        return 1

    try:
        rv = command.main(args=args, prog_name=PROG, standalone_mode=False)
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
