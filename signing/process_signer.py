from __future__ import annotations

import json
import math
import re
import shlex
import subprocess
from typing import Any, Dict, List, Optional, Sequence

from errors import AppError, ConfigurationError, MalformedInput, SignerProcessError, error_for_code

from .base import SignedTransaction, Signer, content_hash
from .transaction import PreparedTransaction, normalize_address

_ERROR_LINE = re.compile(r"error \[(?P<code>[a-z_]+)\]: (?P<message>.*)$")
_ERROR_DATA_LINE = re.compile(r"error data: (?P<data>\{.*\})$")


def _error_data(lines: Sequence[str]) -> Dict[str, Any]:
    for line in reversed(lines):
        m = _ERROR_DATA_LINE.search(line.strip())
        if not m:
            continue
        try:
            data = json.loads(m.group("data"))
        except json.JSONDecodeError:
            return {"raw_data": m.group("data")}
        return data if isinstance(data, dict) else {"raw_data": data}
    return {}


def _error_from_stderr(stderr: str, returncode: int) -> AppError:
    lines = (stderr or "").strip().splitlines()
    for line in reversed(lines):
        m = _ERROR_LINE.search(line.strip())
        if m:
            data = {**_error_data(lines), "returncode": returncode}
            return error_for_code(m.group("code"), m.group("message"), data)
    msg = (stderr or "").strip() or f"signer process exited with status {returncode}"
    return SignerProcessError(msg, {"returncode": returncode})


def _seconds(value: Any, name: str) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise MalformedInput(f"{name} must be a number of seconds, got {value!r}") from None
    if not math.isfinite(seconds) or seconds <= 0:
        raise MalformedInput(f"{name} must be positive and finite, got {value!r}")
    return seconds


class ProcessSigner(Signer):
    """
    Caller-side client for the isolated signer process.

    The key never enters this process: every operation spawns the signer
    command and exchanges key-free JSON over argv/stdout.

    Protocol:
    - `address` -> checksummed address on stdout
    - `sign-raw --tx-json <json>` -> {"status": "signed", "hash", "serializedTransaction"}
    - `send-signed --signed-tx <hex> [--wait]` -> {"hash", "status", ...}
    - failures: non-zero exit and `... error [<code>]: <message>` on stderr,
      optionally followed by `... error data: <json object>`
    """

    def __init__(
        self, command: str | Sequence[str] = "agent-signer", *, timeout: float = 60.0, receipt_timeout: float = 180.0
    ) -> None:
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        if not argv:
            raise ConfigurationError("SIGNER_COMMAND is empty")
        self._argv: List[str] = argv
        self._timeout = _seconds(timeout, "timeout")
        self._receipt_timeout = _seconds(receipt_timeout, "receipt_timeout")
        self._cached_address: Optional[str] = None

    def _run(self, args: Sequence[str], *, timeout: Optional[float] = None) -> str:
        try:
            proc = subprocess.run(
                [*self._argv, *args],
                capture_output=True,
                text=True,
                timeout=timeout or self._timeout,
                check=False,
            )
        except FileNotFoundError:
            raise ConfigurationError(f"Signer command not found: {self._argv[0]}") from None
        except subprocess.TimeoutExpired:
            raise SignerProcessError(
                f"Signer process did not finish within {timeout or self._timeout}s", {"command": args[0]}
            ) from None
        if proc.returncode != 0:
            raise _error_from_stderr(proc.stderr, proc.returncode)
        return proc.stdout

    def _run_json(self, args: Sequence[str], *, timeout: Optional[float] = None) -> Dict[str, Any]:
        stdout = self._run(args, timeout=timeout)
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError:
            raise SignerProcessError("Signer process returned non-JSON output", {"command": args[0]}) from None
        if not isinstance(data, dict):
            raise SignerProcessError("Signer process returned unexpected JSON", {"command": args[0]})
        return data

    def get_address(self) -> str:
        if self._cached_address:
            return self._cached_address
        self._cached_address = normalize_address(self._run(["address"]).strip(), name="signer")
        return self._cached_address

    def sign_transaction(self, tx: PreparedTransaction) -> SignedTransaction:
        data = self._run_json(["sign-raw", "--tx-json", json.dumps(tx.to_wire())])
        serialized = str(data.get("serializedTransaction") or "")
        reported = str(data.get("hash") or "")
        if not serialized:
            raise SignerProcessError("Signer process did not return serializedTransaction")
        # Never trust a reported hash: recompute it from the returned bytes.
        computed = content_hash(serialized)
        if reported.lower() != computed.lower():
            raise SignerProcessError(
                "Signer process returned a hash that does not match its serialized transaction",
                {"reported": reported, "computed": computed},
            )
        return SignedTransaction(serialized_transaction=serialized, hash=computed)

    def send_signed(self, serialized: str, *, wait: bool = False, timeout: Optional[float] = None) -> Dict[str, Any]:
        args = ["send-signed", "--signed-tx", serialized]
        run_timeout = self._timeout
        if wait:
            wait_timeout = _seconds(timeout, "timeout") if timeout is not None else self._receipt_timeout
            args += ["--wait", "--timeout", str(wait_timeout)]
            run_timeout = self._timeout + wait_timeout
        return self._run_json(args, timeout=run_timeout)
