from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Type

import requests
from web3.exceptions import TimeExhausted, Web3Exception


@dataclass(eq=False)
class AppError(Exception):
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    code: ClassVar[str] = "app_error"

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "data": self.data}


class ConfigurationError(AppError):
    code = "configuration_error"


class KeyNotConfigured(ConfigurationError):
    code = "key_not_configured"


class ValidationError(AppError):
    code = "validation_error"


class IncompleteFeeFields(ValidationError):
    code = "incomplete_fee_fields"


class ConflictingFeeFields(ValidationError):
    code = "conflicting_fee_fields"


class MalformedAddress(ValidationError):
    code = "malformed_address"


class InvalidGasBuffer(ValidationError):
    code = "invalid_gas_buffer"


class MalformedInput(ValidationError):
    code = "malformed_input"


class ChainMismatch(ValidationError):
    code = "chain_mismatch"


class AddressMismatch(AppError):
    code = "address_mismatch"


class NetworkError(AppError):
    code = "network_error"


class ConfirmationTimeout(AppError):
    code = "confirmation_timeout"


class SignerProcessError(AppError):
    code = "signer_process_error"


def _all_error_classes(root: Type[AppError]) -> Dict[str, Type[AppError]]:
    out: Dict[str, Type[AppError]] = {root.code: root}
    for sub in root.__subclasses__():
        out.update(_all_error_classes(sub))
    return out


ERRORS_BY_CODE: Dict[str, Type[AppError]] = _all_error_classes(AppError)


def error_for_code(code: str, message: str, data: Dict[str, Any] | None = None) -> AppError:
    """
    Rebuild a typed error from its wire code (e.g. parsed from a signer process stderr line).
    Unknown codes become SignerProcessError so nothing is silently dropped.
    """
    cls = ERRORS_BY_CODE.get(code)
    if cls is None:
        return SignerProcessError(message, {"code": code, **(data or {})})
    return cls(message, dict(data or {}))


def classify_exception(e: Exception) -> AppError:
    """
    Map web3 / transport issues into stable error types.
    """
    if isinstance(e, AppError):
        return e
    if isinstance(e, TimeExhausted):
        return ConfirmationTimeout(str(e), {})
    if isinstance(e, Web3Exception):
        return NetworkError(f"RPC request failed: {e}", {"exception": type(e).__name__})
    if isinstance(e, requests.exceptions.RequestException):
        return NetworkError(f"RPC endpoint unreachable: {e}", {"exception": type(e).__name__})
    if isinstance(e, (ConnectionError, TimeoutError)):
        return NetworkError(f"RPC endpoint unreachable: {e}", {"exception": type(e).__name__})
    # web3 < 7 surfaces JSON-RPC error responses as plain ValueError(dict)
    if isinstance(e, ValueError):
        return NetworkError(f"RPC request rejected: {e}", {"exception": type(e).__name__})

    return AppError(str(e), {"exception": type(e).__name__})


def format_error_lines(prog: str, e: AppError) -> List[str]:
    """
    stderr lines for a failed command: `<prog> error [<code>]: <message>`,
    then `<prog> error data: <json>` when the error carries data.
    """
    lines = [f"{prog} error [{e.code}]: {e.message}"]
    if e.data:
        lines.append(f"{prog} error data: {json.dumps(e.data, sort_keys=True, default=str)}")
    return lines
