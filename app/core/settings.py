"""
agent-signer settings

Validated, typed settings read from the environment (and an optional .env file).
Misconfiguration is caught when the process starts, before any key is loaded
or any network call is made.

Key material is deliberately NOT part of Settings: the signer reads it once,
directly from its secret source, so it never appears in to_dict() or in logs.

Usage:
    from app.core.settings import Settings

    settings = Settings()
    w3 = get_web3(settings.RPC_URL, timeout=settings.HTTP_TIMEOUT_SEC)
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from dotenv import load_dotenv
from eth_utils import is_address

from errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

DEFAULT_CHAIN_ID = 143


class SignerType(Enum):
    """Key source backends."""

    ENV_PRIVATE_KEY = "env_private_key"
    KEYSTORE = "keystore"


def _env(name: str) -> str | None:
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _parse_int(value: str | None, default: int) -> int | str:
    """Parse an integer (decimal or 0x-hex); unparsable input is returned as-is for validation."""
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip(), 0)
    except ValueError:
        return value


def _parse_float(value: str | None, default: float) -> float | str:
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError:
        return value


@dataclass
class Settings:
    """
    Settings for the signer process and its callers.

    All values are loaded and validated at instantiation time.
    """

    PROJECT_NAME: str = "agent-signer"

    # Network
    RPC_URL: str | None = field(default_factory=lambda: _env("MONAD_RPC_URL"))
    CHAIN_ID: int = field(default_factory=lambda: _parse_int(os.getenv("MONAD_CHAIN_ID"), DEFAULT_CHAIN_ID))
    HTTP_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("HTTP_TIMEOUT_SEC"), 10.0))

    # Signer
    SIGNER_TYPE: SignerType | str = field(
        default_factory=lambda: (os.getenv("SIGNER_TYPE") or "env_private_key").strip().lower()
    )
    EXPECTED_ADDRESS: str | None = field(default_factory=lambda: _env("AGENT_ADDRESS"))
    KEYSTORE_PATH: str | None = field(default_factory=lambda: _env("KEYSTORE_PATH"))
    SIGNER_COMMAND: str = field(default_factory=lambda: _env("SIGNER_COMMAND") or "agent-signer")

    # Confirmation
    RECEIPT_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("RECEIPT_TIMEOUT_SEC"), 180.0))
    RECEIPT_POLL_INTERVAL_SEC: float = field(
        default_factory=lambda: _parse_float(os.getenv("RECEIPT_POLL_INTERVAL_SEC"), 2.0)
    )

    # Gas policy
    GAS_BUFFER_PERCENT: int = field(default_factory=lambda: _parse_int(os.getenv("GAS_BUFFER_PERCENT"), 20))

    # Observability
    LOG_LEVEL: str = field(default_factory=lambda: (os.getenv("AGENT_SIGNER_LOG_LEVEL") or "warning").strip().lower())
    SERVICE_NAME: str = field(default_factory=lambda: (os.getenv("AGENT_SIGNER_SERVICE_NAME") or "agent-signer").strip())
    AUDIT_DB_PATH: str | None = field(default_factory=lambda: _env("AUDIT_DB_PATH"))

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        errors: list[str] = []

        if not self.RPC_URL:
            errors.append("Missing required env var: MONAD_RPC_URL")
        elif urlparse(self.RPC_URL).scheme not in ("http", "https", "ws", "wss"):
            errors.append(f"MONAD_RPC_URL must be an http(s) or ws(s) URL, got {self.RPC_URL!r}")

        if not isinstance(self.CHAIN_ID, int) or isinstance(self.CHAIN_ID, bool) or self.CHAIN_ID <= 0:
            errors.append(f"MONAD_CHAIN_ID must be a positive integer, got {self.CHAIN_ID!r}")

        if isinstance(self.SIGNER_TYPE, str):
            if self.SIGNER_TYPE in [e.value for e in SignerType]:
                self.SIGNER_TYPE = SignerType(self.SIGNER_TYPE)
            else:
                errors.append(
                    f"Unsupported SIGNER_TYPE: {self.SIGNER_TYPE!r} (supported: env_private_key, keystore)"
                )
        if self.SIGNER_TYPE == SignerType.KEYSTORE and not self.KEYSTORE_PATH:
            errors.append("KEYSTORE_PATH required when SIGNER_TYPE=keystore")

        if self.EXPECTED_ADDRESS and not is_address(self.EXPECTED_ADDRESS):
            errors.append(f"AGENT_ADDRESS is not a valid address: {self.EXPECTED_ADDRESS!r}")

        for name in ("HTTP_TIMEOUT_SEC", "RECEIPT_TIMEOUT_SEC", "RECEIPT_POLL_INTERVAL_SEC"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                errors.append(f"{name} must be a positive, finite number, got {value!r}")

        if not isinstance(self.GAS_BUFFER_PERCENT, int) or self.GAS_BUFFER_PERCENT < 0:
            errors.append(f"GAS_BUFFER_PERCENT must be a non-negative integer, got {self.GAS_BUFFER_PERCENT!r}")

        if errors:
            raise ConfigurationError("; ".join(errors), {"errors": errors})

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary (redacting secrets)."""
        result: dict[str, Any] = {}
        for key in self.__dataclass_fields__:
            value = getattr(self, key)
            if any(s in key.upper() for s in ["SECRET", "PASSWORD", "KEY", "TOKEN"]):
                result[key] = "***REDACTED***" if value else None
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result
