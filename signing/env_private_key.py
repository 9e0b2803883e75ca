from __future__ import annotations

import os

from eth_account import Account

from errors import ConfigurationError, KeyNotConfigured

from .local import LocalAccountSigner


class EnvPrivateKeySigner(LocalAccountSigner):
    """
    Reads a raw hex private key from AGENT_PRIVATE_KEY, once, at construction.
    """

    def __init__(self, *, chain_id: int, expected_address: str | None = None, env_var: str = "AGENT_PRIVATE_KEY") -> None:
        pk = (os.getenv(env_var) or "").strip()
        if not pk:
            raise KeyNotConfigured(f"Missing required env var: {env_var}")
        try:
            account = Account.from_key(pk)
        except Exception:
            raise ConfigurationError(f"{env_var} is not a valid secp256k1 private key") from None
        super().__init__(account, chain_id=chain_id, expected_address=expected_address)
