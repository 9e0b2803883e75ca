from __future__ import annotations

import json
import os
from pathlib import Path

from eth_account import Account

from errors import ConfigurationError, KeyNotConfigured

from .local import LocalAccountSigner


class EncryptedKeystoreSigner(LocalAccountSigner):
    """
    Decrypts an Ethereum keystore JSON using a passphrase.

    Env vars:
    - KEYSTORE_PATH: path to keystore json file
    - KEYSTORE_PASSWORD: passphrase
    """

    def __init__(
        self,
        *,
        chain_id: int,
        expected_address: str | None = None,
        keystore_path_env: str = "KEYSTORE_PATH",
        password_env: str = "KEYSTORE_PASSWORD",  # nosec B107
    ) -> None:
        path_raw = (os.getenv(keystore_path_env) or "").strip()
        password = os.getenv(password_env)
        if not path_raw:
            raise KeyNotConfigured(f"Missing required env var: {keystore_path_env}")
        if not password:
            raise KeyNotConfigured(f"Missing required env var: {password_env}")

        path = Path(path_raw).expanduser()
        if not path.exists():
            raise KeyNotConfigured(f"Keystore file not found: {path}")

        try:
            keystore = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read keystore {path}: {e}") from None
        try:
            pk_bytes = Account.decrypt(keystore, password)
        except Exception:
            raise ConfigurationError(f"Failed to decrypt keystore {path}: wrong password or corrupted file") from None
        super().__init__(Account.from_key(pk_bytes), chain_id=chain_id, expected_address=expected_address)
