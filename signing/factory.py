from __future__ import annotations

from app.core.settings import Settings, SignerType

from .encrypted_keystore import EncryptedKeystoreSigner
from .env_private_key import EnvPrivateKeySigner
from .local import LocalAccountSigner


def get_signer(settings: Settings) -> LocalAccountSigner:
    """
    Load the signing key selected by SIGNER_TYPE.

    Supported:
    - env_private_key (default): uses AGENT_PRIVATE_KEY
    - keystore: uses KEYSTORE_PATH + KEYSTORE_PASSWORD

    Fails fast (KeyNotConfigured / AddressMismatch) before any signing happens.
    """
    if settings.SIGNER_TYPE == SignerType.ENV_PRIVATE_KEY:
        return EnvPrivateKeySigner(chain_id=settings.CHAIN_ID, expected_address=settings.EXPECTED_ADDRESS)
    if settings.SIGNER_TYPE == SignerType.KEYSTORE:
        return EncryptedKeystoreSigner(chain_id=settings.CHAIN_ID, expected_address=settings.EXPECTED_ADDRESS)
    raise ValueError(f"Unsupported SIGNER_TYPE: {settings.SIGNER_TYPE}")
