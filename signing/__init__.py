from .base import SignedTransaction, Signer, content_hash
from .coercion import coerce_prepared_tx, parse_tx_json
from .encrypted_keystore import EncryptedKeystoreSigner
from .env_private_key import EnvPrivateKeySigner
from .factory import get_signer
from .fees import resolve_fee_fields
from .local import LocalAccountSigner
from .process_signer import ProcessSigner
from .transaction import FeeModel, PreparedTransaction, normalize_address

__all__ = [
    "SignedTransaction",
    "Signer",
    "content_hash",
    "coerce_prepared_tx",
    "parse_tx_json",
    "EnvPrivateKeySigner",
    "EncryptedKeystoreSigner",
    "LocalAccountSigner",
    "ProcessSigner",
    "get_signer",
    "resolve_fee_fields",
    "FeeModel",
    "PreparedTransaction",
    "normalize_address",
]
