from __future__ import annotations

from functools import lru_cache

from web3 import Web3
from web3.providers.rpc import HTTPProvider

from errors import NetworkError, classify_exception


@lru_cache(maxsize=16)
def get_web3(rpc_url: str, timeout: float = 10.0) -> Web3:
    w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": float(timeout)}))
    if not w3.is_connected():
        raise NetworkError(f"RPC not reachable ({rpc_url})", {"rpc_url": rpc_url})
    return w3


def pending_nonce(w3: Web3, address: str) -> int:
    """Next nonce including transactions still in the mempool."""
    try:
        return int(w3.eth.get_transaction_count(address, "pending"))
    except Exception as e:
        raise classify_exception(e) from e


def network_gas_price(w3: Web3) -> int:
    try:
        return int(w3.eth.gas_price)
    except Exception as e:
        raise classify_exception(e) from e


def send_raw_transaction(w3: Web3, raw_tx: bytes) -> str:
    try:
        tx_hash = w3.eth.send_raw_transaction(raw_tx)
    except Exception as e:
        raise classify_exception(e) from e
    # tx_hash is HexBytes
    return Web3.to_hex(tx_hash)
