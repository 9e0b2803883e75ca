import logging
import os
import sys

import pytest
from eth_account import Account

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from signing import EnvPrivateKeySigner, PreparedTransaction  # noqa: E402

# Well-known development key (hardhat/anvil account #0). Never funded on a real chain.
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = Account.from_key(TEST_KEY).address
# hardhat account #1, lowercase so no checksum assumptions are baked in
OTHER_ADDRESS = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
RECIPIENT = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"
CHAIN_ID = 143


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("agent_signer")
    for h in list(logger.handlers):
        logger.removeHandler(h)


@pytest.fixture
def signer_env(monkeypatch):
    for k in ("AGENT_ADDRESS", "SIGNER_TYPE", "KEYSTORE_PATH", "KEYSTORE_PASSWORD", "AUDIT_DB_PATH"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("AGENT_PRIVATE_KEY", TEST_KEY)
    monkeypatch.setenv("MONAD_RPC_URL", "http://127.0.0.1:8545")
    monkeypatch.setenv("MONAD_CHAIN_ID", str(CHAIN_ID))
    monkeypatch.setenv("RECEIPT_POLL_INTERVAL_SEC", "0.01")
    return monkeypatch


@pytest.fixture
def signer(signer_env):
    return EnvPrivateKeySigner(chain_id=CHAIN_ID)


@pytest.fixture
def legacy_tx():
    return PreparedTransaction(
        to=RECIPIENT,
        gas=21000,
        nonce=5,
        chain_id=CHAIN_ID,
        gas_price=1_000_000_000,
    )
