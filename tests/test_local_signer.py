import rlp
import pytest
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from errors import AddressMismatch, ChainMismatch, ConfigurationError, IncompleteFeeFields, KeyNotConfigured, MalformedAddress
from signing import EnvPrivateKeySigner, FeeModel, PreparedTransaction, content_hash

from conftest import CHAIN_ID, OTHER_ADDRESS, RECIPIENT, TEST_ADDRESS, TEST_KEY


def _bad_checksum(addr: str) -> str:
    body = addr[2:]
    for i, ch in enumerate(body):
        if ch.isalpha():
            return "0x" + body[:i] + ch.swapcase() + body[i + 1 :]
    raise AssertionError("address has no letters")


def test_signing_is_deterministic(signer, legacy_tx):
    a = signer.sign_transaction(legacy_tx)
    b = signer.sign_transaction(legacy_tx)
    assert a == b


def test_hash_is_keccak_of_serialized_bytes(signer, legacy_tx):
    signed = signer.sign_transaction(legacy_tx)
    raw = bytes.fromhex(signed.serialized_transaction[2:])
    assert signed.hash == "0x" + keccak(raw).hex()
    assert content_hash(signed.serialized_transaction) == signed.hash


def test_legacy_end_to_end_value_defaults_to_zero(signer):
    tx = PreparedTransaction(to=RECIPIENT, gas=21000, nonce=5, chain_id=CHAIN_ID, type=FeeModel.LEGACY, gas_price=1_000_000_000)
    signed = signer.sign_transaction(tx)

    raw = bytes.fromhex(signed.serialized_transaction[2:])
    nonce, gas_price, gas, to, value, data, v, r, s = rlp.decode(raw)
    assert int.from_bytes(nonce, "big") == 5
    assert int.from_bytes(gas_price, "big") == 1_000_000_000
    assert int.from_bytes(gas, "big") == 21000
    assert to == bytes.fromhex(RECIPIENT[2:])
    assert value == b""
    assert data == b""
    # EIP-155: v = chainId * 2 + 35 + recovery bit
    assert int.from_bytes(v, "big") in (CHAIN_ID * 2 + 35, CHAIN_ID * 2 + 36)

    assert Account.recover_transaction(signed.serialized_transaction) == TEST_ADDRESS


def test_eip1559_signing(signer):
    tx = PreparedTransaction(
        to=RECIPIENT,
        gas=21000,
        nonce=0,
        chain_id=CHAIN_ID,
        type=FeeModel.EIP1559,
        value=10**18,
        max_fee_per_gas=2_000_000_000,
        max_priority_fee_per_gas=1_000_000_000,
    )
    signed = signer.sign_transaction(tx)
    assert signed.serialized_transaction.startswith("0x02")
    assert Account.recover_transaction(signed.serialized_transaction) == TEST_ADDRESS


def test_eip1559_missing_priority_fee_fails_before_signing(signer):
    tx = PreparedTransaction(to=RECIPIENT, gas=21000, nonce=0, chain_id=CHAIN_ID, type=FeeModel.EIP1559, max_fee_per_gas=1)
    with pytest.raises(IncompleteFeeFields):
        signer.sign_transaction(tx)


def test_chain_mismatch(signer):
    tx = PreparedTransaction(to=RECIPIENT, gas=21000, nonce=0, chain_id=1, gas_price=1)
    with pytest.raises(ChainMismatch):
        signer.sign_transaction(tx)


def test_malformed_recipient(signer):
    tx = PreparedTransaction(to="0x1234", gas=21000, nonce=0, chain_id=CHAIN_ID, gas_price=1)
    with pytest.raises(MalformedAddress):
        signer.sign_transaction(tx)


def test_bad_checksum_recipient_rejected(signer):
    bad = _bad_checksum(to_checksum_address(RECIPIENT))
    tx = PreparedTransaction(to=bad, gas=21000, nonce=0, chain_id=CHAIN_ID, gas_price=1)
    with pytest.raises(MalformedAddress):
        signer.sign_transaction(tx)


def test_lowercase_recipient_is_checksummed(signer, legacy_tx):
    upper = PreparedTransaction(
        to=to_checksum_address(RECIPIENT), gas=21000, nonce=5, chain_id=CHAIN_ID, gas_price=1_000_000_000
    )
    assert signer.sign_transaction(legacy_tx) == signer.sign_transaction(upper)


def test_address_derived_from_key(signer):
    assert signer.get_address() == TEST_ADDRESS


def test_expected_address_match_is_case_insensitive(signer_env):
    s = EnvPrivateKeySigner(chain_id=CHAIN_ID, expected_address=TEST_ADDRESS.lower())
    assert s.get_address() == TEST_ADDRESS


def test_expected_address_mismatch(signer_env):
    with pytest.raises(AddressMismatch) as e:
        EnvPrivateKeySigner(chain_id=CHAIN_ID, expected_address=OTHER_ADDRESS)
    assert e.value.data["derived_address"] == TEST_ADDRESS
    assert e.value.data["expected_address"] == to_checksum_address(OTHER_ADDRESS)


def test_missing_key(signer_env):
    signer_env.delenv("AGENT_PRIVATE_KEY")
    with pytest.raises(KeyNotConfigured) as e:
        EnvPrivateKeySigner(chain_id=CHAIN_ID)
    assert "AGENT_PRIVATE_KEY" in str(e.value)


def test_invalid_key_is_not_echoed(signer_env):
    signer_env.setenv("AGENT_PRIVATE_KEY", "0xdeadbeef")
    with pytest.raises(ConfigurationError) as e:
        EnvPrivateKeySigner(chain_id=CHAIN_ID)
    assert "deadbeef" not in str(e.value)


def test_repr_does_not_leak_key(signer):
    assert TEST_KEY[2:] not in repr(signer)
