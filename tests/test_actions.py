import json
from unittest.mock import MagicMock

import pytest
from web3 import HTTPProvider, Web3

import agent_cli
from errors import IncompleteFeeFields, MalformedInput
from execution import actions
from signing import FeeModel

from conftest import CHAIN_ID, RECIPIENT, TEST_ADDRESS

ERC20_ABI = [
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    }
]


class RecordingSigner:
    """Stands in for the signer process: signs locally and records what would be sent."""

    def __init__(self, inner):
        self.inner = inner
        self.signed = []
        self.sent = []

    def get_address(self):
        return self.inner.get_address()

    def sign_transaction(self, tx):
        self.signed.append(tx)
        return self.inner.sign_transaction(tx)

    def send_signed(self, serialized, *, wait=False, timeout=None):
        self.sent.append((serialized, wait, timeout))
        return {"hash": "0x" + "aa" * 32, "status": "submitted"}


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.gas_price = 3_000_000_000
    w3.eth.estimate_gas.return_value = 50_000
    return w3


def test_send_native_uses_pending_nonce_and_network_gas_price(w3, signer):
    rec = RecordingSigner(signer)
    out = actions.send_native(w3, rec, to=RECIPIENT, value=10**18, chain_id=CHAIN_ID)

    tx = rec.signed[0]
    assert (tx.nonce, tx.gas, tx.gas_price, tx.value) == (7, 21000, 3_000_000_000, 10**18)
    w3.eth.get_transaction_count.assert_called_once_with(TEST_ADDRESS, "pending")
    assert out["from"] == TEST_ADDRESS
    assert out["value"] == str(10**18)
    assert out["status"] == "submitted"
    assert out["signHash"].startswith("0x")


def test_send_native_eip1559_requires_both_fees(w3, signer):
    rec = RecordingSigner(signer)
    with pytest.raises(IncompleteFeeFields):
        actions.send_native(
            w3, rec, to=RECIPIENT, value=1, chain_id=CHAIN_ID, tx_type=FeeModel.EIP1559, max_fee_per_gas_wei=10
        )
    assert rec.sent == []


def test_send_native_eip1559(w3, signer):
    rec = RecordingSigner(signer)
    actions.send_native(
        w3,
        rec,
        to=RECIPIENT,
        value=1,
        chain_id=CHAIN_ID,
        tx_type=FeeModel.EIP1559,
        max_fee_per_gas_wei=20,
        max_priority_fee_per_gas_wei=2,
        wait=True,
        timeout=30,
    )
    tx = rec.signed[0]
    assert tx.gas_price is None
    assert (tx.max_fee_per_gas, tx.max_priority_fee_per_gas) == (20, 2)
    assert rec.sent[0][1:] == (True, 30)


def test_write_contract_estimates_with_buffer(w3, signer):
    w3.eth.contract.return_value.encode_abi.return_value = "0xa9059cbb"
    rec = RecordingSigner(signer)
    out = actions.write_contract(
        w3,
        rec,
        to=RECIPIENT,
        abi=ERC20_ABI,
        function="transfer",
        args=[RECIPIENT, 5],
        chain_id=CHAIN_ID,
        gas_price_wei=1,
    )
    assert rec.signed[0].gas == 60_000
    assert rec.signed[0].data == "0xa9059cbb"
    assert (out["estimatedGas"], out["gasLimit"]) == ("50000", "60000")
    w3.eth.contract.return_value.encode_abi.assert_called_once_with("transfer", args=[RECIPIENT, 5])


def test_write_contract_explicit_gas(w3, signer):
    w3.eth.contract.return_value.encode_abi.return_value = "0xa9059cbb"
    rec = RecordingSigner(signer)
    out = actions.write_contract(
        w3, rec, to=RECIPIENT, abi=ERC20_ABI, function="transfer", args=[], chain_id=CHAIN_ID, gas=99_000, gas_price_wei=1
    )
    assert out["gasLimit"] == "99000"
    assert out["estimatedGas"] is None
    w3.eth.estimate_gas.assert_not_called()


def test_read_contract(w3):
    w3.eth.contract.return_value.functions.balanceOf.return_value.call.return_value = 10**30
    out = actions.read_contract(w3, to=RECIPIENT, abi=ERC20_ABI, function="balanceOf", args=[RECIPIENT], chain_id=CHAIN_ID)
    assert out["result"] == str(10**30)
    assert out["functionName"] == "balanceOf"


def test_load_abi_rejects_js_export(tmp_path):
    path = tmp_path / "abi.ts"
    path.write_text("export const abi = []")
    with pytest.raises(MalformedInput) as e:
        actions.load_abi(path, None)
    assert "pure JSON ABI" in str(e.value)


def test_load_abi_sources(tmp_path):
    path = tmp_path / "abi.json"
    path.write_text(json.dumps(ERC20_ABI))
    assert actions.load_abi(path, None) == ERC20_ABI
    assert actions.load_abi(None, json.dumps(ERC20_ABI)) == ERC20_ABI
    with pytest.raises(MalformedInput):
        actions.load_abi(None, None)
    with pytest.raises(MalformedInput):
        actions.load_abi(None, '{"not": "a list"}')


def test_agent_cli_send_native(signer_env, w3, signer, monkeypatch, capsys):
    rec = RecordingSigner(signer)
    monkeypatch.setattr(agent_cli, "get_web3", lambda *a, **kw: w3)
    monkeypatch.setattr(agent_cli, "ProcessSigner", lambda *a, **kw: rec)

    rc = agent_cli.main(["send-native", "--to", RECIPIENT, "--value-eth", "0.5", "--gas-price-wei", "1000000000"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["value"] == "500000000000000000"
    assert rec.signed[0].gas_price == 1_000_000_000


def test_agent_cli_reports_typed_error(signer_env, monkeypatch, capsys):
    monkeypatch.setattr(agent_cli, "get_web3", lambda *a, **kw: MagicMock())
    rc = agent_cli.main(["send-native", "--to", RECIPIENT, "--value-wei", "1", "--value-eth", "1"])
    assert rc == 1
    assert "agent-tx error [malformed_input]" in capsys.readouterr().err


BALANCE_OF = "function balanceOf(address owner) view returns (uint256)"


def test_load_abi_from_signature():
    assert actions.load_abi(None, None, BALANCE_OF) == [
        {
            "type": "function",
            "name": "balanceOf",
            "inputs": [{"type": "address", "name": "owner"}],
            "outputs": [{"type": "uint256", "name": ""}],
            "stateMutability": "view",
        }
    ]
    with pytest.raises(MalformedInput) as e:
        actions.load_abi(None, json.dumps(ERC20_ABI), BALANCE_OF)
    assert "--abi-json, --signature" in str(e.value)


def _eth_call_returning(monkeypatch, value):
    w3 = Web3(HTTPProvider("http://127.0.0.1:1"))
    calls = []

    def fake_call(tx, *args, **kwargs):
        calls.append(tx)
        return value.to_bytes(32, "big")

    monkeypatch.setattr(w3.eth, "call", fake_call)
    return w3, calls


def test_read_contract_through_signature_abi(monkeypatch):
    w3, calls = _eth_call_returning(monkeypatch, 10**30)
    abi = actions.load_abi(signature=BALANCE_OF)
    out = actions.read_contract(w3, to=RECIPIENT, abi=abi, function="balanceOf", args=[RECIPIENT], chain_id=CHAIN_ID)
    assert out["result"] == str(10**30)
    assert calls[0]["data"].startswith("0x70a08231")


def test_agent_cli_read_contract_with_signature(signer_env, monkeypatch, capsys):
    w3, calls = _eth_call_returning(monkeypatch, 42)
    monkeypatch.setattr(agent_cli, "get_web3", lambda *a, **kw: w3)

    argv = [
        "read-contract",
        "--to",
        RECIPIENT,
        "--function",
        "balanceOf",
        "--signature",
        BALANCE_OF,
        "--args-json",
        json.dumps([RECIPIENT]),
    ]
    assert agent_cli.main(argv) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["result"] == "42"
    assert out["functionName"] == "balanceOf"
    assert len(calls) == 1


def test_agent_cli_unexpected_error_is_reported(signer_env, monkeypatch, capsys):
    def boom(*a, **kw):
        raise RuntimeError("boom")

    monkeypatch.setattr(agent_cli, "get_web3", lambda *a, **kw: MagicMock())
    monkeypatch.setattr(agent_cli.actions, "read_contract", boom)

    argv = ["read-contract", "--to", RECIPIENT, "--function", "balanceOf", "--abi-json", "[]"]
    assert agent_cli.main(argv) == 1
    err = capsys.readouterr().err
    assert "agent-tx error [app_error]: boom" in err
    assert 'agent-tx error data: {"exception": "RuntimeError"}' in err
