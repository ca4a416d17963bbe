import pytest
from eth_account import Account
from web3 import Web3

from agent_friend.domain.exceptions import ToolError
from agent_friend.tools.definitions import FailureReason
from agent_friend.tools.keys import InMemoryKeyRing, SigningKey
from agent_friend.tools.wallet import EthereumBackend, _raw_transaction, amount_to_wei, format_eth, parse_amount

RECIPIENT = "0x" + "22" * 20


class SettingsStub:
    eth_rpc_url = "http://rpc.test"
    rpc_timeout = 1.0
    gas_limit = 21000


class FakeEth:
    def __init__(self, balance_wei, gas_price=10, chain_id=11155111, fail_send=False):
        self.balance_wei = balance_wei
        self.gas_price = gas_price
        self.chain_id = chain_id
        self.fail_send = fail_send
        self.sent = []

    def get_balance(self, address):
        return self.balance_wei

    def get_transaction_count(self, address, block_identifier="latest"):
        return 7

    def send_raw_transaction(self, raw_tx):
        if self.fail_send:
            raise ConnectionError("rpc down")
        self.sent.append(raw_tx)
        return Web3.keccak(raw_tx)


class FakeWeb3:
    def __init__(self, eth):
        self.eth = eth


class SpyKeyRing(InMemoryKeyRing):
    def __init__(self):
        super().__init__()
        self.lent = []

    def acquire(self, address):
        key = super().acquire(address)
        if key is not None:
            self.lent.append(key)
        return key


def _backend(eth):
    return EthereumBackend(SettingsStub(), web3_factory=lambda: FakeWeb3(eth))


def test_generate_wallet_without_key_ring_forgets_key():
    res = _backend(FakeEth(0)).generate_wallet()
    assert Web3.is_checksum_address(res["address"])
    assert res["key_retained"] is False
    assert set(res) == {"address", "note", "key_retained"}


def test_generate_wallet_with_key_ring_retains_key():
    keys = InMemoryKeyRing()
    res = _backend(FakeEth(0)).generate_wallet(keys)
    assert res["key_retained"] is True
    assert res["address"] in keys


def test_get_balance():
    res = _backend(FakeEth(Web3.to_wei(1.5, "ether"))).get_balance(RECIPIENT.lower())
    assert res["balance"] == "1.5"
    assert res["unit"] == "ETH"
    assert res["chain_id"] == 11155111
    assert res["address"] == Web3.to_checksum_address(RECIPIENT)


def test_get_balance_invalid_address():
    with pytest.raises(ToolError) as exc:
        _backend(FakeEth(0)).get_balance("0xABC")
    assert exc.value.reason is FailureReason.INVALID_ADDRESS


def test_get_balance_rpc_unavailable():
    def broken():
        raise ConnectionError("refused")

    backend = EthereumBackend(SettingsStub(), web3_factory=broken)
    with pytest.raises(ToolError) as exc:
        backend.get_balance(RECIPIENT)
    assert exc.value.reason is FailureReason.RPC_UNAVAILABLE


def test_send_signs_broadcasts_and_wipes_key():
    acct = Account.create()
    keys = SpyKeyRing()
    keys.store(acct.address, bytes(acct.key))
    eth = FakeEth(Web3.to_wei(1, "ether"))
    res = _backend(eth).send(acct.address, RECIPIENT, "0.25", keys)
    assert res["tx_hash"].startswith("0x") and len(res["tx_hash"]) == 66
    assert len(eth.sent) == 1
    assert res["tx_hash"] == Web3.to_hex(Web3.keccak(eth.sent[0]))
    assert res["amount"] == "0.25"
    assert len(keys.lent) == 1
    with pytest.raises(RuntimeError):
        keys.lent[0].secret()
    # key ring still holds its own copy for later sends
    assert acct.address in keys


def test_send_insufficient_funds_broadcasts_nothing():
    acct = Account.create()
    keys = SpyKeyRing()
    keys.store(acct.address, bytes(acct.key))
    eth = FakeEth(Web3.to_wei(0.1, "ether"))
    with pytest.raises(ToolError) as exc:
        _backend(eth).send(acct.address, RECIPIENT, 5, keys)
    assert exc.value.reason is FailureReason.INSUFFICIENT_FUNDS
    assert eth.sent == []
    with pytest.raises(RuntimeError):
        keys.lent[0].secret()


def test_send_without_key_material():
    with pytest.raises(ToolError) as exc:
        _backend(FakeEth(10**18)).send(RECIPIENT, RECIPIENT, "0.1", InMemoryKeyRing())
    assert exc.value.reason is FailureReason.SIGNING_FAILED
    with pytest.raises(ToolError) as exc:
        _backend(FakeEth(10**18)).send(RECIPIENT, RECIPIENT, "0.1", None)
    assert exc.value.reason is FailureReason.SIGNING_FAILED


def test_send_invalid_addresses_and_amounts():
    backend = _backend(FakeEth(10**18))
    with pytest.raises(ToolError) as exc:
        backend.send("not-an-address", RECIPIENT, "0.1", InMemoryKeyRing())
    assert exc.value.reason is FailureReason.INVALID_ADDRESS
    with pytest.raises(ToolError) as exc:
        backend.send(RECIPIENT, "0x123", "0.1", InMemoryKeyRing())
    assert exc.value.reason is FailureReason.INVALID_ADDRESS
    for bad in ("-1", "0", "lots", "NaN"):
        with pytest.raises(ToolError) as exc:
            parse_amount(bad)
        assert exc.value.reason is FailureReason.INVALID_ARGUMENTS
    for bad in ("0.0000000000000000001", "1.0000000000000000005", "1e100"):
        with pytest.raises(ToolError) as exc:
            amount_to_wei(bad)
        assert exc.value.reason is FailureReason.INVALID_ARGUMENTS
    assert amount_to_wei("0.000000000000000001") == 1
    assert amount_to_wei(1.5) == 15 * 10**17


def test_send_rejects_sub_wei_amount_without_broadcasting():
    acct = Account.create()
    keys = SpyKeyRing()
    keys.store(acct.address, bytes(acct.key))
    eth = FakeEth(Web3.to_wei(1, "ether"))
    with pytest.raises(ToolError) as exc:
        _backend(eth).send(acct.address, RECIPIENT, "0.0000000000000000001", keys)
    assert exc.value.reason is FailureReason.INVALID_ARGUMENTS
    assert eth.sent == []
    assert keys.lent == []


def test_send_broadcast_failure_is_rpc_unavailable():
    acct = Account.create()
    keys = InMemoryKeyRing()
    keys.store(acct.address, bytes(acct.key))
    with pytest.raises(ToolError) as exc:
        _backend(FakeEth(10**18, fail_send=True)).send(acct.address, RECIPIENT, "0.1", keys)
    assert exc.value.reason is FailureReason.RPC_UNAVAILABLE


def test_format_eth():
    assert format_eth(0) == "0"
    assert format_eth(10**18) == "1"
    assert format_eth(1) == "0.000000000000000001"


def test_signing_key_wiped_on_error_and_redacted():
    key = SigningKey(RECIPIENT, bytearray(b"\x01" * 32))
    with pytest.raises(ValueError):
        with key:
            assert key.secret() == b"\x01" * 32
            raise ValueError("boom")
    with pytest.raises(RuntimeError):
        key.secret()
    assert "redacted" in repr(key)
    assert "01" * 32 not in repr(key)


def test_key_ring_close_wipes_everything():
    acct = Account.create()
    keys = InMemoryKeyRing()
    keys.store(acct.address, acct.key.hex())
    assert keys.acquire(acct.address.lower()).secret() == bytes(acct.key)
    keys.close()
    assert keys.acquire(acct.address) is None


def test_signing_key_signs_inside_scope_only():
    acct = Account.create()
    tx = {"to": RECIPIENT, "value": 1, "gas": 21000, "gasPrice": 1, "nonce": 0, "chainId": 1}
    key = SigningKey(acct.address, bytearray(acct.key))
    with key:
        signed = key.sign_transaction(tx)
        assert Account.recover_transaction(_raw_transaction(signed)) == acct.address
    with pytest.raises(RuntimeError):
        key.sign_transaction(tx)
