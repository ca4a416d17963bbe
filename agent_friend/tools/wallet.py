"""以太坊钱包工具后端。

通过 JSON-RPC（web3.py）完成三件事：
- generate_wallet: 本地生成密钥对，只返回地址；
- get_balance: 查询地址余额；
- send: 用 key ring 借出的私钥签名并广播一笔 ETH 转账。

后端失败统一抛出 ToolError，由 ToolExecutor 转换为 ToolOutcome.failure。
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from eth_account import Account
from web3 import Web3

from agent_friend.config.settings import Settings
from agent_friend.domain.exceptions import ToolError
from agent_friend.tools.definitions import FailureReason
from agent_friend.tools.keys import KeyRing

Web3Factory = Callable[[], Web3]


def _checksum(address: Any, field: str) -> str:
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ToolError(FailureReason.INVALID_ADDRESS, f"{field} is not a valid address: {address!r}")
    return Web3.to_checksum_address(address)


def parse_amount(raw: Any) -> Decimal:
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ToolError(FailureReason.INVALID_ARGUMENTS, f"amount is not a number: {raw!r}")
    if not amount.is_finite() or amount <= 0:
        raise ToolError(FailureReason.INVALID_ARGUMENTS, "amount must be a positive number of ETH")
    # 1 wei = 1e-18 ETH，更细的精度无法表示
    if amount.normalize().as_tuple().exponent < -18:
        raise ToolError(FailureReason.INVALID_ARGUMENTS, f"amount {raw!r} has more than 18 decimal places")
    return amount


def amount_to_wei(raw: Any) -> int:
    amount = parse_amount(raw)
    try:
        value = Web3.to_wei(amount, "ether")
    except ValueError:
        raise ToolError(FailureReason.INVALID_ARGUMENTS, f"amount {raw!r} is out of range")
    if value <= 0:
        raise ToolError(FailureReason.INVALID_ARGUMENTS, f"amount {raw!r} is less than 1 wei")
    return value


def format_eth(wei: int) -> str:
    return format(Decimal(Web3.from_wei(wei, "ether")).normalize(), "f")


def _raw_transaction(signed: Any) -> bytes:
    raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
    if raw_tx is None:
        raise ToolError(FailureReason.SIGNING_FAILED, "signed transaction missing raw_transaction")
    return raw_tx


class EthereumBackend:
    """无状态的钱包后端，只持有 RPC 地址与超时设置。"""

    def __init__(self, cfg: Settings, web3_factory: Optional[Web3Factory] = None):
        self._rpc_url = cfg.eth_rpc_url
        self._timeout = cfg.rpc_timeout
        self._gas_limit = cfg.gas_limit
        self._web3_factory = web3_factory or self._default_web3

    def _default_web3(self) -> Web3:
        return Web3(Web3.HTTPProvider(self._rpc_url, request_kwargs={"timeout": self._timeout}))

    def _rpc(self, what: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except ToolError:
            raise
        except Exception as exc:
            raise ToolError(FailureReason.RPC_UNAVAILABLE, f"{what} failed: {exc}") from exc

    # ---- wallet_generate ----

    def generate_wallet(self, keys: Optional[KeyRing] = None) -> Dict[str, Any]:
        try:
            acct = Account.create()
        except Exception as exc:
            raise ToolError(FailureReason.KEY_GENERATION_FAILED, f"key generation failed: {exc}") from exc
        address = acct.address
        retained = keys is not None
        if keys is not None:
            keys.store(address, bytes(acct.key))
        del acct
        if retained:
            note = "A new private key was generated and is held in this session's key ring; it is never shown or stored."
        else:
            note = "A new private key was generated and then discarded; it is never shown or stored."
        return {"address": address, "note": note, "key_retained": retained}

    # ---- wallet_balance ----

    def get_balance(self, address: Any) -> Dict[str, Any]:
        checksum = _checksum(address, "address")
        w3 = self._rpc("connect", self._web3_factory)
        wei = self._rpc("eth_getBalance", lambda: w3.eth.get_balance(checksum))
        chain_id = self._rpc("eth_chainId", lambda: w3.eth.chain_id)
        return {
            "address": checksum,
            "balance": format_eth(wei),
            "balance_wei": str(wei),
            "unit": "ETH",
            "chain_id": chain_id,
        }

    # ---- wallet_send ----

    def send(self, sender: Any, recipient: Any, amount: Any, keys: Optional[KeyRing]) -> Dict[str, Any]:
        from_addr = _checksum(sender, "from")
        to_addr = _checksum(recipient, "to")
        value = amount_to_wei(amount)

        signing_key = keys.acquire(from_addr) if keys is not None else None
        if signing_key is None:
            raise ToolError(FailureReason.SIGNING_FAILED, f"no key material available for {from_addr}")

        with signing_key:
            w3 = self._rpc("connect", self._web3_factory)
            balance = self._rpc("eth_getBalance", lambda: w3.eth.get_balance(from_addr))
            gas_price = self._rpc("eth_gasPrice", lambda: w3.eth.gas_price)
            cost = value + self._gas_limit * gas_price
            if cost > balance:
                raise ToolError(
                    FailureReason.INSUFFICIENT_FUNDS,
                    f"balance {format_eth(balance)} ETH cannot cover {format_eth(value)} ETH plus gas",
                )
            tx = {
                "from": from_addr,
                "to": to_addr,
                "value": value,
                "gas": self._gas_limit,
                "gasPrice": gas_price,
                "nonce": self._rpc("eth_getTransactionCount", lambda: w3.eth.get_transaction_count(from_addr, "pending")),
                "chainId": self._rpc("eth_chainId", lambda: w3.eth.chain_id),
            }
            try:
                signed = signing_key.sign_transaction(tx)
            except Exception as exc:
                raise ToolError(FailureReason.SIGNING_FAILED, f"signing failed: {type(exc).__name__}") from None
            raw_tx = _raw_transaction(signed)
            tx_hash = self._rpc("eth_sendRawTransaction", lambda: w3.eth.send_raw_transaction(raw_tx))
        return {"tx_hash": Web3.to_hex(tx_hash), "from": from_addr, "to": to_addr, "amount": format_eth(value), "unit": "ETH"}
