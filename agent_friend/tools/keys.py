"""签名私钥的持有与借用。

私钥只以 bytearray 形式存放，借出时复制一份交给 SigningKey，
with 块结束（包括异常退出）时立即清零。私钥不会出现在 repr、日志或会话记录中。
"""

import threading
from typing import Any, Dict, Optional, Protocol, Union

from eth_account import Account
from web3 import Web3


class SigningKey:
    """一次签名期间持有的私钥副本，退出 with 块即清零。

    清零只覆盖内部的 bytearray。eth-account 签名时需要不可变的 bytes，
    该 bytes 副本无法被清零，只在 sign_transaction 内部短暂存在，
    不返回、不保存到任何属性。需要签名时请调用 sign_transaction，不要自行持有 secret()。
    """

    def __init__(self, address: str, material: bytearray):
        self.address = address
        self._material = material

    def secret(self) -> bytes:
        if not any(self._material):
            raise RuntimeError("signing key already wiped")
        return bytes(self._material)

    def sign_transaction(self, tx: Dict[str, Any]) -> Any:
        return Account.sign_transaction(tx, self.secret())

    def wipe(self) -> None:
        for i in range(len(self._material)):
            self._material[i] = 0

    def __enter__(self) -> "SigningKey":
        return self

    def __exit__(self, *exc) -> bool:
        self.wipe()
        return False

    def __repr__(self) -> str:
        return f"SigningKey(address={self.address!r}, material=<redacted>)"


class KeyRing(Protocol):
    def store(self, address: str, private_key: Union[bytes, str]) -> None:
        ...

    def acquire(self, address: str) -> Optional[SigningKey]:
        ...


def _normalize(address: str) -> str:
    return Web3.to_checksum_address(address)


def _to_bytes(private_key: Union[bytes, str]) -> bytearray:
    if isinstance(private_key, str):
        text = private_key[2:] if private_key.startswith(("0x", "0X")) else private_key
        return bytearray(bytes.fromhex(text))
    return bytearray(private_key)


class InMemoryKeyRing:
    """进程内 key ring。进程退出或 close() 时清零全部私钥。"""

    def __init__(self):
        self._keys: Dict[str, bytearray] = {}
        self._lock = threading.Lock()

    def store(self, address: str, private_key: Union[bytes, str]) -> None:
        material = _to_bytes(private_key)
        with self._lock:
            old = self._keys.pop(_normalize(address), None)
            if old is not None:
                SigningKey(address, old).wipe()
            self._keys[_normalize(address)] = material

    def acquire(self, address: str) -> Optional[SigningKey]:
        key = _normalize(address)
        with self._lock:
            material = self._keys.get(key)
            if material is None:
                return None
            return SigningKey(key, bytearray(material))

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return _normalize(address) in self._keys

    def close(self) -> None:
        with self._lock:
            for address, material in self._keys.items():
                SigningKey(address, material).wipe()
            self._keys.clear()

    def __repr__(self) -> str:
        return f"InMemoryKeyRing(addresses={sorted(self._keys)!r})"
