"""Test fixtures: temporary keystores and an in-memory chain."""

from __future__ import annotations

from pathlib import Path

import pytest
from eth_account import Account
from web3 import Web3
from web3.providers.base import BaseProvider

from cp_wallet.chain.client import ChainClient, Receipt
from cp_wallet.config import ChainConfig, ContractConfig, CpConfig, WalletConfig
from cp_wallet.wallet.keystore import FileKeyRepository
from cp_wallet.wallet.local import LocalWallet

COLLATERAL = "0x" + "11" * 20
FCP_COLLATERAL = "0x" + "22" * 20
TOKEN = "0x" + "33" * 20
CP_ACCOUNT = "0x" + "44" * 20


class FakeChain:
    """Scriptable stand-in for :class:`cp_wallet.chain.client.ChainClient`."""

    def __init__(
        self,
        nonce: int = 7,
        gas_price: int = 1_000_000_000,
        chain_id: int = 254,
        receipts: list[Receipt | None] | None = None,
    ) -> None:
        self.nonce = nonce
        self.gas_price = gas_price
        self.id = chain_id
        self.receipts = list(receipts or [])
        self.balances: dict[str, int] = {}
        self.call_results: dict[str, object] = {}
        self.failures: dict[str, Exception] = {}
        self.events: list[tuple] = []
        self.built: list[tuple] = []
        self.sent: list[bytes] = []
        self.receipt_polls = 0
        self.closed = False

    def _record(self, name: str, *args: object) -> None:
        self.events.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def __enter__(self) -> FakeChain:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def pending_nonce(self, address: str) -> int:
        self._record("pending_nonce", address)
        return self.nonce

    def suggested_gas_price(self) -> int:
        self._record("suggested_gas_price")
        return self.gas_price

    def chain_id(self) -> int:
        self._record("chain_id")
        return self.id

    def max_priority_fee(self) -> int:
        return 1

    def estimate_gas(self, tx: dict) -> int:
        return 21_000

    def balance(self, address: str) -> int:
        self._record("balance", address)
        return self.balances.get(address, 0)

    def transaction_receipt(self, tx_hash: str) -> Receipt | None:
        self.receipt_polls += 1
        self._record("transaction_receipt", tx_hash)
        return self.receipts.pop(0) if self.receipts else None

    def build_contract_transaction(self, contract_address, abi, method, args, tx):
        self._record("build", method)
        self.built.append((contract_address, method, tuple(args), dict(tx)))
        out = dict(tx)
        out.update(to=contract_address, data="0x", gas=100_000, maxPriorityFeePerGas=1)
        out.setdefault("value", 0)
        return out

    def send_raw_transaction(self, raw_transaction: bytes) -> str:
        self._record("send_raw_transaction")
        self.sent.append(bytes(raw_transaction))
        return Web3.to_hex(Web3.keccak(raw_transaction))

    def call(self, contract_address, abi, method, args=()):
        self._record("call", method, tuple(args))
        return self.call_results[method]


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def success(tx_hash: str = "0xparent") -> Receipt:
    return Receipt(tx_hash=tx_hash, status=1, block_number=100)


def failure(tx_hash: str = "0xparent") -> Receipt:
    return Receipt(tx_hash=tx_hash, status=0, block_number=100)


class ScriptedProvider(BaseProvider):
    """JSON-RPC provider answering from a method-to-result table.

    A method listed in *errors* answers with a JSON-RPC error object.  When
    *down* is set every request raises it from the transport.
    """

    def __init__(
        self,
        results: dict | None = None,
        errors: dict | None = None,
        down: Exception | None = None,
    ) -> None:
        super().__init__()
        self.down = down
        self.results = {"eth_chainId": "0xfe", **(results or {})}
        self.errors = errors or {}
        self.methods: list[str] = []

    def make_request(self, method, params):
        self.methods.append(method)
        if self.down is not None:
            raise self.down
        if method in self.errors:
            return {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": self.errors[method]}}
        return {"jsonrpc": "2.0", "id": 1, "result": self.results.get(method)}

    def is_connected(self, show_traceback: bool = False) -> bool:
        return True


def scripted_client(provider: ScriptedProvider) -> ChainClient:
    client = ChainClient("http://127.0.0.1:8545")
    client.w3 = Web3(provider)
    return client


@pytest.fixture
def repository(tmp_path: Path) -> FileKeyRepository:
    """Create an empty filesystem key repository."""
    return FileKeyRepository(tmp_path / "keystore")


@pytest.fixture
def wallet(repository: FileKeyRepository) -> LocalWallet:
    return LocalWallet(repository)


@pytest.fixture
def private_key() -> str:
    """A fresh hex private key (no 0x prefix)."""
    return Account.create().key.hex().removeprefix("0x")


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path: Path) -> CpConfig:
    """A config pointing every contract at a fixed dummy address."""
    cfg = CpConfig(
        chain=ChainConfig(default_rpc="local", rpcs={"local": "http://127.0.0.1:8545"}),
        contract=ContractConfig(
            collateral=COLLATERAL,
            fcp_collateral=FCP_COLLATERAL,
            token=TOKEN,
            account=CP_ACCOUNT,
        ),
        wallet=WalletConfig(keystore_dir=str(tmp_path / "keystore")),
    )
    cfg.repo_path = tmp_path
    return cfg
