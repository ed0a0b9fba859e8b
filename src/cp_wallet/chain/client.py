"""Scoped Web3 connection to an EVM chain endpoint.

A :class:`ChainClient` owns its HTTP session; use it as a context manager so
the session is released on every exit path.  The client never retries a
failed request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence
from urllib.parse import urlparse

import requests
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from cp_wallet.errors import (
    ChainError,
    ChainIdFetchError,
    GasPriceFetchError,
    NonceFetchError,
    RpcConnectionError,
    TransactionSubmitError,
)

logger = logging.getLogger("cp_wallet.chain.client")

RECEIPT_STATUS_SUCCESS = 1

# Failures of a single JSON-RPC round trip.
RPC_ERRORS = (Web3Exception, requests.RequestException, ValueError, ChainError)


@dataclass(frozen=True)
class Receipt:
    """Outcome of a mined transaction."""

    tx_hash: str
    status: int
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == RECEIPT_STATUS_SUCCESS


class ChainClient:
    """JSON-RPC client for one chain endpoint.

    Parameters
    ----------
    rpc_url:
        HTTP(S) endpoint of the chain node.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(self, rpc_url: str, timeout: float = 30.0) -> None:
        parsed = urlparse(rpc_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise RpcConnectionError(f"dial rpc connect failed: invalid url {rpc_url!r}")
        self.rpc_url = rpc_url
        self._session = requests.Session()
        self.w3 = Web3(
            Web3.HTTPProvider(
                rpc_url,
                request_kwargs={"timeout": timeout},
                session=self._session,
                exception_retry_configuration=None,
            )
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> ChainClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Account state
    # ------------------------------------------------------------------

    def pending_nonce(self, address: str) -> int:
        try:
            return self.w3.eth.get_transaction_count(Web3.to_checksum_address(address), "pending")
        except RPC_ERRORS as exc:
            raise NonceFetchError(f"address: {address}, get pending nonce error: {exc}") from exc

    def suggested_gas_price(self) -> int:
        try:
            return self.w3.eth.gas_price
        except RPC_ERRORS as exc:
            raise GasPriceFetchError(f"suggest gas price error: {exc}") from exc

    def chain_id(self) -> int:
        try:
            return self.w3.eth.chain_id
        except RPC_ERRORS as exc:
            raise ChainIdFetchError(f"get chain id error: {exc}") from exc

    def balance(self, address: str) -> int:
        """Native balance of *address* in wei."""
        try:
            return self.w3.eth.get_balance(Web3.to_checksum_address(address))
        except RPC_ERRORS as exc:
            raise ChainError(f"address: {address}, get balance error: {exc}") from exc

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def transaction_receipt(self, tx_hash: str) -> Receipt | None:
        """Return the receipt for *tx_hash*, or ``None`` if it is not mined yet."""
        try:
            raw = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except RPC_ERRORS as exc:
            raise ChainError(f"receipt lookup for tx {tx_hash} failed: {exc}") from exc
        return Receipt(
            tx_hash=tx_hash,
            status=int(raw["status"]),
            block_number=raw.get("blockNumber"),
        )

    def max_priority_fee(self) -> int:
        try:
            return self.w3.eth.max_priority_fee
        except RPC_ERRORS as exc:
            raise TransactionSubmitError(f"get max priority fee failed: {exc}") from exc

    def estimate_gas(self, tx: dict) -> int:
        try:
            return self.w3.eth.estimate_gas(tx)
        except RPC_ERRORS as exc:
            raise TransactionSubmitError(f"estimate gas failed: {exc}") from exc

    def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """Broadcast a signed transaction and return its ``0x`` hash."""
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw_transaction)
        except RPC_ERRORS as exc:
            raise TransactionSubmitError(f"send raw transaction failed: {exc}") from exc
        return Web3.to_hex(tx_hash)

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def _function(self, contract_address: str, abi: list[dict], method: str, args: Sequence[Any]):
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=abi)
        return getattr(contract.functions, method)(*args)

    def call(self, contract_address: str, abi: list[dict], method: str, args: Sequence[Any] = ()) -> Any:
        """Run a read-only contract call and return the decoded result."""
        try:
            return self._function(contract_address, abi, method, args).call()
        except RPC_ERRORS as exc:
            raise ChainError(f"contract {contract_address} call {method} error: {exc}") from exc

    def build_contract_transaction(
        self,
        contract_address: str,
        abi: list[dict],
        method: str,
        args: Sequence[Any],
        tx: dict,
    ) -> dict:
        """Encode a contract call into an unsigned transaction.

        *tx* supplies sender, nonce, chain id, fee cap and optional value;
        gas and priority fee are filled in by the node.
        """
        try:
            return self._function(contract_address, abi, method, args).build_transaction(tx)
        except RPC_ERRORS as exc:
            raise TransactionSubmitError(
                f"address: {tx.get('from')}, create {method} tx error: {exc}"
            ) from exc


def dial(rpc_url: str, timeout: float = 30.0) -> ChainClient:
    """Open a :class:`ChainClient` for *rpc_url*."""
    logger.debug(f"Dialing {rpc_url}")
    return ChainClient(rpc_url, timeout=timeout)
