"""Transaction parameter construction.

Nonce, gas price and chain id are fetched from the chain on every build and
never reused: a stale nonce or fee gets the transaction rejected or stuck.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from cp_wallet.chain.client import RPC_ERRORS
from cp_wallet.errors import ChainIdFetchError, GasPriceFetchError, NonceFetchError
from cp_wallet.wallet.local import address_from_private_key

if TYPE_CHECKING:
    from cp_wallet.wallet.local import LocalWallet

logger = logging.getLogger("cp_wallet.tx.builder")


class ChainParams(Protocol):
    def pending_nonce(self, address: str) -> int: ...

    def suggested_gas_price(self) -> int: ...

    def chain_id(self) -> int: ...


def gas_fee_cap(suggested_gas_price: int) -> int:
    """Mark the suggested gas price up by 50%, truncating."""
    return suggested_gas_price * 3 // 2


@dataclass(frozen=True)
class TransactionParameters:
    """Sender-side fields of one transaction.  Built fresh for every call."""

    signer_address: str
    nonce: int
    gas_fee_cap: int
    chain_id: int
    value: int | None = None
    deadline: float | None = None  # time.monotonic() timestamp

    def expired(self, now: float | None = None) -> bool:
        if self.deadline is None:
            return False
        return (time.monotonic() if now is None else now) >= self.deadline

    def as_transaction(self) -> dict:
        tx = {
            "from": self.signer_address,
            "nonce": self.nonce,
            "chainId": self.chain_id,
            "maxFeePerGas": self.gas_fee_cap,
        }
        if self.value is not None:
            tx["value"] = self.value
        return tx


class TransactionBuilder:
    """Builds :class:`TransactionParameters` against a live chain.

    When *expected_chain_id* is set, a node reporting any other chain id is
    refused so nothing is signed for the wrong network.
    """

    def __init__(self, chain: ChainParams, expected_chain_id: int | None = None) -> None:
        self.chain = chain
        self.expected_chain_id = expected_chain_id

    def build(
        self,
        wallet: LocalWallet,
        address: str,
        value: int | None = None,
        is_value_transfer: bool = False,
        deadline: float | None = None,
    ) -> TransactionParameters:
        """Resolve the signer and fetch nonce, gas price and chain id.

        Any failed chain query aborts the build.

        Raises
        ------
        KeyNotFound
            If *address* has no stored key.
        InvalidKey
            If the stored key cannot be parsed.
        NonceFetchError, GasPriceFetchError, ChainIdFetchError
            If the corresponding chain query fails, or the node is on an
            unexpected chain.
        """
        signer = address_from_private_key(wallet.private_key(address))

        try:
            nonce = self.chain.pending_nonce(signer)
        except NonceFetchError:
            raise
        except RPC_ERRORS as exc:
            raise NonceFetchError(f"address: {signer}, get nonce error: {exc}") from exc

        try:
            suggested = self.chain.suggested_gas_price()
        except GasPriceFetchError:
            raise
        except RPC_ERRORS as exc:
            raise GasPriceFetchError(
                f"address: {signer}, retrieve the suggested gas price error: {exc}"
            ) from exc

        try:
            chain_id = self.chain.chain_id()
        except ChainIdFetchError:
            raise
        except RPC_ERRORS as exc:
            raise ChainIdFetchError(f"address: {signer}, get chain id error: {exc}") from exc
        if self.expected_chain_id is not None and chain_id != self.expected_chain_id:
            raise ChainIdFetchError(
                f"address: {signer}, node reports chain id {chain_id}, "
                f"expected {self.expected_chain_id}"
            )

        params = TransactionParameters(
            signer_address=signer,
            nonce=nonce,
            gas_fee_cap=gas_fee_cap(suggested),
            chain_id=chain_id,
            value=value if is_value_transfer else None,
            deadline=deadline,
        )
        logger.debug(
            f"Built tx params for {signer}: nonce={nonce} fee_cap={params.gas_fee_cap} "
            f"chain_id={chain_id}"
        )
        return params
