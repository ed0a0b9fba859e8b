"""Signed-transaction dispatch shared by every contract stub.

Each mutating stub method reduces to a :class:`ContractCall`; the dispatcher
runs the common sequence: resolve signer, build parameters, encode the
call, sign, broadcast, and return the transaction hash.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from eth_account import Account
from eth_utils import ValidationError as EthValidationError

from cp_wallet.errors import SignError, TransactionSubmitError
from cp_wallet.tx.builder import TransactionBuilder, TransactionParameters
from cp_wallet.tx.sequencer import NonceSequencer
from cp_wallet.wallet.local import LocalWallet, normalize_address

logger = logging.getLogger("cp_wallet.contracts.dispatcher")


@dataclass(frozen=True)
class ContractCall:
    """One contract method invocation.

    ``value`` is the native amount attached to a payable call; ``None``
    means no value transfer.  ``decode`` post-processes the result of a
    read-only call.
    """

    method: str
    args: tuple = ()
    value: Optional[int] = None
    decode: Optional[Callable[[Any], Any]] = field(default=None, compare=False)


class TransactionDispatcher:
    """Runs contract calls against one chain on behalf of local wallet keys."""

    def __init__(
        self,
        chain,
        wallet: LocalWallet,
        sequencer: NonceSequencer | None = None,
        builder: TransactionBuilder | None = None,
        deadline: float | None = None,
    ) -> None:
        self.chain = chain
        self.wallet = wallet
        self.sequencer = sequencer or NonceSequencer()
        self.builder = builder or TransactionBuilder(chain)
        self.deadline = deadline

    def _sign_and_send(self, tx: dict, params: TransactionParameters, private_key: str) -> str:
        if params.expired():
            raise TransactionSubmitError(
                f"address: {params.signer_address}, deadline exceeded before broadcast"
            )
        try:
            signed = Account.sign_transaction(tx, "0x" + private_key)
        except (TypeError, ValueError, EthValidationError) as exc:
            raise SignError(f"address: {params.signer_address}, sign tx error: {exc}") from exc
        return self.chain.send_raw_transaction(signed.raw_transaction)

    def send(
        self,
        signer: str,
        contract_address: str,
        abi: list[dict],
        call: ContractCall,
        deadline: float | None = None,
    ) -> str:
        """Submit *call* to *contract_address* signed by *signer*; return the tx hash."""
        signer = normalize_address(signer)
        private_key = self.wallet.private_key(signer)
        with self.sequencer.hold(signer):
            params = self.builder.build(
                self.wallet,
                signer,
                value=call.value,
                is_value_transfer=call.value is not None,
                deadline=deadline if deadline is not None else self.deadline,
            )
            tx = self.chain.build_contract_transaction(
                contract_address, abi, call.method, call.args, params.as_transaction()
            )
            tx_hash = self._sign_and_send(tx, params, private_key)
        logger.info(f"{call.method} from {signer} to {contract_address}: tx={tx_hash}")
        return tx_hash

    def send_value(self, signer: str, to: str, amount: int, deadline: float | None = None) -> str:
        """Transfer *amount* wei of the native token from *signer* to *to*."""
        signer = normalize_address(signer)
        to = normalize_address(to)
        private_key = self.wallet.private_key(signer)
        with self.sequencer.hold(signer):
            params = self.builder.build(
                self.wallet,
                signer,
                value=amount,
                is_value_transfer=True,
                deadline=deadline if deadline is not None else self.deadline,
            )
            tx = params.as_transaction()
            tx["to"] = to
            tx["maxPriorityFeePerGas"] = min(self.chain.max_priority_fee(), params.gas_fee_cap)
            tx["gas"] = self.chain.estimate_gas(tx)
            tx_hash = self._sign_and_send(tx, params, private_key)
        logger.info(f"Sent {amount} wei from {signer} to {to}: tx={tx_hash}")
        return tx_hash

    def call(self, contract_address: str, abi: list[dict], call: ContractCall) -> Any:
        """Run a read-only call; no parameters are built and nothing is signed."""
        result = self.chain.call(contract_address, abi, call.method, call.args)
        return call.decode(result) if call.decode else result
