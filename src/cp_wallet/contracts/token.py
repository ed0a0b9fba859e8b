"""Fungible collateral token."""

from __future__ import annotations

from cp_wallet.contracts.abi import TOKEN_ABI
from cp_wallet.contracts.dispatcher import ContractCall, TransactionDispatcher
from cp_wallet.units import balance_to_str
from cp_wallet.wallet.local import normalize_address


class TokenStub:
    def __init__(self, dispatcher: TransactionDispatcher, contract_address: str) -> None:
        self.dispatcher = dispatcher
        self.contract_address = normalize_address(contract_address)

    def transfer(self, signer: str, to: str, amount: int) -> str:
        call = ContractCall("transfer", (normalize_address(to), amount))
        return self.dispatcher.send(signer, self.contract_address, TOKEN_ABI, call)

    def approve(self, signer: str, spender: str, amount: int) -> str:
        """Allow *spender* to pull *amount* base units from *signer*."""
        call = ContractCall("approve", (normalize_address(spender), amount))
        return self.dispatcher.send(signer, self.contract_address, TOKEN_ABI, call)

    def balance_of(self, address: str) -> str:
        call = ContractCall("balanceOf", (normalize_address(address),), decode=balance_to_str)
        return self.dispatcher.call(self.contract_address, TOKEN_ABI, call)
