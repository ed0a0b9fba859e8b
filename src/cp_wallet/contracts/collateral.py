"""Collateral contracts.

ECP collateral is posted in the native token through a payable
``deposit`` and is tracked per CP account.  FCP collateral is posted in
the collateral token, which the collateral contract pulls from the owner,
so the owner must ``approve`` the contract first.
"""

from __future__ import annotations

from cp_wallet.contracts.abi import ECP_COLLATERAL_ABI, FCP_COLLATERAL_ABI
from cp_wallet.contracts.dispatcher import ContractCall, TransactionDispatcher
from cp_wallet.models import CpCollateralInfo
from cp_wallet.units import balance_to_str
from cp_wallet.wallet.local import normalize_address


def decode_cp_info(result) -> CpCollateralInfo:
    cp, balance, frozen_balance, status = result
    return CpCollateralInfo(
        address=normalize_address(cp),
        collateral_balance=balance_to_str(balance),
        frozen_balance=balance_to_str(frozen_balance),
        status=status,
    )


class EcpCollateralStub:
    """Native-token collateral bound to one CP account."""

    def __init__(
        self, dispatcher: TransactionDispatcher, contract_address: str, cp_account: str
    ) -> None:
        self.dispatcher = dispatcher
        self.contract_address = normalize_address(contract_address)
        self.cp_account = normalize_address(cp_account)

    def deposit(self, signer: str, amount: int) -> str:
        call = ContractCall("deposit", (self.cp_account,), value=amount)
        return self.dispatcher.send(signer, self.contract_address, ECP_COLLATERAL_ABI, call)

    def withdraw(self, signer: str, amount: int) -> str:
        call = ContractCall("withdraw", (self.cp_account, amount))
        return self.dispatcher.send(signer, self.contract_address, ECP_COLLATERAL_ABI, call)

    def cp_info(self) -> CpCollateralInfo:
        call = ContractCall("cpInfo", (self.cp_account,), decode=decode_cp_info)
        return self.dispatcher.call(self.contract_address, ECP_COLLATERAL_ABI, call)


class FcpCollateralStub:
    """Token collateral; deposits must be preceded by a confirmed approve."""

    def __init__(self, dispatcher: TransactionDispatcher, contract_address: str) -> None:
        self.dispatcher = dispatcher
        self.contract_address = normalize_address(contract_address)

    def deposit(self, signer: str, amount: int) -> str:
        call = ContractCall("deposit", (normalize_address(signer), amount))
        return self.dispatcher.send(signer, self.contract_address, FCP_COLLATERAL_ABI, call)

    def withdraw(self, signer: str, amount: int) -> str:
        call = ContractCall("withdraw", (amount,))
        return self.dispatcher.send(signer, self.contract_address, FCP_COLLATERAL_ABI, call)

    def balances(self, address: str) -> str:
        call = ContractCall("balances", (normalize_address(address),), decode=balance_to_str)
        return self.dispatcher.call(self.contract_address, FCP_COLLATERAL_ABI, call)
