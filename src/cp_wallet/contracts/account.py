"""CP account registry contract."""

from __future__ import annotations

from cp_wallet.contracts.abi import ACCOUNT_ABI
from cp_wallet.contracts.dispatcher import ContractCall, TransactionDispatcher
from cp_wallet.models import Beneficiary, CpAccount
from cp_wallet.wallet.local import normalize_address


class AccountStub:
    """Owner operations on one CP account contract.

    Every mutating method must be signed by the account owner; the contract
    rejects anyone else.
    """

    def __init__(self, dispatcher: TransactionDispatcher, contract_address: str) -> None:
        self.dispatcher = dispatcher
        self.contract_address = normalize_address(contract_address)

    def _send(self, signer: str, call: ContractCall) -> str:
        return self.dispatcher.send(signer, self.contract_address, ACCOUNT_ABI, call)

    def change_owner(self, signer: str, new_owner: str) -> str:
        return self._send(signer, ContractCall("changeOwnerAddress", (normalize_address(new_owner),)))

    def change_beneficiary(
        self, signer: str, beneficiary: str, quota: int = 0, expiration: int = 0
    ) -> str:
        call = ContractCall("changeBeneficiary", (normalize_address(beneficiary), quota, expiration))
        return self._send(signer, call)

    def change_multi_addresses(self, signer: str, multi_addresses: list[str]) -> str:
        return self._send(signer, ContractCall("changeMultiaddrs", (list(multi_addresses),)))

    def change_acceptance_flag(self, signer: str, flag: int) -> str:
        """Set whether the CP accepts UBI tasks (0 reject, 1 accept)."""
        return self._send(signer, ContractCall("changeUbiFlag", (int(flag),)))

    def submit_proof(
        self, signer: str, task_id: str, task_type: int, zk_type: str, proof: str
    ) -> str:
        return self._send(signer, ContractCall("submitUBIProof", (task_id, task_type, zk_type, proof)))

    def query_info(self) -> CpAccount:
        call = ContractCall("getAccount", decode=self._decode_account)
        return self.dispatcher.call(self.contract_address, ACCOUNT_ABI, call)

    def _decode_account(self, result) -> CpAccount:
        owner, node_id, multi_addresses, ubi_flag, beneficiary, quota, expiration = result
        return CpAccount(
            owner_address=normalize_address(owner),
            node_id=node_id,
            multi_addresses=list(multi_addresses),
            ubi_flag=ubi_flag,
            beneficiary=Beneficiary(
                address=normalize_address(beneficiary), quota=quota, expiration=expiration
            ),
            contract=self.contract_address,
        )
