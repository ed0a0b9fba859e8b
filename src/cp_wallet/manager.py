"""High-level wallet manager used by the CLI and the provider's API layer."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from cp_wallet.chain.client import ChainClient, dial
from cp_wallet.config import CpConfig, load_config
from cp_wallet.contracts.account import AccountStub
from cp_wallet.contracts.collateral import EcpCollateralStub, FcpCollateralStub
from cp_wallet.contracts.dispatcher import TransactionDispatcher
from cp_wallet.contracts.token import TokenStub
from cp_wallet.errors import ConfigError, OwnerMismatch, WalletError
from cp_wallet.hub import HubClient
from cp_wallet.models import CollateralKind, CollateralRow, CpAccount, UbiFlag, WalletRow
from cp_wallet.tx.builder import TransactionBuilder
from cp_wallet.tx.sequencer import NonceSequencer
from cp_wallet.tx.waiter import ConfirmationWaiter
from cp_wallet.units import balance_to_str, convert_to_wei
from cp_wallet.wallet.keystore import FileKeyRepository, KeyInfo
from cp_wallet.wallet.local import LocalWallet, normalize_address

logger = logging.getLogger("cp_wallet.manager")


class WalletManager:
    """Orchestrates the local wallet, chain connections and contract stubs.

    Every chain operation dials the configured endpoint, does its work, and
    closes the connection before returning.
    """

    def __init__(
        self,
        config: CpConfig,
        wallet: LocalWallet | None = None,
        connect: Callable[[str], ChainClient] = dial,
        hub: HubClient | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.wallet = wallet or LocalWallet(FileKeyRepository(config.keystore_path))
        self.hub = hub or HubClient(config.hub.server_url, config.hub.access_token)
        self.sequencer = NonceSequencer()
        self._connect = connect
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_env(cls) -> WalletManager:
        """Build a manager for the repository at ``$CP_PATH``."""
        return cls(load_config())

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _dispatcher(self, chain_name: str | None = None) -> Iterator[TransactionDispatcher]:
        with self._connect(self.config.rpc_url(chain_name)) as client:
            builder = TransactionBuilder(client, expected_chain_id=self.config.expected_chain_id(chain_name))
            yield TransactionDispatcher(
                client, self.wallet, self.sequencer, builder=builder, deadline=self._deadline()
            )

    def _waiter(self, dispatcher: TransactionDispatcher) -> ConfirmationWaiter:
        return ConfirmationWaiter(
            dispatcher.chain,
            poll_interval=self.config.wallet.poll_interval_seconds,
            timeout=self.config.wallet.confirm_timeout_seconds,
            sleep=self._sleep,
            clock=self._clock,
        )

    def _deadline(self) -> float | None:
        timeout = self.config.wallet.operation_timeout_seconds
        if timeout <= 0:
            return None
        return time.monotonic() + timeout

    @staticmethod
    def _contract(address: str, name: str) -> str:
        if not address.strip():
            raise ConfigError(f"contract.{name} is not configured")
        return address

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------

    def new(self) -> str:
        return self.wallet.generate()

    def import_key(self, private_key: str) -> str:
        return self.wallet.import_key(KeyInfo(private_key=private_key))

    def export(self, address: str) -> KeyInfo:
        return self.wallet.export(address)

    def delete(self, address: str) -> None:
        self.wallet.delete(address)

    def sign(self, address: str, message: bytes) -> str:
        return self.wallet.sign(address, message)

    def verify(self, address: str, signature: str, data: str) -> bool:
        return self.wallet.verify(address, signature, data)

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def wallet_list(self, chain_name: str | None = None, contract_balance: bool = False) -> list[WalletRow]:
        """List stored addresses with balance and pending nonce.

        Per-address failures are reported in the row instead of aborting.  The
        nonce is looked up even when the balance is not; a nonce error takes
        precedence in the row.
        """
        addresses = self.wallet.list()
        rows: list[WalletRow] = []
        with self._dispatcher(chain_name) as dispatcher:
            token = None
            if contract_balance:
                token = TokenStub(dispatcher, self._contract(self.config.contract.token, "token"))
            for addr in addresses:
                row = WalletRow(address=addr)
                try:
                    if token is not None:
                        row.balance = token.balance_of(addr)
                    else:
                        row.balance = balance_to_str(dispatcher.chain.balance(addr))
                except WalletError as exc:
                    logger.warning(f"Failed to load balance of {addr}: {exc}")
                    row.error = str(exc)
                try:
                    row.nonce = dispatcher.chain.pending_nonce(addr)
                except WalletError as exc:
                    logger.warning(f"Failed to load nonce of {addr}: {exc}")
                    row.error = str(exc)
                rows.append(row)
        return rows

    def wallet_send(self, from_address: str, to_address: str, amount: str, chain_name: str | None = None) -> str:
        """Send *amount* (decimal ether string) of the native token."""
        value = convert_to_wei(amount)
        self.wallet.private_key(from_address)
        with self._dispatcher(chain_name) as dispatcher:
            return dispatcher.send_value(from_address, to_address, value)

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    def collateral_add(
        self,
        from_address: str,
        amount: str,
        kind: CollateralKind = CollateralKind.FCP,
        chain_name: str | None = None,
    ) -> str:
        """Deposit collateral and return the deposit transaction hash.

        FCP collateral is a two-step workflow: the token ``approve`` must be
        mined successfully before ``deposit`` is sent.
        """
        value = convert_to_wei(amount)
        self.wallet.private_key(from_address)
        with self._dispatcher(chain_name) as dispatcher:
            if CollateralKind(kind) is CollateralKind.ECP:
                stub = EcpCollateralStub(
                    dispatcher,
                    self._contract(self.config.contract.collateral, "collateral"),
                    self.config.account_contract(),
                )
                return stub.deposit(from_address, value)

            collateral_address = self._contract(self.config.contract.fcp_collateral, "fcp_collateral")
            token = TokenStub(dispatcher, self._contract(self.config.contract.token, "token"))
            collateral = FcpCollateralStub(dispatcher, collateral_address)
            approve_tx = token.approve(from_address, collateral_address, value)
            logger.info(f"Approve tx {approve_tx} sent, waiting for confirmation")
            return self._waiter(dispatcher).then(
                approve_tx, lambda: collateral.deposit(from_address, value)
            )

    def collateral_withdraw(
        self,
        owner: str,
        amount: str,
        kind: CollateralKind = CollateralKind.FCP,
        chain_name: str | None = None,
    ) -> str:
        value = convert_to_wei(amount)
        self.wallet.private_key(owner)
        with self._dispatcher(chain_name) as dispatcher:
            if CollateralKind(kind) is CollateralKind.ECP:
                stub = EcpCollateralStub(
                    dispatcher,
                    self._contract(self.config.contract.collateral, "collateral"),
                    self.config.account_contract(),
                )
                return stub.withdraw(owner, value)
            fcp = FcpCollateralStub(
                dispatcher, self._contract(self.config.contract.fcp_collateral, "fcp_collateral")
            )
            return fcp.withdraw(owner, value)

    def collateral_send(
        self, from_address: str, to_address: str, amount: str, chain_name: str | None = None
    ) -> str:
        """Transfer collateral tokens to another address."""
        value = convert_to_wei(amount)
        self.wallet.private_key(from_address)
        with self._dispatcher(chain_name) as dispatcher:
            token = TokenStub(dispatcher, self._contract(self.config.contract.token, "token"))
            return token.transfer(from_address, to_address, value)

    def collateral_info(
        self, kind: CollateralKind = CollateralKind.FCP, chain_name: str | None = None
    ) -> list[CollateralRow]:
        """Report collateral positions.

        FCP: one row per stored address, with escrow from the hub.  ECP: one
        row for the CP account, from the collateral contract's ``cpInfo``.
        """
        with self._dispatcher(chain_name) as dispatcher:
            if CollateralKind(kind) is CollateralKind.ECP:
                stub = EcpCollateralStub(
                    dispatcher,
                    self._contract(self.config.contract.collateral, "collateral"),
                    self.config.account_contract(),
                )
                row = CollateralRow(address=stub.cp_account)
                try:
                    row.balance = balance_to_str(dispatcher.chain.balance(stub.cp_account))
                    info = stub.cp_info()
                    row.collateral = info.collateral_balance
                    row.escrow = info.frozen_balance
                except WalletError as exc:
                    logger.warning(f"Failed to load collateral of {stub.cp_account}: {exc}")
                    row.error = str(exc)
                return [row]

            fcp = FcpCollateralStub(
                dispatcher, self._contract(self.config.contract.fcp_collateral, "fcp_collateral")
            )
            rows: list[CollateralRow] = []
            for addr in self.wallet.list():
                row = CollateralRow(address=addr)
                try:
                    row.balance = balance_to_str(dispatcher.chain.balance(addr))
                    row.collateral = fcp.balances(addr)
                    row.escrow = self.hub.frozen_collateral(addr)
                except WalletError as exc:
                    logger.warning(f"Failed to load collateral of {addr}: {exc}")
                    row.error = str(exc)
                rows.append(row)
            return rows

    # ------------------------------------------------------------------
    # CP account
    # ------------------------------------------------------------------

    def account_info(self, contract: str | None = None, chain_name: str | None = None) -> CpAccount:
        """Read the CP account and the native balance of its owner.

        A failed balance lookup leaves ``owner_balance`` empty.
        """
        with self._dispatcher(chain_name) as dispatcher:
            account = AccountStub(dispatcher, contract or self.config.account_contract()).query_info()
            try:
                account.owner_balance = balance_to_str(dispatcher.chain.balance(account.owner_address))
            except WalletError as exc:
                logger.warning(f"Failed to load balance of owner {account.owner_address}: {exc}")
            return account

    @contextmanager
    def _owned_account(self, owner: str, chain_name: str | None) -> Iterator[AccountStub]:
        """Yield the CP account stub after checking *owner* owns it on-chain."""
        owner = normalize_address(owner)
        self.wallet.private_key(owner)
        with self._dispatcher(chain_name) as dispatcher:
            stub = AccountStub(dispatcher, self.config.account_contract())
            account = stub.query_info()
            if account.owner_address.lower() != owner.lower():
                raise OwnerMismatch(account.owner_address, owner)
            yield stub

    def change_owner(self, owner: str, new_owner: str, chain_name: str | None = None) -> str:
        new_owner = normalize_address(new_owner)
        with self._owned_account(owner, chain_name) as stub:
            return stub.change_owner(owner, new_owner)

    def change_beneficiary(
        self,
        owner: str,
        beneficiary: str,
        quota: int = 0,
        expiration: int = 0,
        chain_name: str | None = None,
    ) -> str:
        beneficiary = normalize_address(beneficiary)
        with self._owned_account(owner, chain_name) as stub:
            return stub.change_beneficiary(owner, beneficiary, quota, expiration)

    def change_ubi_flag(self, owner: str, flag: int, chain_name: str | None = None) -> str:
        try:
            flag = UbiFlag(int(flag))
        except ValueError:
            raise ValueError("ubiFlag must be 0 or 1") from None
        with self._owned_account(owner, chain_name) as stub:
            return stub.change_acceptance_flag(owner, flag.value)

    def change_multi_addresses(
        self, owner: str, multi_addresses: list[str], chain_name: str | None = None
    ) -> str:
        if not multi_addresses:
            raise ValueError("at least one multi-address is required")
        with self._owned_account(owner, chain_name) as stub:
            return stub.change_multi_addresses(owner, multi_addresses)

    def submit_ubi_proof(
        self,
        signer: str,
        task_id: str,
        task_type: int,
        zk_type: str,
        proof: str,
        chain_name: str | None = None,
    ) -> str:
        self.wallet.private_key(signer)
        with self._dispatcher(chain_name) as dispatcher:
            stub = AccountStub(dispatcher, self.config.account_contract())
            return stub.submit_proof(signer, task_id, task_type, zk_type, proof)
