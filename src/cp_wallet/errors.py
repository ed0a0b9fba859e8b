"""Error taxonomy for the wallet and transaction-submission layer."""

from __future__ import annotations


class WalletError(Exception):
    """Base class for every error raised by cp_wallet."""


class ConfigError(WalletError):
    """The operator repository or its config file is missing or invalid."""


# ---------------------------------------------------------------------------
# Key / repository errors
# ---------------------------------------------------------------------------


class KeyNotFound(WalletError):
    def __init__(self, address: str, operation: str = "") -> None:
        self.address = address
        self.operation = operation
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}key info not found for {address}")


class AlreadyExists(WalletError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"wallet address {address} already exists")


class InvalidAddressFormat(WalletError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"invalid address format: {address!r}")


class InvalidKey(WalletError):
    """A private key could not be parsed."""


class SignError(WalletError):
    """Signing or signature decoding failed."""


# ---------------------------------------------------------------------------
# Chain errors
# ---------------------------------------------------------------------------


class ChainError(WalletError):
    """A remote chain call failed."""


class RpcConnectionError(ChainError):
    pass


class NonceFetchError(ChainError):
    pass


class GasPriceFetchError(ChainError):
    pass


class ChainIdFetchError(ChainError):
    pass


class TransactionSubmitError(ChainError):
    pass


class ConfirmationError(WalletError):
    """A dependent transaction could not be confirmed."""

    def __init__(self, tx_hash: str, message: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class ReceiptFailedError(ConfirmationError):
    """The transaction was mined and reverted. Resending it is pointless."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(tx_hash, f"transaction execution failed, tx: {tx_hash}")


class ReceiptTimeoutError(ConfirmationError):
    """No receipt was seen within the bound. The outcome is unknown."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            tx_hash,
            f"timeout after {timeout:g}s waiting for transaction confirmation, tx: {tx_hash}",
        )


# ---------------------------------------------------------------------------
# Operator workflow errors
# ---------------------------------------------------------------------------


class OwnerMismatch(WalletError):
    def __init__(self, onchain_owner: str, owner: str) -> None:
        self.onchain_owner = onchain_owner
        self.owner = owner
        super().__init__(
            f"the owner address is incorrect. The owner on the chain is "
            f"{onchain_owner}, and the current address is {owner}"
        )


class HubError(WalletError):
    """The hub HTTP API returned an error or could not be reached."""
