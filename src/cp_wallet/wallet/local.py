"""Local wallet: a lock-guarded key cache over a :class:`FileKeyRepository`."""

from __future__ import annotations

import binascii
import logging
import re
import threading

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError as EthValidationError
from web3 import Web3

from cp_wallet.errors import (
    AlreadyExists,
    InvalidAddressFormat,
    InvalidKey,
    KeyNotFound,
    SignError,
)
from cp_wallet.wallet.keystore import KEY_NAME_PREFIX, FileKeyRepository, KeyInfo

logger = logging.getLogger("cp_wallet.wallet.local")

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(address: str) -> str:
    """Validate a ``0x`` + 40-hex address and return its checksum form."""
    address = (address or "").strip()
    if not _ADDRESS_RE.match(address):
        raise InvalidAddressFormat(address)
    return Web3.to_checksum_address(address)


def address_from_private_key(private_key: str) -> str:
    """Derive the checksum address for a hex private key."""
    key = private_key.strip()
    if not key:
        raise InvalidKey("wallet address private key must be not empty")
    if key[:2].lower() != "0x":
        key = "0x" + key
    try:
        return Account.from_key(key).address
    except (ValueError, binascii.Error, EthValidationError) as exc:
        raise InvalidKey(f"parses private key error: {exc}") from exc


def _decode_signature(signature: str | bytes) -> keys.Signature:
    if isinstance(signature, str):
        text = signature.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise SignError(f"signature is not valid hex: {exc}") from exc
    else:
        raw = bytes(signature)
    if len(raw) != 65:
        raise SignError(f"signature must be 65 bytes, got {len(raw)}")
    # Accept the legacy 27/28 recovery id as well as 0/1.
    if raw[64] in (27, 28):
        raw = raw[:64] + bytes([raw[64] - 27])
    try:
        return keys.Signature(signature_bytes=raw)
    except (BadSignature, EthValidationError, ValueError) as exc:
        raise SignError(f"invalid signature: {exc}") from exc


class LocalWallet:
    """Signing keys for the operator's addresses.

    Keys are cached in memory after their first lookup.  The cache is
    read-through and write-through over the repository: a repository miss
    is never cached, and every mutation is persisted before the cache is
    updated.  One lock guards the cache map.
    """

    def __init__(self, repository: FileKeyRepository) -> None:
        self.repository = repository
        self._keys: dict[str, KeyInfo] = {}
        self._lk = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_key(self, address: str) -> KeyInfo | None:
        """Return the key for *address*, or ``None`` if none is stored."""
        address = normalize_address(address)
        with self.repository, self._lk:
            ki = self._keys.get(address)
            if ki is not None:
                return ki
            try:
                ki = self.repository.get(KEY_NAME_PREFIX + address)
            except KeyNotFound:
                return None
            self._keys[address] = ki
            return ki

    def _require_key(self, address: str, operation: str) -> KeyInfo:
        ki = self.find_key(address)
        if ki is None:
            raise KeyNotFound(address, operation)
        return ki

    def private_key(self, address: str) -> str:
        """Return the hex private key for *address* (raises ``KeyNotFound``)."""
        return self._require_key(address, "load private key").private_key

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, address: str, message: bytes) -> str:
        """Sign ``keccak256(message)`` and return the 65-byte signature as hex."""
        ki = self._require_key(address, "sign")
        digest = Web3.keccak(message)
        try:
            signature = keys.PrivateKey(bytes.fromhex(ki.private_key)).sign_msg_hash(digest)
        except (ValueError, EthValidationError) as exc:
            raise SignError(f"signing using private key '{address}': {exc}") from exc
        return Web3.to_hex(signature.to_bytes())

    def verify(self, address: str, signature: str | bytes, data: bytes | str) -> bool:
        """Return whether *signature* over *data* was produced by *address*."""
        address = normalize_address(address)
        if isinstance(data, str):
            data = data.encode("utf-8")
        sig = _decode_signature(signature)
        try:
            public_key = sig.recover_public_key_from_msg_hash(Web3.keccak(data))
        except (BadSignature, EthValidationError):
            return False
        return public_key.to_checksum_address() == address

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    def import_key(self, info: KeyInfo) -> str:
        """Store an existing private key and return its address.

        Raises :class:`AlreadyExists` if the derived address already has
        a stored key.
        """
        address = address_from_private_key(info.private_key)
        with self.repository, self._lk:
            try:
                self.repository.get(KEY_NAME_PREFIX + address)
            except KeyNotFound:
                pass
            else:
                raise AlreadyExists(address)
            self.repository.put(KEY_NAME_PREFIX + address, info)
            self._keys[address] = info
        logger.info(f"Imported wallet {address}")
        return address

    def generate(self) -> str:
        """Create a new key pair, store it, and return its address."""
        acct = Account.create()
        info = KeyInfo(private_key=Web3.to_hex(acct.key))
        with self.repository, self._lk:
            self.repository.put(KEY_NAME_PREFIX + acct.address, info)
            self._keys[acct.address] = info
        logger.info(f"Generated wallet {acct.address}")
        return acct.address

    def export(self, address: str) -> KeyInfo:
        return self._require_key(address, "export")

    def delete(self, address: str) -> None:
        """Remove the key for *address* from the repository and the cache."""
        address = normalize_address(address)
        with self.repository, self._lk:
            try:
                self.repository.delete(KEY_NAME_PREFIX + address)
            except KeyNotFound:
                raise KeyNotFound(address, "delete") from None
            self._keys.pop(address, None)
        logger.info(f"Deleted wallet {address}")

    def list(self) -> list[str]:
        """Return every stored address."""
        with self.repository:
            names = self.repository.list()
        return [n[len(KEY_NAME_PREFIX):] for n in names if n.startswith(KEY_NAME_PREFIX)]
