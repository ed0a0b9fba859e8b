"""Tests for the local wallet."""

import threading

import pytest
from eth_account import Account

from cp_wallet.errors import (
    AlreadyExists,
    InvalidAddressFormat,
    InvalidKey,
    KeyNotFound,
    SignError,
)
from cp_wallet.wallet.keystore import KEY_NAME_PREFIX, FileKeyRepository, KeyInfo
from cp_wallet.wallet.local import LocalWallet, address_from_private_key, normalize_address


class TestAddresses:
    def test_normalize_checksums(self) -> None:
        lower = "0x" + "ab" * 20
        assert normalize_address(lower) == normalize_address(lower.upper().replace("0X", "0x"))
        assert normalize_address(lower) != lower

    @pytest.mark.parametrize("bad", ["", "0x123", "ab" * 20, "0x" + "zz" * 20, "0x" + "ab" * 21])
    def test_rejects_malformed(self, bad: str) -> None:
        with pytest.raises(InvalidAddressFormat):
            normalize_address(bad)

    def test_derives_address(self, private_key: str) -> None:
        assert address_from_private_key(private_key) == Account.from_key("0x" + private_key).address

    @pytest.mark.parametrize("bad", ["", "nothex", "abcd"])
    def test_invalid_private_key(self, bad: str) -> None:
        with pytest.raises(InvalidKey):
            address_from_private_key(bad)


class TestKeyLifecycle:
    def test_generate_persists_new_address(self, wallet: LocalWallet) -> None:
        before = wallet.list()
        address = wallet.generate()
        assert address not in before
        assert wallet.list() == before + [address]
        with wallet.repository:
            stored = wallet.repository.get(KEY_NAME_PREFIX + address)
        assert address_from_private_key(stored.private_key) == address

    def test_import_twice(self, wallet: LocalWallet, private_key: str) -> None:
        address = wallet.import_key(KeyInfo(private_key))
        assert address == Account.from_key("0x" + private_key).address
        with pytest.raises(AlreadyExists):
            wallet.import_key(KeyInfo(private_key))
        assert wallet.list() == [address]

    def test_import_rejects_existing_even_when_uncached(
        self, repository: FileKeyRepository, private_key: str
    ) -> None:
        LocalWallet(repository).import_key(KeyInfo(private_key))
        with pytest.raises(AlreadyExists):
            LocalWallet(repository).import_key(KeyInfo("0x" + private_key))

    def test_import_invalid_key(self, wallet: LocalWallet) -> None:
        with pytest.raises(InvalidKey):
            wallet.import_key(KeyInfo("  "))

    def test_export(self, wallet: LocalWallet, private_key: str) -> None:
        address = wallet.import_key(KeyInfo(private_key))
        assert wallet.export(address).private_key == private_key
        assert wallet.export(address.lower()).private_key == private_key

    def test_export_missing(self, wallet: LocalWallet) -> None:
        with pytest.raises(KeyNotFound):
            wallet.export("0x" + "ab" * 20)

    def test_delete(self, wallet: LocalWallet) -> None:
        address = wallet.generate()
        wallet.delete(address)
        assert wallet.list() == []
        assert wallet.find_key(address) is None
        with pytest.raises(KeyNotFound):
            wallet.delete(address)

    def test_list_ignores_foreign_records(self, wallet: LocalWallet) -> None:
        address = wallet.generate()
        with wallet.repository:
            wallet.repository.put("other-record", KeyInfo("aa"))
        assert wallet.list() == [address]


class TestFindKey:
    def test_miss_is_not_cached(self, wallet: LocalWallet, private_key: str) -> None:
        address = Account.from_key("0x" + private_key).address
        assert wallet.find_key(address) is None
        assert address not in wallet._keys
        # A key stored later by another process is found on the next lookup.
        with wallet.repository:
            wallet.repository.put(KEY_NAME_PREFIX + address, KeyInfo(private_key))
        assert wallet.find_key(address) == KeyInfo(private_key)

    def test_hit_is_cached(self, repository: FileKeyRepository, private_key: str) -> None:
        address = LocalWallet(repository).import_key(KeyInfo(private_key))
        wallet = LocalWallet(repository)
        assert wallet.find_key(address) == KeyInfo(private_key)
        assert wallet._keys[address] == KeyInfo(private_key)

    def test_releases_repository(self, wallet: LocalWallet) -> None:
        wallet.find_key("0x" + "ab" * 20)
        assert not wallet.repository.is_open

    def test_concurrent_lookups(self, wallet: LocalWallet) -> None:
        addresses = [wallet.generate() for _ in range(4)]
        fresh = LocalWallet(wallet.repository)
        results: list = []

        def lookup() -> None:
            for addr in addresses:
                results.append(fresh.find_key(addr))

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(results) == 32
        assert all(r is not None for r in results)
        assert set(fresh._keys) == set(addresses)


class TestSignVerify:
    def test_round_trip(self, wallet: LocalWallet) -> None:
        address = wallet.generate()
        signature = wallet.sign(address, b"node-id:job-source-uri")
        assert signature.startswith("0x") and len(signature) == 2 + 130
        assert wallet.verify(address, signature, b"node-id:job-source-uri")
        assert wallet.verify(address, signature, "node-id:job-source-uri")

    def test_mutated_message(self, wallet: LocalWallet) -> None:
        address = wallet.generate()
        signature = wallet.sign(address, b"hello")
        assert not wallet.verify(address, signature, b"hellp")

    def test_other_address(self, wallet: LocalWallet) -> None:
        address = wallet.generate()
        other = wallet.generate()
        signature = wallet.sign(address, b"hello")
        assert not wallet.verify(other, signature, b"hello")

    def test_accepts_legacy_recovery_id(self, wallet: LocalWallet) -> None:
        address = wallet.generate()
        raw = bytearray(bytes.fromhex(wallet.sign(address, b"hello")[2:]))
        raw[64] += 27
        assert wallet.verify(address, bytes(raw), b"hello")

    def test_sign_missing_key(self, wallet: LocalWallet) -> None:
        with pytest.raises(KeyNotFound, match="sign"):
            wallet.sign("0x" + "ab" * 20, b"hello")

    @pytest.mark.parametrize("bad", ["0x1234", "not-hex", b"\x00" * 10])
    def test_malformed_signature(self, wallet: LocalWallet, bad) -> None:
        address = wallet.generate()
        with pytest.raises(SignError):
            wallet.verify(address, bad, b"hello")
