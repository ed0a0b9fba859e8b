"""Filesystem key repository.

Each key is one JSON file named after its record key (``wallet-<address>``)
holding ``{"PrivateKey": "<hex>"}``.  Keys are stored unencrypted; files
are created with mode ``0600`` inside a ``0700`` directory.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from cp_wallet.errors import AlreadyExists, KeyNotFound, WalletError

KEY_NAME_PREFIX = "wallet-"


@dataclass(frozen=True)
class KeyInfo:
    """A stored signing key.  ``private_key`` is hex without ``0x``."""

    private_key: str

    def __post_init__(self) -> None:
        key = self.private_key.strip()
        if key[:2].lower() == "0x":
            key = key[2:]
        object.__setattr__(self, "private_key", key)

    def __repr__(self) -> str:
        return "KeyInfo(private_key=<redacted>)"

    def to_json(self) -> str:
        return json.dumps({"PrivateKey": self.private_key})

    @classmethod
    def from_json(cls, raw: str) -> KeyInfo:
        data = json.loads(raw)
        return cls(private_key=data["PrivateKey"])


class FileKeyRepository:
    """Key repository backed by a directory of JSON files.

    The repository is a scoped resource: use it as a context manager (or
    call :meth:`open` / :meth:`close`) around each logical operation.
    Nested scopes on the same instance are allowed.

    Parameters
    ----------
    path:
        Directory holding the key files.  Created on first :meth:`open`.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._depth = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        with self._lock:
            if self._depth == 0:
                self.path.mkdir(mode=0o700, parents=True, exist_ok=True)
            self._depth += 1

    def close(self) -> None:
        with self._lock:
            if self._depth > 0:
                self._depth -= 1

    @property
    def is_open(self) -> bool:
        return self._depth > 0

    def _check_open(self) -> None:
        if not self.is_open:
            raise WalletError("Key repository not open. Call open() first.")

    def __enter__(self) -> FileKeyRepository:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _file(self, name: str) -> Path:
        if not name or "/" in name or os.sep in name or name.startswith("."):
            raise WalletError(f"invalid key name: {name!r}")
        return self.path / name

    def get(self, name: str) -> KeyInfo:
        """Return the record stored under *name*.

        Raises :class:`KeyNotFound` if there is none.
        """
        self._check_open()
        key_file = self._file(name)
        try:
            raw = key_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise KeyNotFound(name, "keystore get") from None
        try:
            return KeyInfo.from_json(raw)
        except (ValueError, KeyError) as exc:
            raise WalletError(f"decoding key '{name}': {exc}") from exc

    def put(self, name: str, info: KeyInfo) -> None:
        """Store *info* under *name*.

        Raises :class:`AlreadyExists` if a record already exists; existing
        records are never overwritten.
        """
        self._check_open()
        key_file = self._file(name)
        try:
            fd = os.open(key_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            raise AlreadyExists(name.removeprefix(KEY_NAME_PREFIX)) from None
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(info.to_json())
        except Exception:
            key_file.unlink(missing_ok=True)
            raise

    def delete(self, name: str) -> None:
        """Remove the record stored under *name*.

        Raises :class:`KeyNotFound` if there is none.
        """
        self._check_open()
        try:
            self._file(name).unlink()
        except FileNotFoundError:
            raise KeyNotFound(name, "keystore delete") from None

    def list(self) -> list[str]:
        """Return the names of all stored records, sorted."""
        self._check_open()
        return sorted(
            p.name for p in self.path.iterdir() if p.is_file() and not p.name.startswith(".")
        )
