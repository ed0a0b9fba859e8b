"""Per-address serialization of transaction submission.

Holding an address's lock from parameter build until broadcast keeps two
threads of one process from fetching the same pending nonce.  Other
processes signing for the same address are not coordinated.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class NonceSequencer:
    """Registry of one lock per signer address."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, address: str) -> threading.Lock:
        key = address.lower()
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, address: str) -> Iterator[None]:
        """Allow one in-flight transaction for *address* at a time."""
        with self.lock_for(address):
            yield
