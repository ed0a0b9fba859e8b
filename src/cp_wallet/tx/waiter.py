"""Bounded polling for the receipt of a parent transaction.

Used by two-step workflows where the second transaction is only valid once
the first has been mined successfully (token ``approve`` before collateral
``deposit``).
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Protocol, TypeVar

from cp_wallet.chain.client import Receipt
from cp_wallet.errors import ReceiptFailedError, ReceiptTimeoutError

logger = logging.getLogger("cp_wallet.tx.waiter")

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_TIMEOUT = 180.0

T = TypeVar("T")


class ReceiptSource(Protocol):
    def transaction_receipt(self, tx_hash: str) -> Receipt | None: ...


class ConfirmationState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class ConfirmationWaiter:
    """Polls for a receipt every *poll_interval* seconds, up to *timeout*.

    Blocks the calling thread.  ``sleep`` and ``clock`` are injectable so
    the loop can be driven without real time passing.  A waiter guards one
    transaction: once confirmed, failed or timed out it cannot be reused.
    """

    def __init__(
        self,
        chain: ReceiptSource,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.chain = chain
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self.state = ConfirmationState.PENDING

    def wait(self, tx_hash: str) -> Receipt:
        """Block until *tx_hash* is mined.

        Returns the successful receipt.

        Raises
        ------
        ReceiptFailedError
            The transaction was mined with failure status.
        ReceiptTimeoutError
            No receipt appeared within ``timeout`` seconds.
        RuntimeError
            This waiter already reached a terminal state.
        """
        if self.state is not ConfirmationState.PENDING:
            raise RuntimeError(f"confirmation waiter already finished ({self.state.value})")
        start = self._clock()
        polls = 0
        while True:
            self._sleep(self.poll_interval)
            if self._clock() - start >= self.timeout:
                self.state = ConfirmationState.TIMED_OUT
                logger.warning(f"No receipt for {tx_hash} after {polls} polls")
                raise ReceiptTimeoutError(tx_hash, self.timeout)

            receipt = self.chain.transaction_receipt(tx_hash)
            polls += 1
            if receipt is None:
                logger.debug(f"Waiting for {tx_hash} (poll {polls})")
                continue

            if receipt.succeeded:
                self.state = ConfirmationState.CONFIRMED
                logger.info(f"Transaction {tx_hash} confirmed in block {receipt.block_number}")
                return receipt

            self.state = ConfirmationState.FAILED
            raise ReceiptFailedError(tx_hash)

    def then(self, tx_hash: str, dispatch: Callable[[], T]) -> T:
        """Wait for *tx_hash*, then run the dependent *dispatch*."""
        self.wait(tx_hash)
        return dispatch()
