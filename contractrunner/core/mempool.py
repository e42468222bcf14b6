"""
Transaction pool of the in-memory chain.

Submitted transactions are validated against the head state and wait here, in
submission order, until the next generated block picks them up.
"""

import logging
import threading
from typing import TYPE_CHECKING

from contractrunner.core.errors import ValidationError
from contractrunner.core.types import Transaction
from contractrunner.core.validation import validate_tx

if TYPE_CHECKING:
    from contractrunner.core.blockchain import MemBlockchain

logger = logging.getLogger(__name__)


class TxPool:
    """Pending transactions keyed by hash, in submission order"""

    def __init__(self, chain: 'MemBlockchain'):
        self.chain = chain
        self._pending: dict[str, tuple[str, Transaction]] = {}
        self._lock = threading.Lock()

    def add(self, tx: Transaction) -> str:
        """
        Validate tx against the head state and queue it.

        Returns:
            Transaction hash

        Raises:
            ValidationError: if the transaction is invalid or already queued
        """
        tx_hash = tx.hash()
        app_state = self.chain.readonly_app_state()
        sender = validate_tx(app_state, tx, app_state.state.fee_per_gas)
        with self._lock:
            if tx_hash in self._pending:
                raise ValidationError("tx with same hash already exists")
            self._pending[tx_hash] = (sender, tx)
        logger.info(f"Transaction {tx_hash} from {sender} added to the pool")
        return tx_hash

    def pending(self) -> list[Transaction]:
        with self._lock:
            return [tx for _, tx in self._pending.values()]

    def pending_count(self, sender: str) -> int:
        with self._lock:
            return sum(1 for s, _ in self._pending.values() if s == sender)

    def get(self, tx_hash: str) -> Transaction | None:
        with self._lock:
            entry = self._pending.get(tx_hash)
        return entry[1] if entry else None

    def remove(self, tx_hashes: list[str]):
        with self._lock:
            for tx_hash in tx_hashes:
                self._pending.pop(tx_hash, None)

    def size(self) -> int:
        with self._lock:
            return len(self._pending)
