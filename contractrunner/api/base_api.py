"""
Shared context of the RPC services.

BaseApi gives the contract and chain services access to the default signer, the
node's key store, the transaction pool and the head state of the chain.
"""

import logging
from decimal import Decimal

from contractrunner.core.blockchain import MemBlockchain
from contractrunner.core.errors import NoSignerError
from contractrunner.core.types import Transaction, TxType
from contractrunner.core.utils import convert_to_int
from contractrunner.storage.world_state import AppState

logger = logging.getLogger(__name__)


class BaseApi:
    def __init__(self, chain: MemBlockchain):
        self.chain = chain
        self.key_store = chain.key_store
        self.txpool = chain.txpool

    def get_current_coinbase(self) -> str | None:
        """Address used when a request names no sender"""
        return self.chain.god_address

    def can_sign(self, address: str | None) -> bool:
        return self.key_store.can_sign(address)

    def sign_transaction(self, address: str, tx: Transaction) -> Transaction:
        """
        Attach the signature of address to tx.

        Raises:
            NoSignerError: if the node holds no key for address
        """
        if not self.can_sign(address):
            raise NoSignerError(f"cannot sign for {address}: key is not available")
        tx.signature = self.key_store.sign(address, tx.signature_hash())
        return tx

    def get_tx(self, sender: str, to: str | None, tx_type: TxType, amount: Decimal, max_fee: Decimal,
               tips: Decimal, nonce: int = 0, epoch: int = 0, payload: bytes = b"") -> Transaction:
        """
        Create an unsigned transaction, converting DNA amounts to base units.

        A zero nonce is replaced by the next nonce of sender, counting the
        transactions it already has waiting in the pool.
        """
        if nonce == 0:
            state_nonce = self.chain.readonly_app_state().state.get_nonce(sender)
            nonce = state_nonce + self.txpool.pending_count(sender) + 1
        return Transaction(
            type=tx_type,
            nonce=nonce,
            epoch=epoch,
            to=to,
            amount=convert_to_int(amount),
            max_fee=convert_to_int(max_fee),
            tips=convert_to_int(tips),
            payload=payload
        )

    def send_internal_tx(self, tx: Transaction) -> str:
        """Submit tx to the pool and return its hash."""
        return self.txpool.add(tx)

    def get_app_state_for_check(self) -> AppState:
        return self.chain.app_state_for_check()

    def get_readonly_app_state(self) -> AppState:
        return self.chain.readonly_app_state()
