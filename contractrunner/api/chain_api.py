"""
Chain service of the runner: block generation, reset and chain inspection.
"""

import logging
from typing import Any

from contractrunner.api import codec
from contractrunner.api.base_api import BaseApi
from contractrunner.api.contract_api import convert_receipt
from contractrunner.api.schemas import TxReceipt
from contractrunner.core.blockchain import MemBlockchain
from contractrunner.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ChainApi:
    def __init__(self, base_api: BaseApi, chain: MemBlockchain):
        self.base_api = base_api
        self.chain = chain

    def generate_blocks(self, count: int):
        """Produce count blocks from the pending pool."""
        if count < 0:
            raise ValidationError(f"block count must not be negative: {count}")
        self.chain.generate_blocks(count)

    def reset_to(self, height: int):
        self.chain.reset_to(height)

    def head(self) -> dict[str, Any]:
        return self.chain.head.to_dict()

    def get_block(self, height: int) -> dict[str, Any]:
        block = self.chain.get_block(height)
        if block is None:
            raise NotFoundError(f"block {height} not found")
        return block.to_dict()

    def get_balance(self, address: str) -> str:
        """Balance of address in DNA"""
        return codec.dna_string(self.base_api.get_readonly_app_state().state.get_balance(address))

    def get_receipt(self, tx_hash: str) -> TxReceipt:
        """
        Receipt of a committed transaction.

        Raises:
            NotFoundError: if no committed transaction has tx_hash
        """
        receipt = self.chain.get_receipt(tx_hash)
        committed = self.chain.get_transaction(tx_hash)
        if receipt is None or committed is None:
            raise NotFoundError(f"receipt of {tx_hash} not found")
        state = self.base_api.get_readonly_app_state().state
        return convert_receipt(committed[1], receipt, state.fee_per_gas, state.gas_per_byte)
