"""
Block implementation for ContractRunner.

A block is a header committing to its parent, its transactions (Merkle root of the
transaction hashes) and the state produced by applying them. Transactions are held
in an Apache Arrow table.
"""

import logging
from dataclasses import dataclass
from typing import Any, Union

import pyarrow as pa

from contractrunner.core import schemas
from contractrunner.core.types import Transaction, TxType
from contractrunner.core.utils import MerkleTree, generate_hash, to_hex

logger = logging.getLogger(__name__)


@dataclass
class BlockHeader:
    height: int
    parent_hash: str
    timestamp: int
    proposer: str
    tx_root: str
    state_root: str
    proposer_payload: bytes = b""

    def to_dict(self) -> dict[str, Any]:
        return {
            "height": self.height,
            "parentHash": self.parent_hash,
            "timestamp": self.timestamp,
            "proposer": self.proposer,
            "txRoot": self.tx_root,
            "stateRoot": self.state_root,
            "proposerPayload": to_hex(self.proposer_payload)
        }

    def hash(self) -> str:
        return generate_hash(self.to_dict())


class Block:
    """
    Block holding its transactions as an Arrow table.
    """

    def __init__(
        self,
        header: BlockHeader,
        transactions: Union[list[Transaction], pa.Table],
        proposer_signature: bytes | None = None
    ):
        """
        Initialize a block.

        Args:
            header: Block header
            transactions: Transactions OR an existing Arrow Table of them
            proposer_signature: Signature envelope of the proposer over the hash
        """
        self.header = header
        self.proposer_signature = proposer_signature
        if isinstance(transactions, pa.Table):
            self._transactions = transactions
        else:
            self._transactions = self._convert_transactions_to_arrow(transactions)
        self.hash = header.hash()

    @property
    def height(self) -> int:
        return self.header.height

    @property
    def parent_hash(self) -> str:
        return self.header.parent_hash

    @property
    def timestamp(self) -> int:
        return self.header.timestamp

    @property
    def transactions(self) -> pa.Table:
        """Access transactions as an Arrow Table."""
        return self._transactions

    @staticmethod
    def _convert_transactions_to_arrow(transactions: list[Transaction]) -> pa.Table:
        rows = [{
            'tx_hash': tx.hash(),
            'type': int(tx.type),
            'nonce': tx.nonce,
            'epoch': tx.epoch,
            'to': tx.to,
            'amount': str(tx.amount),
            'max_fee': str(tx.max_fee),
            'tips': str(tx.tips),
            'payload': tx.payload,
            'signature': tx.signature,
        } for tx in transactions]
        return pa.Table.from_pylist(rows, schema=schemas.get_transaction_schema())

    def to_transaction_list(self) -> list[Transaction]:
        """Convert the internal Arrow table back to transactions."""
        return [
            Transaction(
                type=TxType(row['type']),
                nonce=row['nonce'],
                epoch=row['epoch'],
                to=row['to'],
                amount=int(row['amount']),
                max_fee=int(row['max_fee']),
                tips=int(row['tips']),
                payload=row['payload'] or b"",
                signature=row['signature']
            )
            for row in self._transactions.to_pylist()
        ]

    def transaction_hashes(self) -> list[str]:
        return self._transactions.column('tx_hash').to_pylist()

    @staticmethod
    def calculate_tx_root(transactions: list[Transaction]) -> str:
        return MerkleTree([tx.hash() for tx in transactions]).get_root()

    def validate_structure(self) -> bool:
        """Check the table schema and that the header commits to the transactions."""
        if not self._transactions.schema.equals(schemas.get_transaction_schema()):
            return False
        return MerkleTree(self.transaction_hashes()).get_root() == self.header.tx_root

    def to_dict(self) -> dict[str, Any]:
        data = self.header.to_dict()
        data.update({
            "hash": self.hash,
            "transactions": self.transaction_hashes(),
            "proposerSignature": to_hex(self.proposer_signature) if self.proposer_signature else None
        })
        return data

    def __str__(self) -> str:
        return f"Block(height={self.height}, txs={self._transactions.num_rows}, hash={self.hash[:12]}...)"

    def __repr__(self) -> str:
        return f"Block(height={self.height}, txs={self._transactions.num_rows}, hash={self.hash})"
